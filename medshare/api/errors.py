"""Exception handlers producing the JSON error envelope."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from medshare.logging import request_id_var
from medshare.services.errors import AccessError

logger = logging.getLogger("medshare")


def _envelope(status_code: int, message, error_type: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "status_code": status_code,
                "type": error_type,
                **extra,
                "request_id": request_id_var.get(),
            }
        },
    )


async def access_error_handler(_request: Request, exc: AccessError):
    return _envelope(exc.status_code, exc.message, exc.error_type)


async def http_exception_handler(_request: Request, exc: HTTPException):
    return _envelope(exc.status_code, exc.detail, "http_error")


async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    return _envelope(
        422,
        "Validation error",
        "validation_error",
        details=jsonable_errors(exc),
    )


async def unhandled_exception_handler(_request: Request, _exc: Exception):
    logger.exception("Unhandled error")
    return _envelope(500, "Internal server error", "server_error")


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw ``ctx`` objects pydantic may attach."""
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessError, access_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

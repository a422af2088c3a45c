from contextlib import asynccontextmanager
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from medshare.api import access, comments, health, medications, patients
from medshare.api.errors import register_exception_handlers
from medshare.config import settings
from medshare.database import close_db, init_db
from medshare.logging import configure_logging, request_id_var
from medshare.services.expiry_sweeper import get_grant_expiry_sweeper

configure_logging()
logger = logging.getLogger("medshare")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    logger.info("Starting MedShare API")
    try:
        await init_db()
        logger.info("Database initialized")
    except Exception:
        logger.exception("Failed to initialize database")
        raise

    sweeper = get_grant_expiry_sweeper()
    await sweeper.start()

    yield

    logger.info("Shutting down MedShare API")
    await sweeper.stop()
    try:
        await close_db()
        logger.info("Database connections closed")
    except Exception:
        logger.exception("Error closing database")
    logger.info("MedShare API shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
        # MedShare API

        Access-grant control plane for patient records shared between
        pharmacies, clinics and hospitals.

        ## Features

        - **Share tokens** - Request access to another organization's patient
        - **Grant lifecycle** - Approve, deny, revoke or push access directly
        - **Visibility** - Own patients merged with patients shared with you
        - **Gated records** - Medications and comments behind one access check
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        request_id_var.set(request_id)
        response = await call_next(request)
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        response.headers.setdefault(
            "Content-Security-Policy",
            "default-src 'none'; frame-ancestors 'none'; base-uri 'none'",
        )
        if not settings.debug:
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=63072000; includeSubDomains",
            )
        return response

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    app.include_router(health.router)
    for router in (access.router, patients.router, medications.router, comments.router):
        app.include_router(router, prefix=settings.api_prefix)

    register_exception_handlers(app)
    return app


app = create_app()

"""Error taxonomy of the access-grant core.

Every failure here is a logical or authorization violation, never a
transient fault, so callers get the error immediately and nothing retries.
"""

from fastapi import status


class AccessError(Exception):
    """Base class for access control failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "access_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequired(AccessError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_required"


class NotFound(AccessError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class Unauthorized(AccessError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "unauthorized"


class Conflict(AccessError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"


class InvalidState(AccessError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "invalid_state"

"""
Error taxonomy shared by the data access layer and the web app.

Every error carries a user-facing message, a machine-readable code and the
HTTP status the web layer answers with.
"""

from typing import Optional


class AppError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Missing or invalid local input, raised before any remote call."""
    status_code = 400
    code = "validation_error"


class AuthError(AppError):
    status_code = 401
    code = "auth_failed"

    INVALID_CREDENTIALS = "invalid_credentials"
    ALREADY_REGISTERED = "already_registered"
    AUTH_FAILED = "auth_failed"

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        if status_code is None and code == self.ALREADY_REGISTERED:
            status_code = 409
        super().__init__(message, code=code, status_code=status_code)


class NoAvailabilityError(AppError):
    status_code = 409
    code = "no_availability"


class RemoteError(AppError):
    """Anything the document store raised."""
    status_code = 502
    code = "remote_error"

    DUPLICATE_KEY = "duplicate_key"

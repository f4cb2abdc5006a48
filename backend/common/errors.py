"""
Error taxonomy shared by every service.

Each error carries the HTTP status it maps to. The gateway registers a single
handler for `ApiError`, so routes and the ledger can simply raise.
"""

from typing import Optional


class ApiError(Exception):
    """Base class for errors that are safe to show to API callers."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid input"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Permission denied"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Already exists"


class InternalError(ApiError):
    status_code = 500
    default_message = "Internal server error"


class InvalidCredentials(Unauthorized):
    # Same message for unknown identifier and wrong password.
    default_message = "Invalid credentials"


class IncorrectCurrentPassword(ValidationError):
    default_message = "currentPassword incorrect"


class InvalidToken(Unauthorized):
    default_message = "invalid token"

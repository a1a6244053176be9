"""
Error taxonomy shared by services and the HTTP boundary.

Services raise these close to the point of detection; the exception handlers
registered in ``festreg.main`` translate them to ``{error, message, details}``
JSON bodies with the matching status code.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code: int = 500
    default_message: str = "Internal Server Error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request body"


class AuthError(AppError):
    status_code = 401
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 400
    default_message = "Request conflicts with the current registration state"


class UpstreamError(AppError):
    status_code = 502
    default_message = "Booking provider request failed"


class InternalError(AppError):
    status_code = 500

"""Error taxonomy shared by services and HTTP handlers.

Every error carries the HTTP status it maps to; the API renders them as
``{"error": message}``.
"""

from __future__ import annotations


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid input"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class AuthorizationError(AppError):
    status_code = 403
    default_message = "Unauthorized"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    # Conflicts surface as bad input rather than 409.
    status_code = 400
    default_message = "Conflict"


class CapacityError(ConflictError):
    default_message = "Workout is at maximum capacity"


class InternalError(AppError):
    status_code = 500

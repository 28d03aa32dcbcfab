"""
Error taxonomy for the API.

Every business-rule failure is an ``AppError``; ``main.py`` turns them into
the ``{"success": false, "message": ...}`` envelope.
"""
from typing import Dict, Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server Error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code,
            detail=message or self.default_message,
            headers=headers,
        )

    @property
    def message(self) -> str:
        return self.detail


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Not authorized to access this route - No token provided"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class InvalidToken(Unauthenticated):
    default_message = "Not authorized to access this route - Invalid token"


class UnknownSubject(Unauthenticated):
    default_message = "User not found"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not enough permissions"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class BadRequest(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class SlotConflict(BadRequest):
    default_message = "This appointment slot is already booked"


class InvalidFieldSet(BadRequest):
    default_message = "Invalid fields for update"


class InvalidTransition(BadRequest):
    default_message = "Invalid status transition"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "The record was modified by another request"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests. Please try again later."


def format_validation_errors(errors) -> str:
    """Flatten pydantic error dicts into "field: message; ..." text."""
    problems = []
    for error in errors:
        location = ".".join(str(part) for part in error["loc"] if part != "body")
        problems.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(problems) or "Invalid request"

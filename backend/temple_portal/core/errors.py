"""
Error Taxonomy
===============
Every failure a handler can report. Services raise these; the exception
handlers registered in main.py turn them into `{"error": ...}` responses.
"""

from fastapi import status


class AppError(Exception):
    """Base class for errors rendered as structured JSON."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(AppError):
    """Missing or invalid credential."""
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AppError):
    """Valid identity without the required grant."""
    status_code = status.HTTP_403_FORBIDDEN


class InvalidInput(AppError):
    """Missing or malformed request field."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class Unavailable(AppError):
    """Store or identity provider failed unexpectedly."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

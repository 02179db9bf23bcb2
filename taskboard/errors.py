from __future__ import annotations

from typing import Any, Optional


class TaskboardError(Exception):
    """Base class for errors that map onto a JSON error envelope."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, errors: Optional[list[dict[str, Any]]] = None) -> None:
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class ValidationError(TaskboardError):
    status_code = 400
    default_message = "Validation failed"


class AuthError(TaskboardError):
    status_code = 401
    default_message = "Invalid token."


class AccessDenied(TaskboardError):
    status_code = 403
    default_message = "Access denied"


class NotFound(TaskboardError):
    status_code = 404
    default_message = "Not found"


class ConcurrentUpdate(TaskboardError):
    """The board changed between load and save."""

    status_code = 409
    default_message = "Board was modified by another request"

"""Domain error taxonomy raised by services and mapped to HTTP responses."""

from __future__ import annotations

from fastapi import status


class TaskflowError(Exception):
    """Base class for errors raised by the task/board core."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TaskflowError):
    """Malformed or missing input, detected before any mutation."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"


class AuthorizationError(TaskflowError):
    """Principal lacks the capability, or a member patch has the wrong key set."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFoundError(TaskflowError):
    """Referenced entity is absent or not owned by the requesting principal."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class StorageError(TaskflowError):
    """Underlying store failure on a primary step."""

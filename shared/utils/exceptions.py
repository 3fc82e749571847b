"""
shared/utils/exceptions.py
Error kinds raised by the scheduling core.

Lifecycle and query functions raise these; the API layer converts
them to HTTP responses via to_http_exception().
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class SchedulingError(Exception):
    """Base exception for all scheduling errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationError(SchedulingError):
    """Missing or malformed input. Nothing was written."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SchedulingError):
    """A referenced appointment, slot, subject or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SchedulingError):
    """The requested transition is invalid for the current state."""

    status_code = status.HTTP_409_CONFLICT


class StoreError(SchedulingError):
    """Persistence failure. Surfaced as a generic server error."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def to_http_exception(self) -> HTTPException:
        # Never leak driver messages to the client.
        return HTTPException(
            status_code=self.status_code,
            detail={"message": "Server error", "code": self.code, "details": {}},
        )

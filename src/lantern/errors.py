"""Exceptions raised by Lantern.

All Lantern exceptions inherit from LanternError and carry a
machine-readable code plus a details mapping for API responses.
"""

from __future__ import annotations

from typing import Any


class LanternError(Exception):
    """Base exception for all Lantern errors.

    Attributes:
        message: Human-readable error message.
        code: Machine-readable error code.
        details: Additional context about the error.
    """

    def __init__(
        self,
        message: str,
        code: str = "LANTERN_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class DuplicateSessionError(LanternError):
    """Raised when creating a session whose id already exists."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Session already exists: {session_id}",
            code="DUPLICATE_SESSION",
            details={"session_id": session_id},
        )


class SessionNotFoundError(LanternError):
    """Raised when operating on an unknown session id."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Session not found: {session_id}",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id},
        )


class InvalidEventError(LanternError):
    """Raised when a telemetry event is malformed and cannot be recorded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="INVALID_EVENT", details=details)

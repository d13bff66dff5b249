"""Base exception for the crash dashboard."""

from typing import Any, Dict, Optional

from .taxonomy import ErrorCode


class CrashDashboardError(Exception):
    """Base exception for all crash dashboard errors."""

    code: ErrorCode = ErrorCode.CD300

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_json(self) -> Dict[str, Any]:
        """Structured form published to the status sink."""
        return {
            "error_code": self.code.value,
            "error_type": type(self).__name__,
            "message": self.message,
            "details": dict(self.details),
        }

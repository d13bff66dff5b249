"""Data-related exceptions: annotation parsing and signature extraction."""

from typing import Any, Mapping, Optional

from .base import CrashDashboardError
from .taxonomy import ErrorCode


class DataError(CrashDashboardError):
    """Base class for errors in the shape of fetched report data."""

    code = ErrorCode.CD200


class MalformedAnnotationError(DataError):
    """Raised when a report's annotation cannot be decoded.

    The offending raw string is kept on ``raw`` so the failure can be
    diagnosed from the status line or the logs.
    """

    code = ErrorCode.CD201

    def __init__(self, raw: Any, reason: str, uuid: Optional[str] = None):
        details = {"reason": reason, "raw": str(raw)[:200]}
        if uuid:
            details["uuid"] = uuid
        super().__init__("Malformed annotation", details=details)
        self.raw = raw
        self.reason = reason
        self.uuid = uuid


class EmptySignatureError(DataError):
    """Raised when a report's conditions yield an empty signature."""

    code = ErrorCode.CD202

    def __init__(self, record: Optional[Mapping[str, Any]] = None):
        details = {}
        if record is not None and record.get("uuid"):
            details["uuid"] = str(record["uuid"])
        super().__init__("Report has an empty signature", details=details)
        self.record = record

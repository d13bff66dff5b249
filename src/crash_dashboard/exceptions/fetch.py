"""Fetch-related exceptions: throttling, transport, response bodies."""

from typing import Optional

from .base import CrashDashboardError
from .taxonomy import ErrorCode


class FetchError(CrashDashboardError):
    """Base class for errors raised while talking to the search API."""

    code = ErrorCode.CD100

    def __init__(self, url: str, reason: str):
        super().__init__(f"Could not fetch {url}", details={"url": url, "reason": reason})
        self.url = url
        self.reason = reason


class TooManyAttemptsError(FetchError):
    """Raised when the server kept rate limiting until the attempt budget ran out."""

    code = ErrorCode.CD101

    def __init__(self, url: str, attempts: int, last_status: Optional[int] = None):
        CrashDashboardError.__init__(
            self,
            f"Too many attempts fetching {url}",
            details={
                "url": url,
                "attempts": str(attempts),
                "last_status": str(last_status),
            },
        )
        self.url = url
        self.reason = "rate limited"
        self.attempts = attempts
        self.last_status = last_status


class MalformedResponseError(FetchError):
    """Raised when a response body is not the JSON we expect."""

    code = ErrorCode.CD102

    def __init__(self, url: str, body: str, reason: str = "body is not valid JSON"):
        CrashDashboardError.__init__(
            self,
            f"Malformed response from {url}",
            details={"url": url, "reason": reason, "body": body[:200]},
        )
        self.url = url
        self.reason = reason
        self.body = body


class HTTPStatusError(FetchError):
    """Raised for any non-throttling HTTP status >= 400."""

    code = ErrorCode.CD103

    def __init__(self, url: str, status_code: int, body: str = ""):
        CrashDashboardError.__init__(
            self,
            f"HTTP {status_code} from {url}",
            details={"url": url, "status_code": str(status_code), "body": body[:200]},
        )
        self.url = url
        self.reason = f"HTTP {status_code}"
        self.status_code = status_code
        self.body = body

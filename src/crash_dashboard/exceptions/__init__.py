"""Exception hierarchy for the crash dashboard."""

from .base import CrashDashboardError
from .config import ConfigurationError, InvalidArgumentError, InvalidConfigError
from .data import DataError, EmptySignatureError, MalformedAnnotationError
from .fetch import FetchError, HTTPStatusError, MalformedResponseError, TooManyAttemptsError
from .taxonomy import ErrorCode

__all__ = [
    "CrashDashboardError",
    "ErrorCode",
    "FetchError",
    "TooManyAttemptsError",
    "MalformedResponseError",
    "HTTPStatusError",
    "DataError",
    "MalformedAnnotationError",
    "EmptySignatureError",
    "ConfigurationError",
    "InvalidConfigError",
    "InvalidArgumentError",
]

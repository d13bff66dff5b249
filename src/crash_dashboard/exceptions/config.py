"""Configuration and argument exceptions."""

from typing import Any

from .base import CrashDashboardError
from .taxonomy import ErrorCode


class ConfigurationError(CrashDashboardError):
    """Base class for configuration-related errors."""

    code = ErrorCode.CD300


class InvalidConfigError(ConfigurationError):
    """Raised when configuration values are invalid."""

    code = ErrorCode.CD301

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            f"Invalid configuration for {key}: {value}",
            details={"key": key, "value": str(value), "reason": reason},
        )
        self.key = key
        self.value = value
        self.reason = reason


class InvalidArgumentError(ConfigurationError, ValueError):
    """Raised synchronously when a caller passes an unusable argument."""

    code = ErrorCode.CD302

    def __init__(self, argument: str, value: Any, reason: str):
        super().__init__(
            f"Invalid argument {argument}: {value!r}",
            details={"argument": argument, "reason": reason},
        )
        self.argument = argument
        self.value = value
        self.reason = reason

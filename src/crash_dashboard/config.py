"""Configuration loading and management for the crash dashboard.

Configuration is read once at startup and is immutable afterwards. Sources
are merged in priority order:
    1. Defaults (defined in DashboardConfig)
    2. Global config (~/.crash-dashboard.toml)
    3. Project config (./crash-dashboard.toml)
    4. Explicit config file
    5. Environment variables (CRASHDASH_* prefix)
    6. CLI / page overrides (passed as kwargs)

Example:
    >>> config = load_config(days_back=3, versions=["Firefox 52.0a1"])
    >>> config.days_back
    3
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Literal, Mapping, Optional, Tuple, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]

DEFAULT_BASE_URL = "https://crash-stats.mozilla.com/api/SuperSearch/"
DEFAULT_REPORT_URL = "https://crash-stats.mozilla.com/report/index/"
DEFAULT_ANNOTATION_KEY = "async_shutdown_timeout"


@dataclass(frozen=True)
class DashboardConfig:
    """Configuration for one dashboard session.

    Attributes:
        Search API:
            base_url: SuperSearch endpoint queried for samples
            report_url: Prefix used to build links to individual reports
            annotation_key: Report field holding the JSON annotation
            timeout_seconds: Per-request HTTP timeout

        Sampling:
            days_back: Number of days fetched, ages 0..days_back-1
            sample_size: Result cap requested per day
            versions: Initial "product version" restriction (OR'd server-side)
            signatures: Initial signature restriction ("~text" substring match)

        Backoff:
            sample_delay_ms / sample_attempts: budget for day samples
            count_delay_ms / count_attempts: budget for the total count probe
            day_pause_ms: Pause after each day of an unfiltered run

        Display:
            debounce_ms: Delay coalescing rapid filter changes
            max_links_per_day: Sample links shown per signature per day
            verbosity: Logging verbosity level
    """

    base_url: str = DEFAULT_BASE_URL
    report_url: str = DEFAULT_REPORT_URL
    annotation_key: str = DEFAULT_ANNOTATION_KEY
    timeout_seconds: float = 30.0

    days_back: int = 7
    sample_size: int = 200
    versions: Tuple[str, ...] = ()
    signatures: Tuple[str, ...] = ()

    sample_delay_ms: int = 1000
    sample_attempts: int = 5
    count_delay_ms: int = 500
    count_attempts: int = 10
    day_pause_ms: int = 1000

    debounce_ms: int = 500
    max_links_per_day: int = 20
    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        # Lists coming from TOML or the CLI are frozen into tuples
        object.__setattr__(self, "versions", tuple(self.versions))
        object.__setattr__(self, "signatures", tuple(self.signatures))

        if not self.base_url:
            raise InvalidConfigError("base_url", self.base_url, "must not be empty")
        if not self.annotation_key:
            raise InvalidConfigError("annotation_key", self.annotation_key, "must not be empty")
        if self.timeout_seconds <= 0:
            raise InvalidConfigError("timeout_seconds", self.timeout_seconds, "must be positive")
        if self.days_back < 1:
            raise InvalidConfigError("days_back", self.days_back, "must be at least 1")
        if self.sample_size < 1:
            raise InvalidConfigError("sample_size", self.sample_size, "must be at least 1")
        for name in ("sample_delay_ms", "count_delay_ms", "day_pause_ms", "debounce_ms"):
            if getattr(self, name) < 0:
                raise InvalidConfigError(name, getattr(self, name), "must be non-negative")
        for name in ("sample_attempts", "count_attempts", "max_links_per_day"):
            if getattr(self, name) < 1:
                raise InvalidConfigError(name, getattr(self, name), "must be at least 1")
        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError("verbosity", self.verbosity, "expected quiet/normal/verbose")

    @property
    def debounce_seconds(self) -> float:
        """Get the filter debounce delay in seconds."""
        return self.debounce_ms / 1000


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> DashboardConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags)

    Returns:
        Validated DashboardConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
    """
    merged: dict = {}

    global_config = Path.home() / ".crash-dashboard.toml"
    if global_config.exists():
        merged.update(_load_toml_file(global_config))

    project_config = Path.cwd() / "crash-dashboard.toml"
    if project_config.exists():
        merged.update(_load_toml_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_load_toml_file(config_file))

    merged.update(_load_env_vars())

    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    # Unset CLI options arrive as None and must not mask file values
    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return DashboardConfig(**merged)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def page_overrides(query: Mapping[str, Any]) -> dict[str, Any]:
    """Turn dashboard page query parameters into config overrides.

    Accepts any mapping; multi-valued keys (``version``, ``signature``) are
    read with ``getlist`` when the mapping provides it (Starlette's
    ``QueryParams`` does), otherwise a list or single string is accepted.
    """
    result: dict[str, Any] = {}
    for key in ("days_back", "sample_size"):
        value = query.get(key)
        if value is None or value == "":
            continue
        try:
            result[key] = int(value)
        except (TypeError, ValueError):
            raise InvalidConfigError(key, value, "expected an integer")

    for key, field_name in (("version", "versions"), ("signature", "signatures")):
        values = _get_all(query, key)
        if values:
            result[field_name] = tuple(values)
    return result


def _get_all(query: Mapping[str, Any], key: str) -> list[str]:
    getlist = getattr(query, "getlist", None)
    if callable(getlist):
        return [v for v in getlist(key) if v]
    value = query.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return [v for v in _as_iterable(value) if v]


def _as_iterable(value: Any) -> Iterable[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from CRASHDASH_* environment variables.

    Tuple fields (``versions``, ``signatures``) take comma-separated values.
    """
    type_hints = get_type_hints(DashboardConfig)
    result: dict[str, Any] = {}

    for field_name in DashboardConfig.__dataclass_fields__:
        env_key = f"CRASHDASH_{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse an environment variable string to the field's type."""
    origin = getattr(type_hint, "__origin__", None)

    if origin is tuple:
        return tuple(part.strip() for part in value.split(",") if part.strip())

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict:
    """Load a TOML file and return the parsed dict.

    A ``[dashboard]`` table is accepted as well as top-level keys.
    """
    try:
        import tomllib
    except ModuleNotFoundError:
        import tomli as tomllib  # type: ignore

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}")

    section = data.pop("dashboard", None)
    if isinstance(section, dict):
        data.update(section)
    return data

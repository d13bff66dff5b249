"""SuperSearch queries: day samples and the total count."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .config import DashboardConfig
from .exceptions import InvalidArgumentError, MalformedResponseError
from .fetch import BackoffFetcher
from .logging_config import get_logger
from .models import DaySample

logger = get_logger(__name__)

NOT_NULL = "!__null__"


@dataclass(frozen=True)
class Restriction:
    """Server-side restriction taken from the page arguments.

    ``versions`` are ``"product version"`` strings, OR'd by the server.
    ``signatures`` are ``~text`` substring matches against the annotation.
    """

    versions: Tuple[str, ...] = ()
    signatures: Tuple[str, ...] = ()

    @classmethod
    def from_config(cls, config: DashboardConfig) -> "Restriction":
        return cls(versions=tuple(config.versions), signatures=tuple(config.signatures))


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def day_bounds(age: int, today: Optional[date] = None) -> Tuple[str, str]:
    """Return the ISO day *age* days before *today* and the day after it."""
    if age < 0:
        raise InvalidArgumentError("age", age, "must be non-negative")
    today = today or utc_today()
    day = today - timedelta(days=age)
    return day.isoformat(), (day + timedelta(days=1)).isoformat()


def signature_terms(signatures: Iterable[str]) -> List[str]:
    """Translate ``~text`` restrictions into annotation query values."""
    terms = []
    for sig in signatures:
        if not sig:
            continue
        if sig.startswith("~!"):
            raise InvalidArgumentError("signature", sig, "negative matches are not supported")
        if not sig.startswith("~"):
            raise InvalidArgumentError("signature", sig, "operator not supported")
        terms.append(sig[1:])
    return terms


def version_terms(versions: Iterable[str]) -> List[str]:
    """Extract the version part of ``"product version"`` restrictions."""
    terms = []
    for entry in versions:
        product, _, version = entry.partition(" ")
        if product and version:
            terms.append(version)
    return terms


def sample_params(
    age: int,
    restrict: Restriction,
    sample_size: int,
    annotation_key: str,
    today: Optional[date] = None,
) -> List[Tuple[str, str]]:
    """Build the query pairs fetching one day of annotated reports."""
    iso_day, iso_next_day = day_bounds(age, today)
    params: List[Tuple[str, str]] = [
        (annotation_key, NOT_NULL),
        ("_results_number", str(sample_size)),
        ("date", f">={iso_day}"),
        ("date", f"<{iso_next_day}"),
    ]
    params.extend(("version", v) for v in version_terms(restrict.versions))
    params.extend((annotation_key, t) for t in signature_terms(restrict.signatures))
    return params


class SearchClient:
    """Fetch crash samples from the search API through a ``BackoffFetcher``."""

    def __init__(
        self,
        fetcher: BackoffFetcher,
        config: DashboardConfig,
        status: Optional[Callable[[str], None]] = None,
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.fetcher = fetcher
        self.config = config
        self._status = status or (lambda message: None)
        self._today = today or utc_today

    async def get_count(self) -> int:
        """Return how many reports carry an annotation at all."""
        self._status("Fetching size of sample")
        data = await self.fetcher.fetch(
            self.config.base_url,
            self.config.count_delay_ms,
            self.config.count_attempts,
            params=[(self.config.annotation_key, NOT_NULL), ("_results_number", "1")],
        )
        return _validate_sample(self.config.base_url, data).total

    async def get_sample_for_age(self, age: int, restrict: Restriction) -> DaySample:
        """Fetch the capped sample for the day *age* days ago."""
        today = self._today()
        iso_day, _ = day_bounds(age, today)
        params = sample_params(
            age,
            restrict,
            self.config.sample_size,
            self.config.annotation_key,
            today=today,
        )
        self._status(f"Fetching data for {iso_day}")
        data = await self.fetcher.fetch(
            self.config.base_url,
            self.config.sample_delay_ms,
            self.config.sample_attempts,
            params=params,
        )
        sample = _validate_sample(self.config.base_url, data)
        logger.info(
            "Day %d (%s): %d hits of %d total", age, iso_day, len(sample.hits), sample.total
        )
        return sample


def _validate_sample(url: str, data: Any) -> DaySample:
    """Check the ``{total, hits}`` shape of a search response."""
    if not isinstance(data, dict):
        raise MalformedResponseError(url, repr(data), reason="expected a JSON object")
    total = data.get("total")
    hits = data.get("hits", [])
    if not isinstance(total, int) or isinstance(total, bool):
        raise MalformedResponseError(url, repr(data), reason="missing integer 'total'")
    if not isinstance(hits, list) or not all(isinstance(h, dict) for h in hits):
        raise MalformedResponseError(url, repr(data), reason="'hits' must be a list of objects")
    return DaySample(total=total, hits=tuple(hits))

"""Per-day cache of fetched samples for the current session."""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, List, Optional

from .exceptions import InvalidArgumentError
from .logging_config import get_logger
from .models import DaySample

logger = get_logger(__name__)

DayFetcher = Callable[[int], Awaitable[DaySample]]

CACHE_HIT_STATUS = "Getting sample from in-memory cache"


class SampleStore:
    """Remember every day sample fetched during the session.

    Entries are never invalidated individually; :meth:`clear` drops the
    whole store when a refined restriction requires fetching again.
    """

    def __init__(self, status: Optional[Callable[[str], None]] = None) -> None:
        self._by_age: Dict[int, DaySample] = {}
        self._status = status or (lambda message: None)

    async def get_day(self, age: int, fetch: DayFetcher) -> DaySample:
        """Return the sample for *age*, calling *fetch* only on a cache miss.

        One-call entry point for callers that fetch and store together.
        ``DashboardPipeline`` keeps lookup and storing as separate scheduled
        stages and uses :meth:`get_cached` and :meth:`put` directly.
        """
        cached = self.get_cached(age)
        if cached is not None:
            logger.debug("Day %d served from in-memory cache", age)
            self._status(CACHE_HIT_STATUS)
            return cached
        sample = await fetch(age)
        self.put(age, sample)
        return sample

    def get_cached(self, age: int) -> Optional[DaySample]:
        """Cached sample for *age*, or ``None``; never publishes status."""
        _check_age(age)
        return self._by_age.get(age)

    def put(self, age: int, sample: DaySample) -> DaySample:
        _check_age(age)
        self._by_age[age] = sample
        return sample

    def cached_ages(self) -> List[int]:
        return sorted(self._by_age)

    def clear(self) -> None:
        logger.info("Clearing %d cached day(s)", len(self._by_age))
        self._by_age.clear()

    def __contains__(self, age: object) -> bool:
        return age in self._by_age

    def __len__(self) -> int:
        return len(self._by_age)


def _check_age(age: int) -> None:
    if age < 0:
        raise InvalidArgumentError("age", age, "must be non-negative")

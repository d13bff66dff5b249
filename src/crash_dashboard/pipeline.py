"""Day-by-day pipeline driving fetch → store → filter → normalize → aggregate → render.

``DashboardPipeline`` owns the session state: sample store, scheduler,
colour table, active filter and the last rendered index. That state is only
touched from inside scheduled tasks, so the single queue is the only
synchronization needed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from .aggregator import AggregateIndex, aggregate
from .config import DashboardConfig
from .exceptions import CrashDashboardError
from .fetch import BackoffFetcher
from .filters import Filter
from .logging_config import get_logger
from .models import DaySample, NormalizedReport, RawReport
from .normalizer import normalize, versions_involved
from .scheduler import CANCELLED, TaskScheduler
from .search import Restriction, SearchClient, utc_today
from .store import CACHE_HIT_STATUS, SampleStore
from .views import RenderSink, assign_colors, build_view

logger = get_logger(__name__)


@dataclass
class _Run:
    """Values private to one generation."""

    generation: int
    flt: Optional[Filter]
    today: date
    index: AggregateIndex = field(default_factory=AggregateIndex)


class DashboardPipeline:
    """Fetch, aggregate and render the last ``days_back`` days.

    Args:
        config: Session configuration.
        sink: Receives status lines, views and failures.
        fetcher: Optional ``BackoffFetcher``; one is created (and closed by
            :meth:`aclose`) when omitted.
        today: Callable returning the current UTC day.
        sleep: Coroutine function used for the pause between days.
    """

    def __init__(
        self,
        config: DashboardConfig,
        sink: RenderSink,
        *,
        fetcher: Optional[BackoffFetcher] = None,
        today: Optional[Callable[[], date]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.sink = sink
        self._owns_fetcher = fetcher is None
        self.fetcher = fetcher or BackoffFetcher(
            status=sink.status, timeout=config.timeout_seconds
        )
        self._today = today or utc_today
        self.search = SearchClient(self.fetcher, config, status=sink.status, today=self._today)
        self.scheduler = TaskScheduler(status=sink.status)
        self.store = SampleStore(status=sink.status)
        self._sleep = sleep
        self.restriction = Restriction.from_config(config)

        self.colors: Dict[str, str] = {}
        self.versions: List[Tuple[str, str]] = []
        self.filter: Optional[Filter] = None
        self.index: Optional[AggregateIndex] = None
        self.view: Optional[dict[str, Any]] = None

    # ── Runs ─────────────────────────────────────────────────────

    async def run(self, flt: Optional[Filter] = None) -> Optional[AggregateIndex]:
        """Start a new generation and process every day.

        Returns the final index, or ``None`` when the run was superseded by
        a newer one or halted on an error (published through the sink).
        """
        run = _Run(generation=self.scheduler.begin_run(), flt=flt, today=self._today())
        self.filter = flt
        logger.info(
            "Run %d: %d day(s), filter %r", run.generation, self.config.days_back, flt
        )

        futures = []
        for age in range(self.config.days_back):
            futures.extend(self._schedule_day(run, age))

        results = await asyncio.gather(*futures, return_exceptions=True)
        failure = next((r for r in results if isinstance(r, BaseException)), None)

        if not self.scheduler.is_current(run.generation):
            logger.info("Run %d superseded", run.generation)
            return None
        if failure is not None:
            self._halt(failure)
            return None
        if results and results[-1] is CANCELLED:
            return None
        return run.index

    async def restart(self, restriction: Optional[Restriction] = None) -> Optional[AggregateIndex]:
        """Drop every cached day and run again, optionally with a new restriction."""
        self.store.clear()
        self.colors = {}
        self.versions = []
        if restriction is not None:
            self.restriction = restriction
        return await self.run(None)

    def selection_filter(self, selected: Iterable[str]) -> Filter:
        """Filter accepting exactly the checked ``"product version"`` keys."""
        return Filter.from_selection(self.versions, selected)

    async def fetch_total(self) -> int:
        """Number of annotated reports on the server, all days included."""
        return await self.search.get_count()

    async def aclose(self) -> None:
        if self._owns_fetcher:
            await self.fetcher.aclose()

    def _halt(self, error: BaseException) -> None:
        if isinstance(error, CrashDashboardError):
            logger.error("Run failed: %s", error)
        else:
            logger.exception("Run failed unexpectedly", exc_info=error)
        self.scheduler.reset()
        self.sink.fail(error)

    # ── Stages ───────────────────────────────────────────────────

    def _schedule_day(self, run: _Run, age: int) -> List["asyncio.Future[Any]"]:
        enqueue = self.scheduler.enqueue_for
        gen = run.generation

        async def get_sample(_: Any) -> DaySample:
            cached = self.store.get_cached(age)
            if cached is not None:
                self.sink.status(CACHE_HIT_STATUS)
                return cached
            return await self.search.get_sample_for_age(age, self.restriction)

        def store_sample(sample: DaySample) -> DaySample:
            return self.store.put(age, sample)

        def apply_filter(sample: DaySample) -> DaySample:
            if run.flt is None:
                return sample
            return sample.restrict(tuple(h for h in sample.hits if _accepts(run.flt, h)))

        def normalize_sample(sample: DaySample) -> Tuple[DaySample, List[NormalizedReport]]:
            return sample, normalize(sample, self.config.annotation_key)

        def aggregate_day(value: Tuple[DaySample, List[NormalizedReport]]) -> AggregateIndex:
            sample, reports = value
            if not self.colors and reports:
                self.versions = versions_involved(reports)
                self.colors = assign_colors(self.versions)
            return aggregate(
                run.index,
                reports,
                age,
                run.flt,
                total=sample.total,
            )

        def render_day(index: AggregateIndex) -> AggregateIndex:
            self.index = index
            self.view = build_view(
                index,
                self.config.days_back,
                self.colors,
                run.today,
                versions=self.versions,
                selected=self._selected(run.flt),
                report_url=self.config.report_url,
                max_links=self.config.max_links_per_day,
            )
            self.sink.render(self.view)
            return index

        async def finish_day(index: AggregateIndex) -> AggregateIndex:
            # Unfiltered runs hit the server; filter reruns only read the cache
            if run.flt is None and self.config.day_pause_ms:
                await self._sleep(self.config.day_pause_ms / 1000)
            return index

        return [
            enqueue(gen, f"Getting sample for day {age}", get_sample),
            enqueue(gen, "Storing sample", store_sample),
            enqueue(gen, "Applying filters", apply_filter),
            enqueue(gen, "Normalizing sample", normalize_sample),
            enqueue(gen, f"Aggregating day {age}", aggregate_day),
            enqueue(gen, f"Rendering day {age}", render_day),
            enqueue(gen, "Done for the day", finish_day),
        ]

    def _selected(self, flt: Optional[Filter]) -> Optional[List[str]]:
        if flt is not None:
            return flt.accepted_keys()
        if self.config.versions:
            return list(self.config.versions)
        return None


def _accepts(flt: Filter, hit: RawReport) -> bool:
    product = hit.get("product")
    version = hit.get("version")
    if not product or not version:
        # Left for the normalizer to reject
        return True
    return flt.get(str(product), str(version))

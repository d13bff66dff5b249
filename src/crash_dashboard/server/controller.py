"""Debounced run controller: turns page events into pipeline runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Iterable

from ..filters import Filter
from ..pipeline import DashboardPipeline
from ..search import Restriction
from .state import ServerState

logger = logging.getLogger(__name__)


class RunController:
    """Launch pipeline runs as asyncio tasks, coalescing filter changes.

    Rapid filter changes within ``debounce_seconds`` collapse into one run
    using the last selection. A newer run supersedes older ones through the
    pipeline's generations; only the latest task clears the loading flag.
    Must be used from the server's event loop.
    """

    def __init__(
        self,
        pipeline: DashboardPipeline,
        state: ServerState,
        debounce_seconds: float | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.state = state
        self.debounce_seconds = (
            pipeline.config.debounce_seconds if debounce_seconds is None else debounce_seconds
        )
        self._debounce: asyncio.Task | None = None
        self._latest: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    def start(self) -> asyncio.Task:
        """Launch the initial run."""
        return self.launch(None)

    def launch(self, flt: Filter | None) -> asyncio.Task:
        """Start a run with *flt* right away."""
        return self._spawn(self.pipeline.run(flt))

    def request_filter(self, selected: Iterable[str]) -> None:
        """Schedule a run filtered to *selected* after the debounce delay."""
        keys = list(selected)
        self._cancel_debounce()
        self._debounce = asyncio.ensure_future(self._debounced(keys))

    def request_restart(self, restriction: Restriction | None = None) -> asyncio.Task:
        """Drop cached days and start over right away."""
        self._cancel_debounce()
        return self._spawn(self.pipeline.restart(restriction))

    @property
    def pending(self) -> bool:
        return self._debounce is not None and not self._debounce.done()

    async def wait_idle(self) -> None:
        """Wait for the pending debounce and every launched run."""
        if self._debounce is not None:
            try:
                await self._debounce
            except asyncio.CancelledError:
                pass
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        """Cancel the pending debounce and outstanding runs, then close the pipeline."""
        self._cancel_debounce()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.pipeline.aclose()

    async def _debounced(self, keys: list[str]) -> None:
        await asyncio.sleep(self.debounce_seconds)
        logger.info("Filter changed: %d version(s) selected", len(keys))
        self.launch(self.pipeline.selection_filter(keys))

    def _cancel_debounce(self) -> None:
        if self._debounce is not None and not self._debounce.done():
            logger.debug("Coalescing filter change")
            self._debounce.cancel()
        self._debounce = None

    def _spawn(self, run: Awaitable[Any]) -> asyncio.Task:
        self.state.begin_loading()
        task = asyncio.ensure_future(self._guard(run))
        self._latest = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, run: Awaitable[Any]) -> Any:
        me = asyncio.current_task()
        try:
            return await run
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Run crashed")
            self.state.fail(exc)
            return None
        finally:
            if me is self._latest:
                self.state.finish_loading()

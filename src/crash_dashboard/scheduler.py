"""Serialized task queue with run generations for cancellation.

Every unit of pipeline work goes through one ``TaskScheduler``. Tasks run
strictly in submission order and each receives the result of the task
before it, so a pipeline value is threaded through the queue instead of
living in shared variables.

A *run* is one pass of the day loop. ``begin_run`` hands out a new
generation; work enqueued with ``enqueue_for`` under an older generation
turns into a no-op resolving to ``CANCELLED`` when its turn comes. In-flight
requests of a stale run still complete, their results are just dropped.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar, Union

logger = logging.getLogger(__name__)

R = TypeVar("R")
TaskFn = Callable[[Any], Union[R, Awaitable[R]]]


class _Cancelled:
    """Sentinel returned by work belonging to a superseded run."""

    _instance: Optional["_Cancelled"] = None

    def __new__(cls) -> "_Cancelled":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CANCELLED"

    def __bool__(self) -> bool:
        return False


CANCELLED = _Cancelled()


class TaskScheduler:
    """One logical queue of asynchronous tasks.

    Must be used from a running event loop. A task that raises fails its own
    awaitable and every awaitable queued after it for the same generation;
    the chain does not skip past a failure on its own. Work of a newer
    generation starts over from an older generation's failure. Call
    :meth:`reset` to start a fresh chain.
    """

    def __init__(self, status: Optional[Callable[[str], None]] = None) -> None:
        self._status = status or (lambda message: None)
        # Last queued task and the generation it was queued for
        self._tail: Optional[Tuple[asyncio.Future, Optional[int]]] = None
        self._generation = 0

    # ── Generations ──────────────────────────────────────────────

    def begin_run(self) -> int:
        """Start a new run; every older generation becomes stale."""
        self._generation += 1
        logger.debug("Starting run generation %d", self._generation)
        return self._generation

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ── Queue ────────────────────────────────────────────────────

    def enqueue(self, label: str, fn: TaskFn) -> "asyncio.Future[Any]":
        """Queue *fn* behind every task already submitted.

        *label* is published to the status sink right before *fn* runs.
        Returns a future resolving to *fn*'s result.
        """
        return self._append(label, fn, generation=None)

    def enqueue_for(self, generation: int, label: str, fn: TaskFn) -> "asyncio.Future[Any]":
        """Like :meth:`enqueue`, but skipped if *generation* is stale by then."""
        return self._append(label, fn, generation=generation)

    def reset(self) -> None:
        """Forget the current chain, e.g. after a failed task was handled."""
        self._tail = None

    async def drain(self) -> Any:
        """Wait for the last queued task and return its result."""
        if self._tail is None:
            return None
        return await asyncio.shield(self._tail[0])

    def _append(self, label: str, fn: TaskFn, generation: Optional[int]) -> "asyncio.Future[Any]":
        previous = self._tail
        task = asyncio.ensure_future(self._execute(previous, label, fn, generation))
        self._tail = (task, generation)
        return task

    async def _execute(
        self,
        previous: Optional[Tuple[asyncio.Future, Optional[int]]],
        label: str,
        fn: TaskFn,
        generation: Optional[int],
    ) -> Any:
        value = None
        failure: Optional[BaseException] = None
        if previous is not None:
            previous_task, previous_generation = previous
            try:
                value = await asyncio.shield(previous_task)
            except Exception as exc:
                # A failure only travels down the chain of the run that raised it
                if generation is None or previous_generation in (None, generation):
                    failure = exc
                else:
                    logger.debug(
                        "Ignoring failure of generation %s before '%s'",
                        previous_generation,
                        label,
                    )

        if generation is not None and not self.is_current(generation):
            logger.debug("Skipping '%s' for stale generation %d", label, generation)
            return CANCELLED
        if failure is not None:
            raise failure

        self._status(label)
        result = fn(value)
        if inspect.isawaitable(result):
            result = await result
        logger.debug("Done %s", label)
        return result

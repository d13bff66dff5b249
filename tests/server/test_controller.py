"""Tests for server.controller.RunController."""

from __future__ import annotations

import asyncio
import queue

from crash_dashboard.config import DashboardConfig
from crash_dashboard.filters import Filter
from crash_dashboard.search import Restriction
from crash_dashboard.server.controller import RunController
from crash_dashboard.server.state import ServerState


class FakePipeline:
    """Stands in for DashboardPipeline; records runs and restarts."""

    def __init__(self, debounce_ms: int = 20) -> None:
        self.config = DashboardConfig(debounce_ms=debounce_ms)
        self.versions = [("X", "1.0"), ("X", "2.0")]
        self.runs: list[Filter | None] = []
        self.restarts: list[Restriction | None] = []
        self.closed = False
        self.gate: asyncio.Event | None = None
        self.error: Exception | None = None

    async def run(self, flt=None):
        self.runs.append(flt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return "index"

    async def restart(self, restriction=None):
        self.restarts.append(restriction)
        return "index"

    def selection_filter(self, selected):
        return Filter.from_selection(self.versions, selected)

    async def aclose(self):
        self.closed = True


class TestRuns:
    def test_start_launches_unfiltered_run(self):
        pipeline = FakePipeline()
        state = ServerState()

        async def go():
            controller = RunController(pipeline, state)
            result = await controller.start()
            return result

        assert asyncio.run(go()) == "index"
        assert pipeline.runs == [None]
        assert not state.loading

    def test_loading_flag_spans_the_run(self):
        pipeline = FakePipeline()
        state = ServerState()
        seen = []

        async def go():
            pipeline.gate = asyncio.Event()
            controller = RunController(pipeline, state)
            task = controller.start()
            await asyncio.sleep(0)
            seen.append(state.loading)
            pipeline.gate.set()
            await task
            seen.append(state.loading)

        asyncio.run(go())
        assert seen == [True, False]

    def test_only_latest_run_clears_loading(self):
        pipeline = FakePipeline()
        state = ServerState()
        seen = []

        async def go():
            pipeline.gate = asyncio.Event()
            controller = RunController(pipeline, state)
            first = controller.start()
            await asyncio.sleep(0)
            pipeline.gate = None
            # The second run finishes first
            second = controller.launch(None)
            await second
            seen.append(state.loading)
            await controller.stop()
            return first

        first = asyncio.run(go())
        assert first.cancelled()
        assert seen == [False]

    def test_crash_reported_to_state(self):
        pipeline = FakePipeline()
        pipeline.error = RuntimeError("boom")
        state = ServerState()

        async def go():
            controller = RunController(pipeline, state)
            return await controller.start()

        assert asyncio.run(go()) is None
        assert state.get_error()["message"] == "boom"
        assert not state.loading

    def test_restart(self):
        pipeline = FakePipeline()
        restriction = Restriction(signatures=("~A",))

        async def go():
            controller = RunController(pipeline, ServerState())
            await controller.request_restart(restriction)

        asyncio.run(go())
        assert pipeline.restarts == [restriction]


class TestDebounce:
    def test_rapid_changes_coalesce(self):
        pipeline = FakePipeline(debounce_ms=20)

        async def go():
            controller = RunController(pipeline, ServerState())
            controller.request_filter(["X 1.0"])
            controller.request_filter(["X 2.0"])
            controller.request_filter(["X 1.0", "X 2.0"])
            assert controller.pending
            await controller.wait_idle()
            return controller

        controller = asyncio.run(go())
        assert not controller.pending
        assert len(pipeline.runs) == 1
        flt = pipeline.runs[0]
        assert flt.get("X", "1.0") and flt.get("X", "2.0")

    def test_last_selection_wins(self):
        pipeline = FakePipeline(debounce_ms=20)

        async def go():
            controller = RunController(pipeline, ServerState())
            controller.request_filter(["X 1.0"])
            await asyncio.sleep(0)
            controller.request_filter(["X 2.0"])
            await controller.wait_idle()

        asyncio.run(go())
        assert len(pipeline.runs) == 1
        assert pipeline.runs[0].get_accepts() == [("X", "2.0")]

    def test_explicit_debounce_override(self):
        pipeline = FakePipeline(debounce_ms=500)
        controller = RunController(pipeline, ServerState(), debounce_seconds=0.0)
        assert controller.debounce_seconds == 0.0
        assert RunController(pipeline, ServerState()).debounce_seconds == 0.5

    def test_restart_cancels_pending_filter(self):
        pipeline = FakePipeline(debounce_ms=50)

        async def go():
            controller = RunController(pipeline, ServerState())
            controller.request_filter(["X 1.0"])
            await controller.request_restart()
            await controller.wait_idle()

        asyncio.run(go())
        assert pipeline.runs == []
        assert pipeline.restarts == [None]

    def test_progress_done_sent_once(self):
        pipeline = FakePipeline()
        state = ServerState()
        q: queue.Queue = queue.Queue()
        state.add_listener(q)

        async def go():
            controller = RunController(pipeline, state)
            await controller.start()

        asyncio.run(go())
        messages = []
        while not q.empty():
            messages.append(q.get_nowait())
        assert [m["message"] for m in messages if m.get("phase") == "done"] == ["Done"]


class TestStop:
    def test_stop_closes_pipeline(self):
        pipeline = FakePipeline(debounce_ms=1000)

        async def go():
            controller = RunController(pipeline, ServerState())
            controller.request_filter(["X 1.0"])
            await controller.stop()
            return controller

        controller = asyncio.run(go())
        assert not controller.pending
        assert pipeline.closed
        assert pipeline.runs == []

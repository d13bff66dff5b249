"""Tests for the serialized TaskScheduler."""

import asyncio

import pytest

from crash_dashboard.scheduler import CANCELLED, TaskScheduler


def run(coro_fn):
    return asyncio.run(coro_fn())


class TestOrdering:
    def test_results_threaded_through_chain(self):
        async def go():
            scheduler = TaskScheduler()
            first = scheduler.enqueue("one", lambda prev: 1)
            second = scheduler.enqueue("two", lambda prev: prev + 1)
            third = scheduler.enqueue("three", lambda prev: prev * 10)
            return await asyncio.gather(first, second, third)

        assert run(go) == [1, 2, 20]

    def test_first_task_receives_none(self):
        async def go():
            return await TaskScheduler().enqueue("only", lambda prev: prev)

        assert run(go) is None

    def test_async_tasks_run_in_submission_order(self):
        order = []

        async def slow(prev):
            await asyncio.sleep(0.01)
            order.append("slow")
            return "slow"

        def fast(prev):
            order.append(f"fast after {prev}")
            return "fast"

        async def go():
            scheduler = TaskScheduler()
            scheduler.enqueue("slow", slow)
            return await scheduler.enqueue("fast", fast)

        assert run(go) == "fast"
        assert order == ["slow", "fast after slow"]

    def test_label_published_before_task(self):
        events = []

        async def go():
            scheduler = TaskScheduler(status=lambda m: events.append(("status", m)))
            scheduler.enqueue("Fetching", lambda prev: events.append(("run", "Fetching")))
            await scheduler.enqueue("Rendering", lambda prev: events.append(("run", "Rendering")))

        run(go)
        assert events == [
            ("status", "Fetching"),
            ("run", "Fetching"),
            ("status", "Rendering"),
            ("run", "Rendering"),
        ]

    def test_drain(self):
        async def go():
            scheduler = TaskScheduler()
            empty = await scheduler.drain()
            scheduler.enqueue("a", lambda prev: "a")
            scheduler.enqueue("b", lambda prev: prev + "b")
            return empty, await scheduler.drain()

        assert run(go) == (None, "ab")


class TestFailures:
    def test_failure_propagates_down_the_chain(self):
        called = []

        def boom(prev):
            raise ValueError("boom")

        async def go():
            scheduler = TaskScheduler()
            failing = scheduler.enqueue("boom", boom)
            later = scheduler.enqueue("later", lambda prev: called.append(prev))
            results = await asyncio.gather(failing, later, return_exceptions=True)
            return results

        results = run(go)
        assert all(isinstance(r, ValueError) for r in results)
        assert called == []

    def test_reset_starts_a_fresh_chain(self):
        def boom(prev):
            raise ValueError("boom")

        async def go():
            scheduler = TaskScheduler()
            failing = scheduler.enqueue("boom", boom)
            with pytest.raises(ValueError):
                await failing
            scheduler.reset()
            return await scheduler.enqueue("after", lambda prev: "ok")

        assert run(go) == "ok"


class TestGenerations:
    def test_generation_counter(self):
        scheduler = TaskScheduler()
        first = scheduler.begin_run()
        second = scheduler.begin_run()
        assert second == first + 1
        assert scheduler.is_current(second)
        assert not scheduler.is_current(first)

    def test_stale_work_is_skipped(self):
        called = []

        async def go():
            scheduler = TaskScheduler()
            old = scheduler.begin_run()
            blocker = asyncio.Event()

            async def wait(prev):
                await blocker.wait()
                return "fetched"

            in_flight = scheduler.enqueue_for(old, "fetch", wait)
            after = scheduler.enqueue_for(old, "render", lambda prev: called.append(prev))
            await asyncio.sleep(0)
            new = scheduler.begin_run()
            fresh = scheduler.enqueue_for(new, "render new", lambda prev: "new")
            blocker.set()
            return await asyncio.gather(in_flight, after, fresh)

        # The in-flight fetch still completes; what follows it is dropped
        assert run(go) == ["fetched", CANCELLED, "new"]
        assert called == []

    def test_task_not_started_when_stale_at_its_turn(self):
        called = []

        async def go():
            scheduler = TaskScheduler()
            gen = scheduler.begin_run()
            task = scheduler.enqueue_for(gen, "late", lambda prev: called.append(prev))
            scheduler.begin_run()
            return await task

        assert run(go) is CANCELLED
        assert called == []

    def test_stale_failure_does_not_poison_newer_run(self):
        def boom(prev):
            raise ValueError("stale failure")

        async def go():
            scheduler = TaskScheduler()
            old = scheduler.begin_run()
            blocker = asyncio.Event()

            async def wait_then_fail(prev):
                await blocker.wait()
                boom(prev)

            failing = scheduler.enqueue_for(old, "fetch", wait_then_fail)
            await asyncio.sleep(0)
            new = scheduler.begin_run()
            fresh = scheduler.enqueue_for(new, "fresh", lambda prev: "ok")
            blocker.set()
            return await asyncio.gather(failing, fresh, return_exceptions=True)

        failing, fresh = run(go)
        assert isinstance(failing, ValueError)
        assert fresh == "ok"

    def test_cancelled_is_falsy_singleton(self):
        assert not CANCELLED
        assert repr(CANCELLED) == "CANCELLED"
        assert type(CANCELLED)() is CANCELLED

"""Shared test fixtures for the crash dashboard tests."""

import itertools
import json
from datetime import date
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from crash_dashboard.config import DashboardConfig
from crash_dashboard.views import RenderSink

TODAY = date(2016, 10, 10)
BASE_URL = "https://crash.example/api/SuperSearch/"


@pytest.fixture
def today():
    """Fixed "today" so day ranges are deterministic."""
    return TODAY


@pytest.fixture
def config():
    """Fast config: no backoff delay or day pause, two days."""
    return DashboardConfig(
        base_url=BASE_URL,
        days_back=2,
        sample_size=50,
        sample_delay_ms=0,
        count_delay_ms=0,
        day_pause_ms=0,
    )


@pytest.fixture
def make_hit():
    """Factory for raw reports as the search API returns them."""
    counter = itertools.count()

    def factory(
        names=("A",),
        product: str = "X",
        version: str = "1.0",
        date: str = "2016-10-10T10:00:00+00:00",
        build_id: str = "20161010030204",
        channel: str = "release",
        stacks: Optional[Dict[str, List[str]]] = None,
        legacy: bool = False,
        uuid: Optional[str] = None,
    ) -> dict:
        if legacy:
            conditions = list(names)
        else:
            conditions = []
            for name in names:
                condition = {"name": name}
                if stacks and name in stacks:
                    condition["stack"] = stacks[name]
                conditions.append(condition)
        return {
            "uuid": uuid or f"uuid-{next(counter):04d}",
            "product": product,
            "version": version,
            "date": date,
            "build_id": build_id,
            "release_channel": channel,
            "async_shutdown_timeout": json.dumps(
                {"phase": "profile-before-change", "conditions": conditions}
            ),
        }

    return factory


class RecordingSink(RenderSink):
    """Sink remembering everything published to it."""

    def __init__(self) -> None:
        self.statuses: List[str] = []
        self.views: List[dict] = []
        self.failures: List[BaseException] = []

    def status(self, message: str) -> None:
        self.statuses.append(message)

    def render(self, view: dict) -> None:
        self.views.append(view)

    def fail(self, error: BaseException) -> None:
        self.failures.append(error)


@pytest.fixture
def sink():
    return RecordingSink()


def day_of(request: httpx.Request) -> str:
    """ISO day requested through the ``date>=`` parameter."""
    for value in request.url.params.get_list("date"):
        if value.startswith(">="):
            return value[2:]
    raise AssertionError(f"no day range in {request.url}")


@pytest.fixture
def search_api():
    """Build a MockTransport answering day queries from a dict.

    ``search_api(days, totals=None)`` returns ``(transport, requests)``;
    *days* maps ISO day to a list of hits.
    """

    def factory(days: Dict[str, list], totals: Optional[Dict[str, int]] = None):
        requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            day = day_of(request)
            hits = days.get(day, [])
            total = (totals or {}).get(day, len(hits))
            return httpx.Response(200, json={"total": total, "hits": hits})

        return httpx.MockTransport(handler), requests

    return factory


def responses(*items: httpx.Response) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler returning *items* in order."""
    queue = list(items)

    def handler(request: httpx.Request) -> httpx.Response:
        return queue.pop(0)

    return handler

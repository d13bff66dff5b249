"""Tests for the Starlette routes in server.app."""

from __future__ import annotations

import json

import pytest
from starlette.testclient import TestClient

from crash_dashboard.search import Restriction
from crash_dashboard.server.app import create_app
from crash_dashboard.server.state import ServerState


class FakeController:
    """Records what the routes ask for instead of running a pipeline."""

    debounce_seconds = 0.5

    def __init__(self) -> None:
        self.started = 0
        self.stopped = 0
        self.filters: list[list[str]] = []
        self.restarts: list[Restriction | None] = []

    def start(self) -> None:
        self.started += 1

    async def stop(self) -> None:
        self.stopped += 1

    def request_filter(self, selected) -> None:
        self.filters.append(list(selected))

    def request_restart(self, restriction=None) -> None:
        self.restarts.append(restriction)


@pytest.fixture
def state() -> ServerState:
    return ServerState()


@pytest.fixture
def controller() -> FakeController:
    return FakeController()


@pytest.fixture
def client(state, controller) -> TestClient:
    return TestClient(create_app(state, controller, ping_seconds=0.05))


class TestPages:
    def test_homepage(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "/ws" in response.text


class TestApiState:
    def test_loading_before_first_view(self, state, client):
        state.begin_loading()
        state.status("Fetching data for 2016-10-10")
        response = client.get("/api/state")
        assert response.status_code == 202
        assert response.json() == {
            "status": "loading",
            "message": "Fetching data for 2016-10-10",
            "error": None,
        }

    def test_error_before_first_view(self, state, client):
        state.fail(RuntimeError("boom"))
        body = client.get("/api/state").json()
        assert body["status"] == "idle"
        assert body["error"]["message"] == "boom"

    def test_snapshot(self, state, client):
        state.render({"signatures": [], "total_hits": 0})
        response = client.get("/api/state")
        assert response.status_code == 200
        assert response.json()["view"] == {"signatures": [], "total_hits": 0}
        assert response.json()["loading"] is False


class TestApiFilter:
    def test_schedules_filter(self, client, controller):
        response = client.post("/api/filter", json={"versions": ["X 1.0", "X 2.0"]})
        assert response.status_code == 202
        assert response.json() == {"status": "scheduled", "debounce_ms": 500}
        assert controller.filters == [["X 1.0", "X 2.0"]]

    def test_empty_selection_allowed(self, client, controller):
        assert client.post("/api/filter", json={"versions": []}).status_code == 202
        assert controller.filters == [[]]

    @pytest.mark.parametrize(
        "body",
        ['{"versions": "X 1.0"}', '{"versions": [1]}', "[]", "not json"],
    )
    def test_bad_body(self, client, controller, body):
        response = client.post(
            "/api/filter", content=body, headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert controller.filters == []

    def test_unavailable_without_controller(self, state):
        client = TestClient(create_app(state))
        assert client.post("/api/filter", json={"versions": []}).status_code == 503
        assert client.post("/api/restart").status_code == 503


class TestApiRestart:
    def test_plain_restart(self, client, controller):
        response = client.post("/api/restart")
        assert response.status_code == 202
        assert response.json() == {"status": "restart_started"}
        assert controller.restarts == [None]

    def test_restart_with_restriction(self, client, controller):
        response = client.post(
            "/api/restart",
            params=[("version", "Firefox 52.0a1"), ("signature", "~nsThread"), ("signature", "~Sync")],
        )
        assert response.status_code == 202
        assert controller.restarts == [
            Restriction(versions=("Firefox 52.0a1",), signatures=("~nsThread", "~Sync"))
        ]

    def test_rejected_signature_operator(self, client, controller):
        response = client.post("/api/restart", params={"signature": "~!nsThread"})
        assert response.status_code == 400
        assert response.json()["error"]["error_code"] == "CD302"
        assert controller.restarts == []

    def test_bad_integer(self, client, controller):
        response = client.post("/api/restart", params={"days_back": "soon"})
        assert response.status_code == 400
        assert response.json()["error"]["error_type"] == "InvalidConfigError"


class TestExport:
    def test_loading(self, client):
        assert client.get("/api/export/json").status_code == 202

    def test_download(self, state, client):
        state.render({"total_hits": 3})
        response = client.get("/api/export/json")
        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        assert json.loads(response.text) == {"total_hits": 3}


class TestLifespan:
    def test_starts_and_stops_controller(self, state, controller):
        with TestClient(create_app(state, controller)):
            assert controller.started == 1
        assert controller.stopped == 1

    def test_no_autostart(self, state, controller):
        with TestClient(create_app(state, controller, autostart=False)):
            assert controller.started == 0


class TestWebSocket:
    def test_sends_current_view_on_connect(self, state, client):
        state.render({"total_hits": 7})
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json() == {"type": "complete", "state": {"total_hits": 7}}

    def test_sends_error_on_connect(self, state, client):
        state.fail(RuntimeError("boom"))
        with client.websocket_connect("/ws") as ws:
            msg = ws.receive_json()
        assert msg["type"] == "error"
        assert msg["error"]["error_type"] == "RuntimeError"

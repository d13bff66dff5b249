"""Starlette ASGI application for the crash dashboard."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from ..config import page_overrides
from ..exceptions import ConfigurationError, InvalidArgumentError
from ..search import Restriction, signature_terms
from .controller import RunController
from .state import ServerState

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Cache template HTML after first read
_TEMPLATE_HTML: str | None = None


def _get_html() -> str:
    """Load the dashboard HTML template (cached after first read)."""
    global _TEMPLATE_HTML  # noqa: PLW0603
    if _TEMPLATE_HTML is None:
        _TEMPLATE_HTML = (_TEMPLATE_DIR / "index.html").read_text(encoding="utf-8")
    return _TEMPLATE_HTML


def create_app(
    state: ServerState,
    controller: RunController | None = None,
    ping_seconds: float = 30.0,
    autostart: bool = True,
) -> Starlette:
    """Build the Starlette application wired to *state*.

    Args:
        state: The shared server state holding the latest view
        controller: Launches runs; filter and restart endpoints answer 503
            without one
        ping_seconds: Keepalive interval of the WebSocket
        autostart: Launch the first run when the server starts
    """

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        if controller is not None and autostart:
            controller.start()
        yield
        if controller is not None:
            await controller.stop()

    async def homepage(request: Request) -> HTMLResponse:
        return HTMLResponse(_get_html())

    async def api_state(request: Request) -> JSONResponse:
        snapshot = state.snapshot()
        if snapshot["view"] is None:
            return JSONResponse(
                {
                    "status": "loading" if snapshot["loading"] else "idle",
                    "message": snapshot["status"],
                    "error": snapshot["error"],
                },
                status_code=202,
            )
        return JSONResponse(snapshot)

    async def api_filter(request: Request) -> JSONResponse:
        """Re-run with the checked versions. POST {"versions": [...]}"""
        if controller is None:
            return JSONResponse({"error": "Filtering not available"}, status_code=503)
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Body must be JSON"}, status_code=400)
        versions = body.get("versions") if isinstance(body, dict) else None
        if not isinstance(versions, list) or not all(isinstance(v, str) for v in versions):
            return JSONResponse(
                {"error": "Expected {\"versions\": [\"product version\", ...]}"},
                status_code=400,
            )
        controller.request_filter(versions)
        return JSONResponse(
            {"status": "scheduled", "debounce_ms": int(controller.debounce_seconds * 1000)},
            status_code=202,
        )

    async def api_restart(request: Request) -> JSONResponse:
        """Drop cached days and fetch again. POST /api/restart[?version=..&signature=~..]"""
        if controller is None:
            return JSONResponse({"error": "Restart not available"}, status_code=503)
        try:
            overrides = page_overrides(request.query_params)
            restriction = None
            if "versions" in overrides or "signatures" in overrides:
                restriction = Restriction(
                    versions=overrides.get("versions", ()),
                    signatures=overrides.get("signatures", ()),
                )
                signature_terms(restriction.signatures)
        except (ConfigurationError, InvalidArgumentError) as exc:
            return JSONResponse({"error": exc.to_json()}, status_code=400)
        controller.request_restart(restriction)
        return JSONResponse({"status": "restart_started"}, status_code=202)

    async def api_export_json(request: Request) -> Response:
        """Download the current view as JSON."""
        data = state.get_state()
        if data is None:
            return JSONResponse({"status": "loading"}, status_code=202)
        ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        return Response(
            content=json.dumps(data, indent=2),
            media_type="application/json",
            headers={
                "Content-Disposition": f'attachment; filename="crash-dashboard-{ts}.json"',
            },
        )

    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=32)
        state.add_listener(queue)
        try:
            # Send what we have so late joiners see the current view
            current = state.get_state()
            if current is not None:
                await websocket.send_json({"type": "complete", "state": current})
            error = state.get_error()
            if error is not None:
                await websocket.send_json({"type": "error", "error": error})

            while True:
                try:
                    msg = await asyncio.wait_for(queue.get(), timeout=ping_seconds)
                except asyncio.TimeoutError:
                    await websocket.send_json({"type": "ping"})
                    continue
                await websocket.send_json(msg)
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass
        except RuntimeError as exc:
            logger.debug("WebSocket error: %s", exc)
        finally:
            state.remove_listener(queue)

    routes = [
        Route("/", homepage),
        Route("/api/state", api_state),
        Route("/api/filter", api_filter, methods=["POST"]),
        Route("/api/restart", api_restart, methods=["POST"]),
        Route("/api/export/json", api_export_json),
        WebSocketRoute("/ws", websocket_endpoint),
    ]

    return Starlette(routes=routes, lifespan=lifespan)

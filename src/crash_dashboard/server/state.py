"""Shared dashboard state; the render sink of the served pipeline."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any

from ..views import RenderSink, error_view

logger = logging.getLogger(__name__)


class ServerState(RenderSink):
    """Holds the latest view, status line and failure for the dashboard.

    Pipeline tasks write through the :class:`RenderSink` methods, the
    Starlette handlers read via :meth:`get_state` and :meth:`snapshot`.
    Every change is broadcast to the registered WebSocket queues.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._state: dict[str, Any] | None = None
        self._status = ""
        self._error: dict[str, Any] | None = None
        self._loading = False
        self._listeners: list[Any] = []  # asyncio.Queue objects

    # ── RenderSink ───────────────────────────────────────────────

    def status(self, message: str) -> None:
        with self._lock:
            self._status = message
        self.send_progress(message, phase="loading" if self._loading else "")

    def render(self, view: dict[str, Any]) -> None:
        """Replace the current view and push it to every listener."""
        with self._lock:
            self._state = view
            self._error = None
            listeners = list(self._listeners)

        # State updates must not be dropped
        msg = {"type": "complete", "state": view}
        for queue in listeners:
            self._send_to_queue(queue, msg, is_state_update=True)

    def fail(self, error: BaseException) -> None:
        payload = error_view(error)
        with self._lock:
            self._error = payload
            self._loading = False
            self._status = f"Error: {payload['message']}"
            listeners = list(self._listeners)

        msg = {"type": "error", "error": payload}
        for queue in listeners:
            self._send_to_queue(queue, msg, is_state_update=True)

    # ── Loading indicator ────────────────────────────────────────

    def begin_loading(self) -> None:
        with self._lock:
            self._loading = True
            self._error = None

    def finish_loading(self) -> None:
        with self._lock:
            was_loading = self._loading
            self._loading = False
        if was_loading:
            self.send_progress("Done", phase="done", percent=1.0)

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    # ── Readers ──────────────────────────────────────────────────

    def get_state(self) -> dict[str, Any] | None:
        """Return the latest view (called from async handlers)."""
        with self._lock:
            return self._state

    def get_error(self) -> dict[str, Any] | None:
        with self._lock:
            return self._error

    def snapshot(self) -> dict[str, Any]:
        """Loading flag, status line, last error and view in one dict."""
        with self._lock:
            return {
                "loading": self._loading,
                "status": self._status,
                "error": self._error,
                "view": self._state,
            }

    # ── Listeners ────────────────────────────────────────────────

    def add_listener(self, queue: Any) -> None:
        """Register an asyncio.Queue to receive state updates."""
        with self._lock:
            self._listeners.append(queue)

    def remove_listener(self, queue: Any) -> None:
        with self._lock:
            try:
                self._listeners.remove(queue)
            except ValueError:
                pass

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def close_listeners(self) -> int:
        """Drop every listener; returns how many there were."""
        with self._lock:
            count = len(self._listeners)
            self._listeners.clear()
        return count

    def send_progress(self, message: str, phase: str = "", percent: float | None = None) -> None:
        """Broadcast a progress message to all WebSocket listeners."""
        msg: dict[str, Any] = {"type": "progress", "message": message, "phase": phase}
        if percent is not None:
            msg["percent"] = percent
        with self._lock:
            listeners = list(self._listeners)
        for queue in listeners:
            self._send_to_queue(queue, msg, is_state_update=False)

    def _send_to_queue(
        self, queue: Any, msg: dict[str, Any], is_state_update: bool = False
    ) -> bool:
        """Send message to queue with overflow handling.

        For state updates: drain old messages and send the latest.
        For progress: drop if the queue is full.
        """
        try:
            if queue.maxsize and queue.qsize() >= queue.maxsize - 1:
                if not is_state_update:
                    logger.debug("WebSocket queue full, dropping progress message")
                    return False
                drained = 0
                while not queue.empty():
                    try:
                        queue.get_nowait()
                        drained += 1
                    except asyncio.QueueEmpty:
                        break
                if drained:
                    logger.debug("Drained %d stale messages from WebSocket queue", drained)
            queue.put_nowait(msg)
            return True
        except asyncio.QueueFull:
            if is_state_update:
                logger.warning("WebSocket queue full even after drain - client may be disconnected")
            return False

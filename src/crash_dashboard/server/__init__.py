"""Live dashboard server: Starlette app, run controller and lifecycle."""

from __future__ import annotations

from .state import ServerState

__all__ = ["ServerState"]

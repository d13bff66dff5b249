"""Server lifecycle management: startup, running, and graceful shutdown.

Coordinates:
- Signal handling (SIGINT, SIGTERM)
- WebSocket listener cleanup
- Rich terminal status display
"""

from __future__ import annotations

import logging
import signal
import threading
import webbrowser
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import DashboardConfig
from ..logging_config import uvicorn_log_level
from .ports import find_available_port
from .state import ServerState

logger = logging.getLogger(__name__)


class ShutdownManager:
    """Coordinates graceful shutdown of the server.

    Ensures cleanup happens exactly once, even if called from
    multiple signal handlers. The pipeline's HTTP client and the pending
    debounce are closed by the application's lifespan hook.
    """

    def __init__(self, console: Console) -> None:
        self.console = console
        self._shutdown_lock = threading.Lock()
        self._shutdown_complete = False
        self._state: ServerState | None = None
        self._uvicorn_server: Any = None

    def register_state(self, state: ServerState) -> None:
        self._state = state

    def register_uvicorn(self, server: Any) -> None:
        self._uvicorn_server = server

    def shutdown(self) -> list[str]:
        """Perform full shutdown. Safe to call multiple times.

        Returns the steps taken, empty when already shut down.
        """
        with self._shutdown_lock:
            if self._shutdown_complete:
                return []
            self._shutdown_complete = True

        steps = []

        if self._state is not None:
            count = self._state.close_listeners()
            if count:
                steps.append(f"Closed WebSocket connections ({count} client{'s' if count != 1 else ''})")
            else:
                steps.append("No active WebSocket connections")

        if self._uvicorn_server is not None:
            self._uvicorn_server.should_exit = True
            steps.append("Signaled uvicorn to stop")

        self.console.print()
        for step in steps:
            self.console.print(f"  [green]OK[/green] {step}")
        self.console.print("  [green]OK[/green] Server stopped cleanly")
        self.console.print()
        return steps


def format_status_display(config: DashboardConfig, host: str, port: int) -> Panel:
    """Build the Rich panel summarizing the session."""
    table = Table(show_header=False, show_edge=False, box=None, padding=(0, 1))
    table.add_column("key", style="bold", width=14)
    table.add_column("value")

    url = f"http://{host}:{port}"
    table.add_row("Status:", "[green]Running[/green]")
    table.add_row("Search API:", config.base_url)
    table.add_row("Window:", f"{config.days_back} day(s), {config.sample_size} samples/day")
    table.add_row("Versions:", ", ".join(config.versions) or "[dim]all[/dim]")
    table.add_row("Signatures:", ", ".join(config.signatures) or "[dim]all[/dim]")
    table.add_row("Dashboard:", f"[link={url}]{url}[/link]")

    return Panel(
        table,
        title="[bold]Crash Dashboard Server[/bold]",
        border_style="cyan",
    )


def launch_server(
    config: DashboardConfig,
    console: Console,
    host: str = "127.0.0.1",
    port: int = 8766,
    no_browser: bool = False,
) -> None:
    """Full server lifecycle: startup, serve, shutdown.

    1. Finds an available port
    2. Wires state, pipeline and run controller
    3. Starts the ASGI server; the first run starts with it
    4. Handles shutdown gracefully
    """
    import uvicorn

    from ..pipeline import DashboardPipeline
    from .app import create_app
    from .controller import RunController

    try:
        actual_port = find_available_port(host, port)
    except RuntimeError as exc:
        console.print(f"[red]{exc}[/red]")
        return
    if actual_port != port:
        console.print(f"[yellow]Port {port} in use, using {actual_port} instead[/yellow]")

    shutdown_mgr = ShutdownManager(console)
    state = ServerState()
    shutdown_mgr.register_state(state)
    pipeline = DashboardPipeline(config, state)
    controller = RunController(pipeline, state)
    asgi_app = create_app(state, controller)

    url = f"http://{host}:{actual_port}"
    if not no_browser:
        threading.Timer(1.0, lambda: webbrowser.open(url)).start()

    console.print(format_status_display(config, host, actual_port))
    console.print("[dim]Ctrl+C to stop[/dim]")

    server = uvicorn.Server(
        uvicorn.Config(
            asgi_app,
            host=host,
            port=actual_port,
            log_level=uvicorn_log_level(config.verbosity),
        )
    )
    shutdown_mgr.register_uvicorn(server)

    # Installed before server.run() so we intercept first
    original_sigint = signal.getsignal(signal.SIGINT)
    original_sigterm = signal.getsignal(signal.SIGTERM)

    def _signal_handler(signum, frame):
        sig_name = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info("Received %s, initiating shutdown...", sig_name)
        console.print(f"\n[yellow]Received {sig_name}, stopping server...[/yellow]")
        server.should_exit = True

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        server.run()
    except SystemExit:
        pass
    except Exception as exc:
        logger.exception("Server error: %s", exc)
        console.print(f"[red]Server error:[/red] {exc}")
    finally:
        try:
            signal.signal(signal.SIGINT, original_sigint)
            signal.signal(signal.SIGTERM, original_sigterm)
        except (OSError, ValueError):
            pass  # Not in main thread
        shutdown_mgr.shutdown()

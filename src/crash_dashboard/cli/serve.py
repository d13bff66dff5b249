"""``crash-dashboard serve``: live dashboard in the browser."""

from pathlib import Path
from typing import List, Optional

import typer

from ..exceptions import CrashDashboardError
from ..logging_config import setup_logging
from . import app
from ._common import console, resolve_config


@app.command()
def serve(
    port: int = typer.Option(8766, help="Port to listen on"),
    host: str = typer.Option("127.0.0.1", help="Host to bind to"),
    days_back: Optional[int] = typer.Option(None, "--days-back", "-d", min=1, help="Days to fetch"),
    sample_size: Optional[int] = typer.Option(
        None, "--sample-size", "-n", min=1, help="Reports sampled per day"
    ),
    version: Optional[List[str]] = typer.Option(
        None, "--version", help="Restrict to a 'product version' (repeatable)"
    ),
    signature: Optional[List[str]] = typer.Option(
        None, "--signature", help="Restrict to '~text' signatures (repeatable)"
    ),
    no_browser: bool = typer.Option(False, "--no-browser", help="Don't open browser"),
    config: Optional[Path] = typer.Option(
        None, "-c", "--config", help="Configuration file (TOML)", exists=True, dir_okay=False
    ),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to a file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
) -> None:
    """Start a live dashboard fed by the crash search API.

    [bold cyan]Examples:[/bold cyan]

      crash-dashboard serve

      crash-dashboard serve --days-back 3 --version "Firefox 52.0a1"
    """
    try:
        settings = resolve_config(
            config=config,
            days_back=days_back,
            sample_size=sample_size,
            versions=version,
            signatures=signature,
            verbose=verbose,
        )
    except CrashDashboardError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    setup_logging(settings.verbosity, log_file=log_file)

    from ..server.lifecycle import launch_server

    launch_server(
        settings,
        console,
        host=host,
        port=port,
        no_browser=no_browser,
    )

"""``crash-dashboard report``: one-shot terminal summary of top signatures."""

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.table import Table

from ..config import DashboardConfig
from ..exceptions import CrashDashboardError
from ..logging_config import setup_logging
from ..pipeline import DashboardPipeline
from ..views import RenderSink
from . import app
from ._common import console, resolve_config


class ConsoleSink(RenderSink):
    """Render sink keeping the last view and mirroring status to a spinner."""

    def __init__(self, spinner: Any = None) -> None:
        self.spinner = spinner
        self.view: Optional[dict] = None
        self.error: Optional[BaseException] = None

    def status(self, message: str) -> None:
        if self.spinner is not None:
            self.spinner.update(f"[cyan]{message}")

    def render(self, view: dict) -> None:
        self.view = view

    def fail(self, error: BaseException) -> None:
        self.error = error


async def collect(config: DashboardConfig, sink: ConsoleSink, with_total: bool = False) -> Optional[int]:
    """Run the pipeline once; returns the server-wide total when asked."""
    pipeline = DashboardPipeline(config, sink)
    try:
        await pipeline.run()
        if with_total and sink.error is None:
            return await pipeline.fetch_total()
        return None
    finally:
        await pipeline.aclose()


def signature_table(view: dict, top: int) -> Table:
    table = Table(title="Top signatures", show_lines=False)
    table.add_column("Signature", overflow="fold")
    table.add_column("Hits", justify="right")
    table.add_column("Share", justify="right")
    table.add_column("Est. crashes", justify="right")
    table.add_column("Spotted in builds")

    for sig in view["signatures"][:top]:
        builds = "\n".join(f"{b['version']}: {b['dates']}" for b in sig["builds"])
        table.add_row(
            sig["signature"],
            str(sig["hits"]),
            f"{sig['share']:.1f}%",
            f"~{sig['estimate']}",
            builds or "-",
        )
    return table


@app.command()
def report(
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
    top: int = typer.Option(20, "--top", "-t", min=1, help="Signatures to show"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Also write the full view as JSON"
    ),
    show_total: bool = typer.Option(
        False, "--total", help="Also fetch the number of annotated reports overall"
    ),
    config: Optional[Path] = typer.Option(
        None, "-c", "--config", help="Configuration file (TOML)", exists=True, dir_okay=False
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Only log errors"),
) -> None:
    """
    Fetch the last days once and print the top signatures.

    [bold cyan]Examples:[/bold cyan]

      crash-dashboard report --days-back 3

      crash-dashboard report --signature "~nsThread" -o view.json
    """
    try:
        settings = resolve_config(
            config=config,
            days_back=days_back,
            sample_size=sample_size,
            versions=version,
            signatures=signature,
            verbose=verbose,
            quiet=quiet,
        )
    except CrashDashboardError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    logger = setup_logging(settings.verbosity)

    try:
        with console.status("[cyan]Starting...") as spinner:
            sink = ConsoleSink(spinner)
            total = asyncio.run(collect(settings, sink, with_total=show_total))
        if sink.error is not None:
            raise sink.error

    except CrashDashboardError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)

    except Exception as e:
        logger.exception("Unexpected error during report")
        console.print(f"[red]Unexpected error:[/red] {e}")
        if verbose:
            console.print_exception()
        raise typer.Exit(1)

    view = sink.view
    if view is None or not view["signatures"]:
        console.print("[yellow]No annotated crash reports found[/yellow]")
        raise typer.Exit(0)

    console.print(signature_table(view, top))
    console.print(
        f"[dim]{view['total_hits']} sampled report(s) over {view['days_loaded']} day(s)[/dim]"
    )
    if total is not None:
        console.print(f"[dim]{total} annotated report(s) on the server[/dim]")
    if output is not None:
        output.write_text(json.dumps(view, indent=2), encoding="utf-8")
        console.print(f"[green]View written to[/green] {output}")

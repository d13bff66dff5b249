"""CLI entry point: registers all subcommands."""

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="crash-dashboard",
    help="Crash Dashboard - live per-signature crash statistics",
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"crash-dashboard {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Sample crash reports day by day and bucket them by signature."""


# Import subcommands to register them
from .serve import serve as _serve  # noqa: F401, E402
from .report import report as _report  # noqa: F401, E402

"""Shared CLI helpers."""

from pathlib import Path
from typing import List, Optional

from rich.console import Console

from ..config import DashboardConfig, load_config

console = Console()


def resolve_config(
    config: Optional[Path] = None,
    days_back: Optional[int] = None,
    sample_size: Optional[int] = None,
    versions: Optional[List[str]] = None,
    signatures: Optional[List[str]] = None,
    verbose: bool = False,
    quiet: bool = False,
) -> DashboardConfig:
    """Build the configuration from CLI options."""
    return load_config(
        config_file=config,
        days_back=days_back,
        sample_size=sample_size,
        # An empty repeated option must not mask file values
        versions=tuple(versions) if versions else None,
        signatures=tuple(signatures) if signatures else None,
        verbose=verbose,
        quiet=quiet,
    )

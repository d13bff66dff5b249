"""
Logging configuration for the crash dashboard.

Levels follow ``DashboardConfig.verbosity``. The dashboard's own loggers,
the HTTP client and the ASGI server each get a level of their own.
"""

import logging
from typing import Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "crash_dashboard"

_LEVELS: Dict[str, int] = {
    "quiet": logging.ERROR,
    "normal": logging.WARNING,
    "verbose": logging.DEBUG,
}

# Third-party loggers per verbosity; httpx logs every request at INFO
_LIBRARY_LEVELS: Dict[str, Dict[str, int]] = {
    "quiet": {"httpx": logging.ERROR, "httpcore": logging.ERROR, "uvicorn": logging.ERROR},
    "normal": {"httpx": logging.WARNING, "httpcore": logging.WARNING, "uvicorn": logging.WARNING},
    "verbose": {"httpx": logging.INFO, "httpcore": logging.INFO, "uvicorn": logging.INFO},
}

_UVICORN_LEVELS = {"quiet": "error", "normal": "warning", "verbose": "info"}


def level_for(verbosity: str) -> int:
    """Logging level of the dashboard's own loggers for *verbosity*."""
    try:
        return _LEVELS[verbosity]
    except KeyError:
        raise ValueError(f"unknown verbosity {verbosity!r}") from None


def uvicorn_log_level(verbosity: str) -> str:
    """``log_level`` string handed to ``uvicorn.Config``."""
    level_for(verbosity)
    return _UVICORN_LEVELS[verbosity]


def setup_logging(verbosity: str = "normal", log_file: Optional[str] = None) -> logging.Logger:
    """
    Route log records to a rich stderr handler and optionally a file.

    Args:
        verbosity: "quiet", "normal" or "verbose", usually
            ``DashboardConfig.verbosity``
        log_file: Optional file path; records are appended

    Returns:
        The ``crash_dashboard`` logger
    """
    level = level_for(verbosity)
    verbose = verbosity == "verbose"

    handlers: list[logging.Handler] = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_show_locals=verbose,
            # Signatures and URLs contain brackets
            markup=False,
            show_path=verbose,
        )
    ]
    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True
    )

    for name, library_level in _LIBRARY_LEVELS[verbosity].items():
        logging.getLogger(name).setLevel(library_level)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the ``crash_dashboard`` namespace."""
    if name is None:
        return logging.getLogger(ROOT_LOGGER)
    if not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)

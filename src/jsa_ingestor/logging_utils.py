"""Logging setup helpers using Rich."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

# Libraries that log every statement or download at INFO.
QUIET_LOGGERS = ("sqlalchemy.engine", "astropy")


def setup_logging(level: str = "INFO", console: Optional[Console] = None) -> None:
    """Route ``jsa.ingestor.*`` records through a Rich handler on stderr."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=False,
        show_path=False,
        markup=False,
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

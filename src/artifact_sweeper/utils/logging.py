"""Logging utilities with Rich integration."""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False, level: Optional[int] = None) -> None:
    """Configure standard logging with a Rich handler writing to stderr."""

    if level is None:
        level = logging.DEBUG if verbose else logging.INFO
    console = Console(stderr=True)
    handler = RichHandler(console=console, show_time=True, show_path=False, markup=False)
    logging.basicConfig(level=level, handlers=[handler], format="%(message)s", force=True)
    # urllib3 logs every retry and connection at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a configured logger."""

    return logging.getLogger(name or __name__)


__all__ = ["configure_logging", "get_logger"]

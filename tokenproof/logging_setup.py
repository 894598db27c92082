"""Root logger setup for the CLI and server."""

from __future__ import annotations

import logging

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def configure_logging(level: str = "info") -> None:
    """Install a single stderr handler on the root logger at *level*."""
    logging.basicConfig(
        level=_LEVELS.get(level.lower(), logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )

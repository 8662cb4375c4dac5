"""Process-level logging configuration for the ``gpgmeh`` command."""

from __future__ import annotations

import logging
import os

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str | None = None, *, debug: bool = False) -> None:
    """Configure the root logger; ``GPGMEH_LOG_LEVEL`` is the fallback level."""
    name = "DEBUG" if debug else (level or os.getenv("GPGMEH_LOG_LEVEL", "WARNING")).upper()
    numeric = logging.getLevelName(name)
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    logging.basicConfig(level=numeric, format=_FORMAT)

#!/usr/bin/env python3
"""Logging utils **and** a small text-wrapping helper for the terminal views."""

from __future__ import annotations
import logging                           # Python stdlib logging framework
import sys                               # For stderr/stdout handles
from logging.handlers import RotatingFileHandler
from typing import List, Optional

__all__ = ["LOG", "configure_logging", "chunk"]

# Named logger shared by every module.  Handlers are attached once by the
# entry points through configure_logging(), never at import time.
LOG = logging.getLogger("udprelay")

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%H:%M:%S"


def configure_logging(
    level: int = logging.INFO,
    logfile: Optional[str] = "udprelay.log",
    console: bool = True,
) -> logging.Logger:
    """Attach console and/or rotating-file output to :data:`LOG`.

    Calling it again replaces the previous handlers instead of stacking them.

    Args:
        level: threshold for the ``udprelay`` logger.
        logfile: path of the rotating log (``None`` disables file output).
        console: also echo to stdout; the client turns this off so log lines
            don't garble the chat prompt.
    """
    LOG.setLevel(level)
    for handler in list(LOG.handlers):   # Idempotent re-configuration
        LOG.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    if console:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(fmt)
        LOG.addHandler(sh)

    if logfile:
        # Rotates once file hits 1 MiB, keeps 3 backups
        fh = RotatingFileHandler(
            logfile,
            maxBytes=1_048_576,
            backupCount=3,
            encoding="utf-8",
        )
        fh.setFormatter(fmt)
        LOG.addHandler(fh)

    if not LOG.handlers:
        LOG.addHandler(logging.NullHandler())

    return LOG


def chunk(text: str, width: int) -> List[str]:
    """Split ``text`` into consecutive pieces of at most ``width`` characters."""
    if width <= 0:
        raise ValueError("width must be positive")
    if not text:
        return [""]
    return [text[i:i + width] for i in range(0, len(text), width)]

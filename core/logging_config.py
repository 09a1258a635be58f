"""Logging setup shared by the MedRep command line and library entry points."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from core import app_paths

LOG_FILENAME = "medrep.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"

_LOG_PATH: Optional[Path] = None


def _has_handler(root: logging.Logger, kind: type, target: str) -> bool:
    for handler in root.handlers:
        if type(handler) is not kind:
            continue
        if kind is logging.FileHandler and getattr(handler, "baseFilename", None) == target:
            return True
        if kind is logging.StreamHandler and getattr(handler, "stream", None) is sys.stderr:
            return True
    return False


def configure_logging(
    level: int = logging.INFO,
    path: Optional[Path] = None,
    *,
    console: bool = False,
) -> Path:
    """Send log records to the MedRep log file.

    Parameters
    ----------
    level:
        Minimum level for the root logger. ``logging.INFO`` records sign-in,
        sheet discovery and writes; access tokens are never logged.
    path:
        Explicit log file. Defaults to ``medrep.log`` in the application log
        directory.
    console:
        Also echo records to ``stderr``. Used by ``app.py --verbose``.

    Returns
    -------
    pathlib.Path
        Location of the log file.
    """

    global _LOG_PATH

    root = logging.getLogger()
    if console and not _has_handler(root, logging.StreamHandler, ""):
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root.addHandler(stream_handler)

    if _LOG_PATH is not None:
        return _LOG_PATH

    log_file = path or app_paths.log_path(LOG_FILENAME)
    app_paths.ensure_directory(log_file.parent)

    root.setLevel(min(root.level or level, level))
    if not _has_handler(root, logging.FileHandler, str(log_file)):
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    # discovery cache warnings are noise for static discovery documents
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

    _LOG_PATH = log_file
    root.debug("Writing MedRep log to %s", log_file)
    return log_file


def get_log_path() -> Path:
    """Return the log file location, configuring logging on first use."""

    return _LOG_PATH if _LOG_PATH is not None else configure_logging()


__all__ = ["CONSOLE_FORMAT", "LOG_FILENAME", "LOG_FORMAT", "configure_logging", "get_log_path"]

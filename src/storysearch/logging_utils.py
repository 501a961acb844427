"""Logging setup for the storysearch command line.

Library modules only create loggers with ``logging.getLogger(__name__)``;
handlers are installed here, once per CLI run.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(levelname)s: %(message)s"
TRACE_FORMAT = "[%(asctime)s] [%(levelname)s] [%(threadName)s] [%(name)s] %(message)s"
TRACE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_log_level(log_level: int | str) -> int:
    """Return the numeric level for ``log_level``, falling back to INFO for unknown names."""
    if isinstance(log_level, int):
        return log_level
    resolved = logging.getLevelName(str(log_level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _attach(root: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)


def configure_logging(
    log_level: int | str,
    log_file: Optional[str] = None,
    trace_mode: bool = False,
) -> logging.Logger:
    """Replace the root handlers with a stderr handler and an optional file handler.

    Parameters
    ----------
    log_level : int | str
        Numeric logging level or level name (e.g., "INFO")
    log_file : str, optional
        File that receives a copy of every record. Missing parent directories
        are created.
    trace_mode : bool, default False
        Prefix each line with a timestamp, the thread and the logger name.
        Index rebuilds and scans usually run on a worker thread of the
        embedding application.

    Returns
    -------
    logging.Logger
        The configured root logger

    """
    level = resolve_log_level(log_level)
    if trace_mode:
        formatter = logging.Formatter(TRACE_FORMAT, datefmt=TRACE_DATE_FORMAT)
    else:
        formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    _attach(root, logging.StreamHandler(sys.stderr), level, formatter)

    if log_file:
        path = Path(log_file).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError as exc:
            root.warning("Could not open log file %s: %s", path, exc)
        else:
            _attach(root, file_handler, level, formatter)
            root.debug("Logging to file: %s", path)

    return root


__all__ = ["configure_logging", "resolve_log_level"]

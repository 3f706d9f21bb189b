"""Logging setup shared by every CalQ module.

The desktop shell launches the backend without a visible console, so besides
the stream handler the entrypoint can attach a rotating log file in the data
directory via configure_file_logging().
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final

_STREAM_ATTACHED: bool = False
_FILE_HANDLER: RotatingFileHandler | None = None
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"


def _resolve_level() -> int:
    level_name = os.getenv("CALQ_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Return a module logger; the root stream handler is attached once."""
    global _STREAM_ATTACHED

    level = _resolve_level()
    root = logging.getLogger()

    if not _STREAM_ATTACHED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        root.addHandler(handler)
        _STREAM_ATTACHED = True
    root.setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger


def configure_file_logging(
    log_path: Path, max_bytes: int = 1_000_000, backup_count: int = 3
) -> None:
    """
    Mirror all log output into a rotating file.

    Calling it again with another path replaces the previous file handler.

    Side Effects:
        - Creates the parent directory of log_path
        - Attaches a RotatingFileHandler to the root logger
    """
    global _FILE_HANDLER

    root = logging.getLogger()
    if _FILE_HANDLER is not None:
        root.removeHandler(_FILE_HANDLER)
        _FILE_HANDLER.close()

    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    root.addHandler(handler)
    _FILE_HANDLER = handler

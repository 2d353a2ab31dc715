"""Log handler setup for the relay process.

The relay runs unattended, usually under a service manager, so records go
to stderr and optionally to a size-rotated file named by ``log_file`` in
config.txt. The CLI configures logging twice: once from its flags so config
errors are visible, then again from the loaded RelayConfig. Handlers
installed here are tracked, and a later call replaces only those, leaving
handlers attached by anyone else on the root logger.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Per-request access lines would drown the relay's own output.
QUIET_LOGGERS = ("aiohttp.access",)

_installed: List[logging.Handler] = []


def coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level '{level}'")
    return numeric


def _build_handlers(log_file: Optional[Union[str, Path]]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        )

    formatter = logging.Formatter(LOG_FORMAT, LOG_DATEFMT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: Union[int, str] = "info",
    *,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Install the relay's handlers on the root logger at ``level``.

    Args:
        level: Level name from config.txt (``debug`` .. ``critical``) or a number.
        log_file: Optional path for a rotating log file; its directory is created.
    """
    numeric_level = coerce_level(level)
    root = logging.getLogger()

    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    for handler in _build_handlers(log_file):
        root.addHandler(handler)
        _installed.append(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["LOG_DATEFMT", "LOG_FORMAT", "coerce_level", "configure_logging"]

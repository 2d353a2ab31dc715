"""Process-wide plumbing: logging, config files, asyncio helpers."""

from .asyncio_utils import cancel_and_wait, create_logged_task
from .config_loader import ConfigLoader
from .logging_config import configure_logging
from .logging_utils import StructuredLogger, get_module_logger

__all__ = [
    "ConfigLoader",
    "StructuredLogger",
    "cancel_and_wait",
    "configure_logging",
    "create_logged_task",
    "get_module_logger",
]

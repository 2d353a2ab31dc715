"""Component-tagged loggers under the ``nmea_relay`` namespace.

Each relay component logs through ``get_module_logger("Broadcaster")`` and
the like. Records land on ``nmea_relay.<Component>`` and carry a
``[Component]`` prefix so output from the read loop, the NTP socket and the
API stays attributable when interleaved.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

NAMESPACE = "nmea_relay"
DEFAULT_COMPONENT = "Relay"


def _component_of(name: str) -> str:
    if name.startswith(NAMESPACE):
        return name[len(NAMESPACE):].lstrip(".") or DEFAULT_COMPONENT
    return name or DEFAULT_COMPONENT


class StructuredLogger:
    """Logger facade that prefixes every message with its component."""

    __slots__ = ("logger", "component")

    def __init__(self, logger: logging.Logger, component: Optional[str] = None) -> None:
        self.logger = logger
        self.component = component or _component_of(logger.name)

    @property
    def name(self) -> str:
        return self.logger.name

    def _emit(self, level: int, message: object, args: tuple, kwargs: dict) -> None:
        if not self.logger.isEnabledFor(level):
            return
        text = str(message)
        if args:
            try:
                text = text % args
            except (TypeError, ValueError):
                # A bad format string must never take down the read loop.
                text = f"{text} | args={' '.join(str(arg) for arg in args)}"
        self.logger.log(level, "[%s] %s", self.component, text, **kwargs)

    def debug(self, message: object, *args, **kwargs) -> None:
        self._emit(logging.DEBUG, message, args, kwargs)

    def info(self, message: object, *args, **kwargs) -> None:
        self._emit(logging.INFO, message, args, kwargs)

    def warning(self, message: object, *args, **kwargs) -> None:
        self._emit(logging.WARNING, message, args, kwargs)

    def error(self, message: object, *args, **kwargs) -> None:
        self._emit(logging.ERROR, message, args, kwargs)


LoggerLike = Union[StructuredLogger, logging.Logger, None]


def ensure_structured_logger(
    logger: LoggerLike, *, fallback_name: Optional[str] = None
) -> StructuredLogger:
    """Wrap a plain logger, or fall back to a namespaced module logger."""
    if isinstance(logger, StructuredLogger):
        return logger
    if isinstance(logger, logging.Logger):
        return StructuredLogger(logger)
    return get_module_logger(fallback_name)


def get_module_logger(name: Optional[str] = None) -> StructuredLogger:
    if not name:
        full_name = NAMESPACE
    elif name.startswith(NAMESPACE):
        full_name = name
    else:
        full_name = f"{NAMESPACE}.{name}"
    return StructuredLogger(logging.getLogger(full_name))


__all__ = [
    "LoggerLike",
    "StructuredLogger",
    "ensure_structured_logger",
    "get_module_logger",
]

"""Typed configuration for the relay."""

from __future__ import annotations

import ipaddress
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from nmea_relay.core.config_loader import ConfigLoader

from .constants import (
    DEFAULT_API_HOST,
    DEFAULT_API_PORT,
    DEFAULT_MAX_BUFFER_BYTES,
    DEFAULT_READ_CHUNK_SIZE,
    DEFAULT_SHUTDOWN_GRACE_S,
    PARITY_NAMES,
)
from .errors import ConfigurationInvalid

_TRUE_WORDS = ("true", "yes", "on", "1")
_FALSE_WORDS = ("false", "no", "off", "0")

REQUIRED_KEYS = (
    "serial_port",
    "baud_rate",
    "parity",
    "broadcast_ip",
    "broadcast_port",
    "ntp_port",
)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    raise ValueError(f"expected a boolean, got '{value}'")


def _parse_port(value: str) -> int:
    port = int(value, 10)
    if not 1 <= port <= 65535:
        raise ValueError(f"port {port} out of range 1-65535")
    return port


def _parse_positive_int(value: str) -> int:
    number = int(value, 10)
    if number <= 0:
        raise ValueError(f"expected a positive integer, got {number}")
    return number


def _parse_positive_float(value: str) -> float:
    number = float(value)
    if not number > 0:
        raise ValueError(f"expected a positive number, got {value}")
    return number


def _parse_parity(value: str) -> str:
    lowered = value.strip().lower()
    if lowered not in PARITY_NAMES:
        raise ValueError(f"expected one of {', '.join(PARITY_NAMES)}")
    return lowered


def _parse_ipv4(value: str) -> str:
    return str(ipaddress.IPv4Address(value.strip()))


def _parse_str(value: str) -> str:
    text = value.strip()
    if not text:
        raise ValueError("empty value")
    return text


def _parse_log_level(value: str) -> str:
    lowered = value.strip().lower()
    if lowered not in ("debug", "info", "warning", "error", "critical"):
        raise ValueError(f"unknown log level '{value}'")
    return lowered


_PARSERS: Dict[str, Callable[[str], Any]] = {
    "serial_port": _parse_str,
    "baud_rate": _parse_positive_int,
    "parity": _parse_parity,
    "broadcast_ip": _parse_ipv4,
    "broadcast_port": _parse_port,
    "ntp_port": _parse_port,
    "api_enabled": _parse_bool,
    "api_host": _parse_str,
    "api_port": _parse_port,
    "api_localhost_only": _parse_bool,
    "log_level": _parse_log_level,
    "log_file": str.strip,
    "max_buffer_bytes": _parse_positive_int,
    "read_chunk_size": _parse_positive_int,
    "shutdown_grace_s": _parse_positive_float,
    "ntp_standard_timestamp": _parse_bool,
    "require_checksum": _parse_bool,
}


@dataclass(frozen=True, slots=True)
class RelayConfig:
    """Validated relay settings.

    The six serial/network settings have no defaults; everything else does.
    """

    # Required
    serial_port: str
    baud_rate: int
    parity: str
    broadcast_ip: str
    broadcast_port: int
    ntp_port: int

    # HTTP surface
    api_enabled: bool = True
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    api_localhost_only: bool = True

    # Logging
    log_level: str = "info"
    log_file: str = ""

    # Ingestion
    max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    shutdown_grace_s: float = DEFAULT_SHUTDOWN_GRACE_S
    ntp_standard_timestamp: bool = False
    require_checksum: bool = False

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "RelayConfig":
        """Build a config from raw values (strings or already-typed).

        Raises:
            ConfigurationInvalid: listing every missing or invalid setting
        """
        problems: List[str] = []
        parsed: Dict[str, Any] = {}

        for key in REQUIRED_KEYS:
            raw = values.get(key)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                problems.append(f"missing required setting '{key}'")

        for key, parser in _PARSERS.items():
            raw = values.get(key)
            if raw is None or (isinstance(raw, str) and not raw.strip() and key in REQUIRED_KEYS):
                continue
            try:
                parsed[key] = parser(str(raw)) if not isinstance(raw, bool) else raw
            except ValueError as exc:
                problems.append(f"invalid value for '{key}' ({raw!r}): {exc}")

        if problems:
            raise ConfigurationInvalid(problems)

        return cls(**parsed)

    @classmethod
    def load(cls, config_path: Path, overrides: Optional[Mapping[str, Any]] = None) -> "RelayConfig":
        """Read ``config_path`` and apply non-None ``overrides`` on top.

        Raises:
            ConfigurationInvalid: the file cannot be read or decoded, or a
                setting is missing or invalid
        """
        try:
            values: Dict[str, Any] = dict(ConfigLoader.load(config_path))
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationInvalid(f"cannot read config file {config_path}: {exc}") from exc
        if overrides:
            values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.from_mapping(values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = ["REQUIRED_KEYS", "RelayConfig"]

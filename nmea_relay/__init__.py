"""NMEA relay: serial GPS sentences to UDP broadcast, GPS time over NTP."""

from __future__ import annotations

from importlib import metadata
from typing import Optional, Sequence

try:
    __version__ = metadata.version("nmea-relay")
except metadata.PackageNotFoundError:  # pragma: no cover - local dev
    __version__ = "0.0.0"


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Convenience wrapper that runs the CLI entry point."""
    from .cli.main import run as _run

    return _run(list(argv) if argv is not None else None)


__all__ = ["__version__", "run"]

"""Abstract read-only byte stream transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional


class BaseStreamTransport(ABC):
    """Read-only transport delivering raw byte chunks."""

    def __init__(self) -> None:
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    @abstractmethod
    async def connect(self) -> bool:
        """Open the device. Returns True on success."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the device."""

    @abstractmethod
    async def read_chunk(self, timeout: Optional[float] = None) -> bytes:
        """Return the bytes currently available (at least one byte)."""

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield chunks until the transport is disconnected."""
        while self.is_connected:
            yield await self.read_chunk()

    async def __aenter__(self) -> "BaseStreamTransport":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()


__all__ = ["BaseStreamTransport"]

"""Terminal transports that carry browser text to the remote peer."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque


# Legacy terminals expect the line feed before the carriage return.
LINE_ENDING = "\n\r"


class Terminal(ABC):
    """Strategy object that hides where browser output is delivered."""

    @abstractmethod
    def write(self, text: str) -> None:
        """Transmit ``text`` toward the remote terminal."""

    def writeln(self, text: str = "") -> None:
        self.write(text + LINE_ENDING)

    @abstractmethod
    def close(self) -> None:
        """Stop accepting output and hang up the connection."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether :meth:`close` has been requested."""


class LoopbackTerminal(Terminal):
    """In-memory terminal that records output for inspection."""

    def __init__(self) -> None:
        self._outbound: Deque[str] = deque()
        self._closed = False

    def write(self, text: str) -> None:
        if self._closed:
            raise ConnectionError("terminal closed")
        self._outbound.append(text)

    def collect_transmit(self) -> str:
        payload = "".join(self._outbound)
        self._outbound.clear()
        return payload

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed


class StreamTerminal(Terminal):
    """Bridge browser output onto an asyncio :class:`StreamWriter`."""

    def __init__(
        self,
        writer: asyncio.StreamWriter,
        *,
        encoding: str = "latin-1",
    ) -> None:
        self.writer = writer
        self.encoding = encoding
        self._closing = False

    def write(self, text: str) -> None:
        if not text or self._closing:
            return
        # A peer that hung up mid-transfer leaves the transport closing.
        if self.writer.is_closing():
            return
        self.writer.write(text.encode(self.encoding, errors="replace"))

    async def drain(self) -> None:
        if self._closing:
            return
        await self.writer.drain()

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        self.writer.close()

    @property
    def closed(self) -> bool:
        return self._closing

    async def wait_closed(self) -> None:
        self.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError:
            pass


__all__ = ["LINE_ENDING", "LoopbackTerminal", "StreamTerminal", "Terminal"]

"""XMODEM sender that streams a payload to the remote terminal."""

from __future__ import annotations

import asyncio
import logging
from enum import IntEnum
from typing import Protocol


LOGGER = logging.getLogger(__name__)


class TransferStatus(IntEnum):
    """Completion codes reported through :meth:`TransferListener.on_finished`."""

    SUCCESS = 0
    CANCELLED = 1
    RETRIES_EXHAUSTED = 2
    CONNECTION_LOST = 3
    NO_RECEIVER = 4


class TransferListener(Protocol):
    """Lifecycle signals emitted in order: ready, started, progress*, finished."""

    def on_ready(self, total_blocks: int) -> None:
        ...

    def on_started(self) -> None:
        ...

    def on_progress(self, signal: str, block: int) -> None:
        ...

    def on_finished(self, status: int) -> None:
        ...


class FileTransferError(RuntimeError):
    """Raised when a protocol-level failure interrupts a transfer."""

    def __init__(
        self, message: str, status: TransferStatus, *, notify_receiver: bool = False
    ) -> None:
        super().__init__(message)
        self.status = status
        self.notify_receiver = notify_receiver


# Why: compute the CRC-16 trailer receivers verify when they request CRC mode.
def _crc16_ccitt(payload: bytes) -> int:
    crc = 0
    for byte in payload:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc & 0xFFFF


# Why: support receivers that start with NAK and expect the 8-bit checksum.
def _checksum(payload: bytes) -> int:
    return sum(payload) & 0xFF


class XmodemSender:
    """Send-only XMODEM with 128-byte blocks and CRC-16 or checksum framing.

    The receiver picks the variant: ``C`` requests CRC-16 and NAK requests the
    original arithmetic checksum. Retransmission, timeouts and cancellation are
    handled here; callers only observe the listener signals.
    """

    SOH = 0x01
    EOT = 0x04
    ACK = 0x06
    NAK = 0x15
    CAN = 0x18
    CRC_REQUEST = ord("C")
    PAD = 0x1A

    BLOCK_SIZE = 128

    def __init__(
        self,
        *,
        max_retries: int = 10,
        start_timeout: float = 60.0,
        ack_timeout: float = 10.0,
    ) -> None:
        self.max_retries = max_retries
        self.start_timeout = start_timeout
        self.ack_timeout = ack_timeout

    @classmethod
    def block_count(cls, payload: bytes) -> int:
        # An empty payload still travels as a single padded block.
        return max(1, -(-len(payload) // cls.BLOCK_SIZE))

    def build_frame(self, payload: bytes, index: int, *, use_crc: bool) -> bytes:
        """Return the framed block ``index`` (0-based) of ``payload``."""

        size = self.BLOCK_SIZE
        block = payload[index * size : (index + 1) * size]
        if len(block) < size:
            block += bytes((self.PAD,)) * (size - len(block))
        number = (index + 1) & 0xFF
        header = bytes((self.SOH, number, 0xFF - number))
        if use_crc:
            crc = _crc16_ccitt(block)
            trailer = bytes(((crc >> 8) & 0xFF, crc & 0xFF))
        else:
            trailer = bytes((_checksum(block),))
        return header + block + trailer

    async def send(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        payload: bytes,
        listener: TransferListener,
    ) -> int:
        total = self.block_count(payload)
        listener.on_ready(total)
        try:
            use_crc = await self._await_receiver(reader)
            listener.on_started()
            for index in range(total):
                frame = self.build_frame(payload, index, use_crc=use_crc)
                await self._deliver(reader, writer, frame, f"block {index + 1}")
                listener.on_progress("SOH", index + 1)
            await self._deliver(reader, writer, bytes((self.EOT,)), "EOT")
            listener.on_progress("EOT", total)
        except FileTransferError as exc:
            LOGGER.warning("XMODEM transfer aborted: %s", exc)
            if exc.notify_receiver:
                await self._cancel(writer)
            status = exc.status
        except ConnectionError as exc:
            LOGGER.warning("XMODEM transfer lost its connection: %s", exc)
            status = TransferStatus.CONNECTION_LOST
        else:
            status = TransferStatus.SUCCESS
        listener.on_finished(int(status))
        return int(status)

    # Why: skip line noise until the receiver chooses CRC or checksum framing.
    async def _await_receiver(self, reader: asyncio.StreamReader) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.start_timeout
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise FileTransferError(
                    "receiver never requested the first block",
                    TransferStatus.NO_RECEIVER,
                    notify_receiver=True,
                )
            byte = await self._read_byte(reader, remaining)
            if byte == self.CRC_REQUEST:
                return True
            if byte == self.NAK:
                return False
            if byte == self.CAN:
                raise FileTransferError(
                    "receiver cancelled before the transfer started",
                    TransferStatus.CANCELLED,
                )
            # Anything else is line noise or leftover keystrokes.

    # Why: retransmit one frame until it is acknowledged or the retry budget runs out.
    async def _deliver(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        frame: bytes,
        label: str,
    ) -> None:
        failures = 0
        while True:
            writer.write(frame)
            await writer.drain()
            reply = await self._read_byte(reader, self.ack_timeout)
            if reply == self.ACK:
                return
            if reply == self.CAN:
                raise FileTransferError(
                    f"receiver cancelled at {label}", TransferStatus.CANCELLED
                )
            failures += 1
            LOGGER.debug("retransmitting %s (attempt %d)", label, failures + 1)
            if failures >= self.max_retries:
                raise FileTransferError(
                    f"{label} not acknowledged after {failures} attempts",
                    TransferStatus.RETRIES_EXHAUSTED,
                    notify_receiver=True,
                )

    # Why: turn a quiet line into a retry and a closed stream into a lost connection.
    async def _read_byte(
        self, reader: asyncio.StreamReader, timeout: float
    ) -> int | None:
        try:
            data = await asyncio.wait_for(reader.read(1), timeout)
        except asyncio.TimeoutError:
            return None
        if not data:
            raise FileTransferError(
                "remote peer closed stream during transfer",
                TransferStatus.CONNECTION_LOST,
            )
        return data[0]

    # Why: tell the receiver to abort so it does not wait for blocks that never come.
    async def _cancel(self, writer: asyncio.StreamWriter) -> None:
        if writer.is_closing():
            return
        writer.write(bytes((self.CAN, self.CAN)))
        try:
            await writer.drain()
        except ConnectionError:
            LOGGER.debug("connection closed while sending cancel")


__all__ = [
    "FileTransferError",
    "TransferListener",
    "TransferStatus",
    "XmodemSender",
]

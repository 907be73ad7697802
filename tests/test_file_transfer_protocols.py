from __future__ import annotations

import asyncio

from xfer.runtime.file_transfer_protocols import TransferStatus, XmodemSender

ACK = b"\x06"
NAK = b"\x15"
CAN = b"\x18"
EOT = b"\x04"


# Why: mirror the runtime CRC routine for validating Xmodem frames.
def _crc16(payload: bytes) -> int:
    crc = 0
    for byte in payload:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc & 0xFFFF


def _crc_frame(number: int, data: bytes) -> bytes:
    padded = data + bytes((0x1A,)) * (128 - len(data))
    crc = _crc16(padded)
    return (
        bytes((0x01, number, 0xFF - number))
        + padded
        + bytes(((crc >> 8) & 0xFF, crc & 0xFF))
    )


class _RecordingWriter:
    def __init__(self) -> None:
        self.buffer = bytearray()
        self.closing = False

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def is_closing(self) -> bool:
        return self.closing


class _RecordingListener:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def on_ready(self, total_blocks: int) -> None:
        self.events.append(("ready", total_blocks))

    def on_started(self) -> None:
        self.events.append(("started",))

    def on_progress(self, signal: str, block: int) -> None:
        self.events.append(("progress", signal, block))

    def on_finished(self, status: int) -> None:
        self.events.append(("finished", status))


def _exchange(
    payload: bytes,
    replies: bytes,
    *,
    eof: bool = False,
    sender: XmodemSender | None = None,
) -> tuple[int, bytes, list[tuple]]:
    listener = _RecordingListener()
    writer = _RecordingWriter()
    engine = sender or XmodemSender(ack_timeout=0.05, start_timeout=0.2)

    async def _exercise() -> int:
        reader = asyncio.StreamReader()
        reader.feed_data(replies)
        if eof:
            reader.feed_eof()
        return await engine.send(reader, writer, payload, listener)

    status = asyncio.run(_exercise())
    return status, bytes(writer.buffer), listener.events


def test_block_count_rounds_up_and_never_drops_to_zero() -> None:
    assert XmodemSender.block_count(b"") == 1
    assert XmodemSender.block_count(b"A" * 128) == 1
    assert XmodemSender.block_count(b"A" * 129) == 2


# Why: ensure Xmodem framing matches the CRC-16 block layout receivers expect.
def test_crc_transfer_sends_expected_frames_and_signals() -> None:
    status, sent, events = _exchange(b"hello", b"C" + ACK + ACK)

    assert status == TransferStatus.SUCCESS
    assert sent == _crc_frame(1, b"hello") + EOT
    assert events == [
        ("ready", 1),
        ("started",),
        ("progress", "SOH", 1),
        ("progress", "EOT", 1),
        ("finished", 0),
    ]


def test_nak_start_selects_checksum_framing() -> None:
    payload = b"ABC"
    status, sent, _ = _exchange(payload, NAK + ACK + ACK)

    padded = payload + bytes((0x1A,)) * 125
    assert status == 0
    assert sent == bytes((0x01, 0x01, 0xFE)) + padded + bytes((sum(padded) & 0xFF,)) + EOT


def test_noise_before_start_request_is_skipped() -> None:
    status, sent, _ = _exchange(b"hi", b"\r\n\x00C" + ACK + ACK)

    assert status == 0
    assert sent.startswith(_crc_frame(1, b"hi"))


def test_multiple_blocks_are_numbered_sequentially() -> None:
    payload = bytes(range(256)) + b"tail"
    status, sent, events = _exchange(payload, b"C" + ACK * 4)

    assert status == 0
    assert sent == (
        _crc_frame(1, payload[:128])
        + _crc_frame(2, payload[128:256])
        + _crc_frame(3, payload[256:])
        + EOT
    )
    assert [event for event in events if event[0] == "progress"] == [
        ("progress", "SOH", 1),
        ("progress", "SOH", 2),
        ("progress", "SOH", 3),
        ("progress", "EOT", 3),
    ]


def test_nak_triggers_retransmission() -> None:
    status, sent, _ = _exchange(b"hello", b"C" + NAK + ACK + ACK)

    frame = _crc_frame(1, b"hello")
    assert status == 0
    assert sent == frame + frame + EOT


def test_receiver_cancel_stops_transfer() -> None:
    status, sent, events = _exchange(b"hello", b"C" + CAN)

    assert status == TransferStatus.CANCELLED
    assert sent == _crc_frame(1, b"hello")
    assert events[-1] == ("finished", 1)


def test_retry_limit_cancels_receiver() -> None:
    sender = XmodemSender(max_retries=2, ack_timeout=0.05, start_timeout=0.2)
    status, sent, events = _exchange(b"hello", b"C" + NAK + NAK, sender=sender)

    frame = _crc_frame(1, b"hello")
    assert status == TransferStatus.RETRIES_EXHAUSTED
    assert sent == frame + frame + CAN + CAN
    assert events[-1] == ("finished", 2)


def test_closed_connection_reports_connection_lost() -> None:
    status, _, events = _exchange(b"hello", b"C", eof=True)

    assert status == TransferStatus.CONNECTION_LOST
    assert ("started",) in events
    assert events[-1] == ("finished", 3)


def test_silent_receiver_times_out() -> None:
    status, sent, events = _exchange(b"hello", b"")

    assert status == TransferStatus.NO_RECEIVER
    assert sent == CAN + CAN
    assert events == [("ready", 1), ("finished", 4)]

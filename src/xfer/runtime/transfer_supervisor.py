"""Bridge between browsing sessions and the XMODEM sender."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Protocol

from ..session import Session
from .file_transfer_protocols import TransferStatus, XmodemSender
from .transports import Terminal


LOGGER = logging.getLogger(__name__)

CompletionCallback = Callable[[int], None]
Clock = Callable[[], float]

PROGRESS_REPORT_INTERVAL = 5.0
PROGRESS_SIGNAL = "SOH"


class TransferEngine(Protocol):
    """Block-transfer engine driven by :class:`TransferSupervisor`."""

    BLOCK_SIZE: int

    def send(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        payload: bytes,
        listener: "TransferSupervisor",
    ) -> Awaitable[int]:
        ...


def format_progress_report(
    transferred: int, total: int, elapsed: float, block_size: int
) -> str:
    """Render the operator log line for ``transferred`` of ``total`` blocks."""

    remaining_blocks = total - transferred
    seconds_per_block = elapsed / transferred
    seconds_remaining = round(remaining_blocks * seconds_per_block)
    minutes_left, seconds_left = divmod(seconds_remaining, 60)
    bytes_per_second = round((transferred * block_size) / elapsed)
    eta = f"{minutes_left}min {seconds_left}sec" if minutes_left else f"{seconds_left}sec"
    return (
        f"Transferred {transferred} of {total} blocks - "
        f"{bytes_per_second}B/sec - ETA: {eta}"
    )


class TransferSupervisor:
    """Run one transfer at a time for a connection and report its outcome.

    The supervisor subscribes itself to the engine's lifecycle signals, keeps
    the session's transfer metrics current and rate-limits progress logging.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: asyncio.StreamWriter | None = None,
        *,
        terminal: Terminal | None = None,
        engine_factory: Callable[[], TransferEngine] = XmodemSender,
        clock: Clock = time.monotonic,
        report_interval: float = PROGRESS_REPORT_INTERVAL,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.terminal = terminal
        self.engine_factory = engine_factory
        self.clock = clock
        self.report_interval = report_interval
        self.progress_reports: list[str] = []
        self._session: Session | None = None
        self._file_path: Path | None = None
        self._on_complete: CompletionCallback | None = None
        self._block_size = XmodemSender.BLOCK_SIZE
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return self._on_complete is not None

    def start(
        self, session: Session, file_path: Path, on_complete: CompletionCallback
    ) -> None:
        """Load ``file_path`` and hand it to a fresh engine on the running loop."""

        if self.active:
            raise RuntimeError("a transfer is already running for this session")
        self._session = session
        self._file_path = file_path
        self._on_complete = on_complete
        session.transfer_metrics.reset()

        try:
            payload = Path(file_path).read_bytes()
        except OSError as exc:
            LOGGER.warning("Unable to read %s: %s", file_path, exc)
            if self.terminal is not None:
                self.terminal.writeln(f"Unable to read {file_path}")
            self.on_finished(int(TransferStatus.CANCELLED))
            return

        engine = self.engine_factory()
        self._block_size = getattr(engine, "BLOCK_SIZE", XmodemSender.BLOCK_SIZE)
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(engine, payload))

    async def wait(self) -> None:
        """Wait until the running transfer, if any, has reported completion."""

        task = self._task
        if task is not None:
            await asyncio.shield(task)

    def cancel(self) -> None:
        """Abandon a running transfer without notifying the session."""

        task = self._task
        self._on_complete = None
        if task is not None and not task.done():
            task.cancel()

    # Why: guarantee exactly one completion report however the engine exits.
    async def _run(self, engine: TransferEngine, payload: bytes) -> None:
        try:
            status = await engine.send(self.reader, self.writer, payload, self)
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.exception("Transfer engine failed for %s", self._file_path)
            status = int(TransferStatus.CONNECTION_LOST)
        finally:
            self._task = None
        if self.active:
            # The engine returned without emitting its finished signal.
            self.on_finished(int(status))

    # Engine lifecycle signals -----------------------------------------------

    def on_ready(self, total_blocks: int) -> None:
        LOGGER.info("Waiting for client to start XMODEM protocol...")
        if self._session is not None:
            self._session.transfer_metrics.total_blocks = total_blocks

    def on_started(self) -> None:
        now = self.clock()
        if self._session is not None:
            metrics = self._session.transfer_metrics
            metrics.started_at = now
            metrics.last_reported_at = now
            metrics.transferred_blocks = 0
        LOGGER.info("Transfer started for %s", self._file_path)

    def on_progress(self, signal: str, block: int) -> None:
        if self._session is None:
            return
        metrics = self._session.transfer_metrics
        now = self.clock()
        if now - metrics.last_reported_at < self.report_interval:
            return
        if signal != PROGRESS_SIGNAL:
            return
        elapsed = now - metrics.started_at
        if block <= 0 or elapsed <= 0:
            return
        report = format_progress_report(
            block, metrics.total_blocks, elapsed, self._block_size
        )
        LOGGER.info(report)
        self.progress_reports.append(report)
        metrics.transferred_blocks = block
        metrics.last_reported_at = now

    def on_finished(self, status: int) -> None:
        callback = self._on_complete
        if callback is None:
            return
        self._on_complete = None
        if status == 0:
            LOGGER.info("Transfer of %s completed successfully", self._file_path)
        else:
            LOGGER.info("Transfer stopped with exit code %s", status)
        self._session = None
        self._file_path = None
        callback(status)


__all__ = [
    "PROGRESS_REPORT_INTERVAL",
    "TransferEngine",
    "TransferSupervisor",
    "format_progress_report",
]

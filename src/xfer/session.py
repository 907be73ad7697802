"""Per-connection session state shared by the runtime modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from pathlib import Path


class SessionMode(Enum):
    """Modes that govern how inbound bytes are interpreted."""

    NAVIGATE = auto()
    CONFIRM_TRANSFER = auto()
    TRANSFERRING = auto()


@dataclass
class TransferMetrics:
    """Progress bookkeeping for the active transfer, in protocol blocks."""

    total_blocks: int = 0
    transferred_blocks: int = 0
    started_at: float = 0.0
    last_reported_at: float = 0.0

    def reset(self) -> None:
        self.total_blocks = 0
        self.transferred_blocks = 0
        self.started_at = 0.0
        self.last_reported_at = 0.0


@dataclass
class Session:
    """Mutable state for one accepted connection, discarded on disconnect."""

    current_path: Path
    mode: SessionMode = SessionMode.NAVIGATE
    pending_selection: Path | None = None
    input_buffer: str = ""
    transfer_metrics: TransferMetrics = field(default_factory=TransferMetrics)

    def begin_confirmation(self, selection: Path) -> None:
        self.pending_selection = selection
        self.mode = SessionMode.CONFIRM_TRANSFER

    def begin_transfer(self) -> None:
        if self.pending_selection is None:
            raise RuntimeError("no file selected for transfer")
        self.transfer_metrics.reset()
        self.mode = SessionMode.TRANSFERRING

    def return_to_navigation(self) -> None:
        """Drop any selection and transfer state and resume browsing."""

        self.pending_selection = None
        self.transfer_metrics.reset()
        self.mode = SessionMode.NAVIGATE


__all__ = ["Session", "SessionMode", "TransferMetrics"]

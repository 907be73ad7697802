"""Line assembly for the numeric selection prompt."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable


EchoCallable = Callable[[str], None]

LINE_TERMINATORS = frozenset({"\r", "\n"})
ERASE_CHARACTERS = frozenset({"\b", "\x7f"})
ERASE_SEQUENCE = "\b \b"


class InputKind(Enum):
    """Outcome of feeding one chunk into :class:`LineInputReader`."""

    NOOP = auto()
    COMMAND = auto()
    SUBMISSION = auto()


class BrowserCommand(Enum):
    """Single-key commands honoured without a line terminator."""

    EXIT = auto()
    REFRESH = auto()


@dataclass(frozen=True)
class InputEvent:
    kind: InputKind
    command: BrowserCommand | None = None
    text: str = ""


NOOP_EVENT = InputEvent(InputKind.NOOP)

_COMMAND_PREFIXES: tuple[tuple[str, BrowserCommand], ...] = (
    ("x", BrowserCommand.EXIT),
    ("r", BrowserCommand.REFRESH),
)


class LineInputReader:
    """Turn raw terminal chunks into commands and submitted digit strings.

    The remote terminal does not echo locally, so every accepted digit and
    every erase is written back through ``echo``. A chunk yields at most one
    event: characters trailing a line terminator in the same chunk are dropped.
    """

    def __init__(self, echo: EchoCallable) -> None:
        self._echo = echo
        self._buffer: list[str] = []

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def feed(self, chunk: str) -> InputEvent:
        if not chunk:
            return NOOP_EVENT

        command = self._match_command(chunk)
        if command is not None:
            self._buffer.clear()
            return InputEvent(InputKind.COMMAND, command=command)

        for char in chunk:
            if char in LINE_TERMINATORS:
                submitted = "".join(self._buffer)
                self._buffer.clear()
                return InputEvent(InputKind.SUBMISSION, text=submitted)
            if char in ERASE_CHARACTERS:
                if self._buffer:
                    self._buffer.pop()
                    self._echo(ERASE_SEQUENCE)
                continue
            if "0" <= char <= "9":
                self._buffer.append(char)
                self._echo(char)
        return NOOP_EVENT

    # Why: commands are recognised on the whole chunk before any digit handling.
    @staticmethod
    def _match_command(chunk: str) -> BrowserCommand | None:
        normalised = chunk.strip().lower()
        for prefix, command in _COMMAND_PREFIXES:
            if normalised.startswith(prefix):
                return command
        return None


__all__ = [
    "BrowserCommand",
    "ERASE_SEQUENCE",
    "InputEvent",
    "InputKind",
    "LineInputReader",
]

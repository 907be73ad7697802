from __future__ import annotations

import pytest

from xfer.runtime.line_input import (
    ERASE_SEQUENCE,
    BrowserCommand,
    InputEvent,
    InputKind,
    LineInputReader,
)


def _reader() -> tuple[LineInputReader, list[str]]:
    echoed: list[str] = []
    return LineInputReader(echoed.append), echoed


def test_digits_are_echoed_and_submitted_on_carriage_return() -> None:
    reader, echoed = _reader()

    assert reader.feed("1").kind is InputKind.NOOP
    event = reader.feed("2\r\n")

    assert event == InputEvent(InputKind.SUBMISSION, text="12")
    assert echoed == ["1", "2"]
    assert reader.buffer == ""


def test_line_feed_alone_submits_empty_line() -> None:
    reader, echoed = _reader()

    assert reader.feed("\n") == InputEvent(InputKind.SUBMISSION, text="")
    assert echoed == []


def test_characters_after_terminator_are_dropped() -> None:
    reader, echoed = _reader()

    event = reader.feed("3\r45")

    assert event.text == "3"
    assert echoed == ["3"]
    assert reader.buffer == ""
    assert reader.feed("\r").text == ""


@pytest.mark.parametrize("erase", ["\b", "\x7f"])
def test_backspace_removes_last_digit_and_echoes_erase(erase: str) -> None:
    reader, echoed = _reader()

    reader.feed("12" + erase)

    assert reader.buffer == "1"
    assert echoed == ["1", "2", ERASE_SEQUENCE]


def test_backspace_on_empty_buffer_is_noop() -> None:
    reader, echoed = _reader()

    assert reader.feed("\b\x7f").kind is InputKind.NOOP
    assert reader.buffer == ""
    assert echoed == []


def test_non_digit_characters_are_ignored_silently() -> None:
    reader, echoed = _reader()

    reader.feed("a1-?2 ")

    assert reader.buffer == "12"
    assert echoed == ["1", "2"]


@pytest.mark.parametrize(
    ("chunk", "command"),
    [
        ("x\r\n", BrowserCommand.EXIT),
        ("  X", BrowserCommand.EXIT),
        ("xyz\r\n", BrowserCommand.EXIT),
        ("r\r\n", BrowserCommand.REFRESH),
        ("R", BrowserCommand.REFRESH),
    ],
)
def test_commands_are_intercepted_without_terminator(
    chunk: str, command: BrowserCommand
) -> None:
    reader, echoed = _reader()
    reader.feed("42")
    echoed.clear()

    event = reader.feed(chunk)

    assert event == InputEvent(InputKind.COMMAND, command=command)
    assert reader.buffer == ""
    assert echoed == []


def test_command_letter_inside_digits_is_not_a_command() -> None:
    reader, _ = _reader()

    event = reader.feed("1x\r")

    assert event == InputEvent(InputKind.SUBMISSION, text="1")


def test_word_not_starting_with_command_letter_submits_buffered_digits() -> None:
    reader, echoed = _reader()
    reader.feed("42")
    echoed.clear()

    event = reader.feed("exit\r\n")

    assert event == InputEvent(InputKind.SUBMISSION, text="42")
    assert reader.buffer == ""
    assert echoed == []

"""Per-connection state machine that browses directories and starts transfers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Protocol

from ..config import ServerConfig
from ..filesystem import DirectoryLister, DirectoryListing, DirectoryReadError
from ..session import Session, SessionMode
from .line_input import BrowserCommand, InputEvent, InputKind, LineInputReader
from .transports import Terminal


LOGGER = logging.getLogger(__name__)

DIRECTORY_PREFIX = "<D>"
FILE_PREFIX = "." * len(DIRECTORY_PREFIX)


class TransferStarter(Protocol):
    """Collaborator that runs a confirmed transfer and reports its status."""

    def start(
        self, session: Session, file_path: Path, on_complete: Callable[[int], None]
    ) -> None:
        ...


@dataclass
class FileBrowser:
    """Drive one session through the navigate, confirm and transfer modes.

    Input only has meaning in the mode that receives it: digits and commands
    while navigating, a yes/no answer while confirming, nothing at all while a
    transfer is running.
    """

    config: ServerConfig
    terminal: Terminal
    transfers: TransferStarter
    lister: DirectoryLister = field(default_factory=DirectoryLister)
    session: Session = field(init=False)
    _reader: LineInputReader = field(init=False)

    def __post_init__(self) -> None:
        self.session = Session(current_path=self.config.root)
        self._reader = LineInputReader(self.terminal.write)

    @property
    def mode(self) -> SessionMode:
        return self.session.mode

    def start(self) -> None:
        """Show the initial listing of the serving root."""

        self.list_files()

    def feed(self, chunk: str) -> None:
        """Route a raw inbound chunk according to the current mode."""

        mode = self.session.mode
        if mode is SessionMode.NAVIGATE:
            event = self._reader.feed(chunk)
            self.session.input_buffer = self._reader.buffer
            self.handle_event(event)
        elif mode is SessionMode.CONFIRM_TRANSFER:
            self.confirm_transfer(chunk)
        # Keystrokes during a transfer are discarded.

    def handle_event(self, event: InputEvent) -> None:
        if self.session.mode is not SessionMode.NAVIGATE:
            return
        if event.kind is InputKind.COMMAND:
            if event.command is BrowserCommand.EXIT:
                self._hang_up()
            elif event.command is BrowserCommand.REFRESH:
                self.terminal.writeln("Refreshing...")
                self.list_files()
        elif event.kind is InputKind.SUBMISSION:
            self.terminal.writeln()
            self.select_entry(event.text)

    # Navigate ---------------------------------------------------------------

    def read_listing(self, path: Path | None = None) -> DirectoryListing:
        target = self.session.current_path if path is None else path
        return self.lister.list(target, self.config.secure)

    def list_files(self) -> DirectoryListing | None:
        """Render the current directory and the selection prompt."""

        session = self.session
        session.mode = SessionMode.NAVIGATE
        self.terminal.writeln(f"----- {session.current_path} -----")
        try:
            listing = self.read_listing()
        except DirectoryReadError as exc:
            self._report_read_error(exc)
            self._render_listing(DirectoryListing(path=session.current_path))
            return None
        self._render_listing(listing)
        return listing

    def select_entry(self, text: str) -> None:
        """Act on the entry numbered ``text`` in a freshly read listing."""

        # The directory is re-read here; entries may differ from what was shown.
        try:
            listing = self.read_listing()
        except DirectoryReadError as exc:
            LOGGER.warning("%s", exc)
            listing = DirectoryListing(path=self.session.current_path)

        count = len(listing)
        number = int(text) if text.isdecimal() else 0
        if number < 1 or number > count:
            self.terminal.writeln(
                f"Invalid selection. Enter a number between 1-{count}."
            )
            self.list_files()
            return

        entry = listing.select(number)
        current = self.session.current_path
        if entry.is_directory:
            target = current.parent if entry.is_parent else current / entry.name
            self.change_directory(target)
            return

        selection = current / entry.name
        self.session.begin_confirmation(selection)
        self.terminal.write(f"Start transferring {selection} via XMODEM? [Y/n]: ")

    def change_directory(self, target: Path) -> None:
        """Move into ``target`` if it can be listed, otherwise stay put."""

        self.terminal.writeln(f"----- {target} -----")
        try:
            listing = self.read_listing(target)
        except DirectoryReadError as exc:
            self._report_read_error(exc)
            self.list_files()
            return
        self.session.current_path = target
        LOGGER.info("Navigated to %s", target)
        self._render_listing(listing)

    # Confirm / transfer -----------------------------------------------------

    def confirm_transfer(self, text: str) -> None:
        session = self.session
        if session.mode is not SessionMode.CONFIRM_TRANSFER:
            return
        answer = (text or "").strip().lower()
        if answer and not answer.startswith("y"):
            self.terminal.writeln("No")
            session.return_to_navigation()
            self.list_files()
            return

        selection = session.pending_selection
        assert selection is not None
        self.terminal.writeln("Yes")
        self.terminal.writeln()
        self.terminal.writeln(f"Initiating XMODEM transfer for {selection}")
        self.terminal.writeln("Please start your XMODEM receiver NOW.")
        session.begin_transfer()
        self.transfers.start(session, selection, self.complete_transfer)

    def complete_transfer(self, status: int) -> None:
        """Report the transfer outcome and resume browsing."""

        session = self.session
        if session.mode is not SessionMode.TRANSFERRING:
            return
        selection = session.pending_selection
        session.return_to_navigation()
        if self.terminal.closed:
            return
        self.terminal.writeln()
        self.terminal.writeln()
        if status == 0:
            self.terminal.writeln(f"Transfer of {selection} completed successfully")
        else:
            self.terminal.writeln(f"Transfer stopped with exit code {status}")
        self.list_files()

    # Helpers ----------------------------------------------------------------

    # Why: keep the numbered rows and the prompt bound to the same listing.
    def _render_listing(self, listing: DirectoryListing) -> None:
        write = self.terminal.write
        for number, entry in listing.numbered():
            prefix = DIRECTORY_PREFIX if entry.is_directory else FILE_PREFIX
            write(f"{number} {prefix} ")
            self.terminal.writeln(entry.name)
        write(f"Enter 1-{len(listing)}, R=refresh, X=exit: ")

    # Why: surface listing failures to the remote user as well as the operator log.
    def _report_read_error(self, exc: DirectoryReadError) -> None:
        LOGGER.warning("%s", exc)
        self.terminal.writeln(f"Error reading directory {exc.path}")

    # Why: flush the farewell before the connection is closed.
    def _hang_up(self) -> None:
        self.terminal.writeln("Goodbye!")
        self.terminal.close()


__all__ = ["DIRECTORY_PREFIX", "FILE_PREFIX", "FileBrowser", "TransferStarter"]

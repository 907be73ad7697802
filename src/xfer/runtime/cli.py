"""Serve a directory tree to remote terminals over raw TCP with XMODEM downloads."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import socket
from pathlib import Path
from typing import Any, Callable, Sequence

from .. import __version__
from ..config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    ServerConfig,
    ServerConfigError,
    load_server_config,
    resolve_root_directory,
    validate_port,
)
from .file_browser import FileBrowser
from .file_transfer_protocols import XmodemSender
from .transfer_supervisor import TransferEngine, TransferSupervisor
from .transports import StreamTerminal


LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
READ_CHUNK_SIZE = 1024

EngineFactory = Callable[[], TransferEngine]


# Why: report invalid ports through argparse usage errors.
def _port_argument(value: str) -> int:
    try:
        return validate_port(value)
    except ServerConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


# Why: reject a missing serving directory before the server starts.
def _directory_argument(value: str) -> Path:
    try:
        return resolve_root_directory(value)
    except ServerConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return parsed arguments for the server CLI."""

    parser = argparse.ArgumentParser(
        prog="xfer",
        description=(
            "Start xfer on your computer to allow (retro?) computers to download "
            "files with devices like WiModem232."
        ),
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    # Flags default to None so values from --config are only overridden when given.
    parser.add_argument(
        "-p",
        "--port",
        type=_port_argument,
        default=None,
        help=f"port to use (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "-d",
        "--directory",
        type=_directory_argument,
        default=None,
        help="directory to serve (default: current directory)",
    )
    parser.add_argument(
        "-s",
        "--secure",
        action="store_true",
        default=None,
        help="secure mode: don't allow user to change directories",
    )
    parser.add_argument(
        "--host",
        default=None,
        help=f"address to bind (default: {DEFAULT_HOST})",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML file with a [server] table",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default="INFO",
        help="Operator log verbosity (default: INFO)",
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Merge the optional config file with command-line overrides."""

    settings: dict[str, Any] = {}
    if args.config is not None:
        settings.update(load_server_config(args.config))
    if args.port is not None:
        settings["port"] = args.port
    if args.directory is not None:
        settings["root"] = args.directory
    if args.secure is not None:
        settings["secure"] = args.secure
    if args.host is not None:
        settings["host"] = args.host
    settings.setdefault("root", Path(os.getcwd()))
    return ServerConfig(**settings)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT)


def discover_local_address() -> str:
    """Return the first non-loopback IPv4 address of this host, if any."""

    # Connecting a UDP socket selects a route without sending packets.
    with contextlib.suppress(OSError):
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(("10.255.255.255", 1))
            address = probe.getsockname()[0]
            if address and not address.startswith("127."):
                return address
    with contextlib.suppress(OSError):
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            address = info[4][0]
            if not address.startswith("127."):
                return address
    return "localhost"


async def run_stream_session(
    config: ServerConfig,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
    *,
    engine_factory: EngineFactory = XmodemSender,
) -> None:
    """Bridge one accepted connection to a :class:`FileBrowser` until hang-up."""

    peer = writer.get_extra_info("peername")
    LOGGER.info("Client connected from %s", peer)
    terminal = StreamTerminal(writer)
    supervisor = TransferSupervisor(
        reader, writer, terminal=terminal, engine_factory=engine_factory
    )
    browser = FileBrowser(config=config, terminal=terminal, transfers=supervisor)
    try:
        browser.start()
        while not terminal.closed:
            await terminal.drain()
            if supervisor.active:
                # The engine owns the reader until the transfer reports back.
                await supervisor.wait()
                continue
            data = await reader.read(READ_CHUNK_SIZE)
            if not data:
                break
            browser.feed(data.decode(terminal.encoding, errors="ignore"))
    except ConnectionError as exc:
        LOGGER.debug("Connection error from %s: %s", peer, exc)
    finally:
        supervisor.cancel()
        await terminal.wait_closed()
        LOGGER.info("Client disconnected")


async def start_session_server(
    config: ServerConfig,
    *,
    engine_factory: EngineFactory = XmodemSender,
) -> asyncio.AbstractServer:
    """Start a TCP server that spawns a browsing session per connection."""

    async def _client_handler(
        reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        await run_stream_session(config, reader, writer, engine_factory=engine_factory)

    return await asyncio.start_server(_client_handler, config.host, config.port)


async def run_listen(config: ServerConfig) -> None:
    """Serve incoming TCP sessions until cancelled."""

    server = await start_session_server(config)
    sockets = server.sockets or []
    port = sockets[0].getsockname()[1] if sockets else config.port
    LOGGER.info("Server now listening in %s:%s", discover_local_address(), port)
    if config.secure:
        LOGGER.info("Secure mode: sessions are confined to %s", config.root)
    async with server:
        await server.serve_forever()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``xfer`` command."""

    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        config = build_config(args)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"xfer: {exc}") from exc
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run_listen(config))
    return 0


__all__ = [
    "build_config",
    "configure_logging",
    "discover_local_address",
    "main",
    "parse_args",
    "run_listen",
    "run_stream_session",
    "start_session_server",
]

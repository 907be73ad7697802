"""Server configuration for the xfer file browser."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import tomllib


DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 23
VALID_PORT_RANGE = range(0, 65536)


class ServerConfigError(ValueError):
    """Raised when a server configuration file or value fails validation."""


@dataclass(frozen=True)
class ServerConfig:
    """Process-wide settings fixed at startup and shared by every session."""

    root: Path
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    secure: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", resolve_root_directory(self.root))
        object.__setattr__(self, "port", validate_port(self.port))


def validate_port(value: Any) -> int:
    """Return ``value`` as a TCP port number or raise :class:`ServerConfigError`."""

    if isinstance(value, bool):
        raise ServerConfigError(f"port must be an integer, received {value!r}")
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ServerConfigError(f"port must be an integer, received {value!r}") from exc
    if port not in VALID_PORT_RANGE:
        raise ServerConfigError("port must be between 0 and 65535")
    return port


def resolve_root_directory(value: str | os.PathLike[str], *, base: Path | None = None) -> Path:
    """Return the absolute form of ``value`` once it is known to be a directory."""

    path = Path(value).expanduser()
    if base is not None and not path.is_absolute():
        path = base / path
    # abspath keeps symlinked roots as given, unlike Path.resolve.
    absolute = Path(os.path.abspath(path))
    if not absolute.is_dir():
        raise ServerConfigError(f"{value} is not a valid directory.")
    return absolute


def load_server_config(config_path: Path) -> Mapping[str, Any]:
    """Parse the ``[server]`` table of the TOML file at ``config_path``.

    The result only carries the keys present in the file, already validated and
    normalised, so that command-line flags can be layered on top of it.
    """

    with config_path.open("rb") as stream:
        raw_data = tomllib.load(stream)

    server = raw_data.get("server")
    if server is None:
        raise ServerConfigError("server configuration requires a [server] table")
    if not isinstance(server, Mapping):
        raise ServerConfigError("[server] section must be a mapping")

    unknown = sorted(set(server) - {"host", "port", "directory", "secure"})
    if unknown:
        raise ServerConfigError(f"unknown [server] keys: {', '.join(unknown)}")

    settings: dict[str, Any] = {}
    if "host" in server:
        host = server["host"]
        if not isinstance(host, str) or not host:
            raise ServerConfigError("host must be a non-empty string")
        settings["host"] = host
    if "port" in server:
        settings["port"] = validate_port(server["port"])
    if "directory" in server:
        directory = server["directory"]
        if not isinstance(directory, str):
            raise ServerConfigError("directory must be a string path")
        settings["root"] = resolve_root_directory(
            directory, base=config_path.absolute().parent
        )
    if "secure" in server:
        secure = server["secure"]
        if not isinstance(secure, bool):
            raise ServerConfigError("secure must be a boolean")
        settings["secure"] = secure
    return settings


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "ServerConfig",
    "ServerConfigError",
    "load_server_config",
    "resolve_root_directory",
    "validate_port",
]

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from xfer.config import (
    DEFAULT_PORT,
    ServerConfig,
    ServerConfigError,
    load_server_config,
    resolve_root_directory,
    validate_port,
)


def write_config(tmp_path: Path, body: str) -> Path:
    config_path = tmp_path / "xfer.toml"
    config_path.write_text(textwrap.dedent(body), encoding="utf-8")
    return config_path


def test_server_config_defaults_and_absolute_root(tmp_path: Path) -> None:
    config = ServerConfig(root=tmp_path)

    assert config.port == DEFAULT_PORT
    assert config.host == "0.0.0.0"
    assert config.secure is False
    assert config.root == tmp_path
    assert config.root.is_absolute()


def test_server_config_is_immutable(tmp_path: Path) -> None:
    config = ServerConfig(root=tmp_path)

    with pytest.raises(AttributeError):
        config.secure = True  # type: ignore[misc]


@pytest.mark.parametrize("value", [-1, 65536, "abc", True])
def test_validate_port_rejects_out_of_range_values(value: object) -> None:
    with pytest.raises(ServerConfigError):
        validate_port(value)


def test_validate_port_accepts_bounds() -> None:
    assert validate_port("0") == 0
    assert validate_port(65535) == 65535


def test_resolve_root_directory_rejects_files(tmp_path: Path) -> None:
    target = tmp_path / "notes.txt"
    target.write_text("hello", encoding="utf-8")

    with pytest.raises(ServerConfigError, match="is not a valid directory"):
        resolve_root_directory(target)
    with pytest.raises(ServerConfigError):
        ServerConfig(root=tmp_path / "missing")


def test_load_server_config_resolves_directory_relative_to_file(tmp_path: Path) -> None:
    (tmp_path / "files").mkdir()
    config_path = write_config(
        tmp_path,
        """
        [server]
        port = 2323
        directory = "files"
        secure = true
        """,
    )

    settings = load_server_config(config_path)

    assert settings == {
        "port": 2323,
        "root": tmp_path / "files",
        "secure": True,
    }


def test_load_server_config_requires_server_table(tmp_path: Path) -> None:
    config_path = write_config(tmp_path, "port = 23\n")

    with pytest.raises(ServerConfigError, match=r"\[server\]"):
        load_server_config(config_path)


def test_load_server_config_rejects_unknown_keys_and_bad_types(tmp_path: Path) -> None:
    unknown = write_config(
        tmp_path,
        """
        [server]
        baud = 2400
        """,
    )
    with pytest.raises(ServerConfigError, match="baud"):
        load_server_config(unknown)

    bad_secure = write_config(
        tmp_path,
        """
        [server]
        secure = "yes"
        """,
    )
    with pytest.raises(ServerConfigError, match="secure"):
        load_server_config(bad_secure)

"""Browse a directory tree from a remote terminal and download files via XMODEM."""
from __future__ import annotations

__version__ = "1.0.3"

from .config import ServerConfig, ServerConfigError, load_server_config
from .filesystem import (
    DirectoryEntry,
    DirectoryLister,
    DirectoryListing,
    DirectoryReadError,
    PathClassifier,
)
from .session import Session, SessionMode, TransferMetrics

__all__ = [
    "DirectoryEntry",
    "DirectoryLister",
    "DirectoryListing",
    "DirectoryReadError",
    "PathClassifier",
    "ServerConfig",
    "ServerConfigError",
    "Session",
    "SessionMode",
    "TransferMetrics",
    "__version__",
    "load_server_config",
]

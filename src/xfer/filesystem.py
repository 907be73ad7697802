"""Directory classification and listing helpers for browsing sessions."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator


PARENT_ENTRY = ".."
HIDDEN_PREFIX = "."


class DirectoryReadError(OSError):
    """Raised when a directory cannot be listed or one of its entries classified."""

    def __init__(self, path: Path, reason: OSError) -> None:
        super().__init__(f"unable to read directory {path}: {reason}")
        self.path = path
        self.reason = reason


@dataclass(frozen=True)
class EntryClassification:
    """Result of resolving an entry name against its directory."""

    is_directory: bool


@dataclass(frozen=True)
class DirectoryEntry:
    """Single numbered row of a :class:`DirectoryListing`."""

    name: str
    is_directory: bool

    @property
    def is_parent(self) -> bool:
        return self.name == PARENT_ENTRY


@dataclass(frozen=True)
class DirectoryListing:
    """Ordered, filtered view of ``path`` as shown to the remote terminal."""

    path: Path
    entries: tuple[DirectoryEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[DirectoryEntry]:
        return iter(self.entries)

    def numbered(self) -> Iterator[tuple[int, DirectoryEntry]]:
        """Yield ``(number, entry)`` pairs using 1-based selection numbers."""

        return enumerate(self.entries, start=1)

    def select(self, number: int) -> DirectoryEntry:
        """Return the entry shown as ``number`` or raise :class:`IndexError`."""

        if number < 1 or number > len(self.entries):
            raise IndexError(f"selection {number} outside 1-{len(self.entries)}")
        return self.entries[number - 1]


class PathClassifier:
    """Classify directory entries, following at most one level of symlink."""

    def classify(self, base_path: Path, entry_name: str) -> EntryClassification:
        absolute = Path(base_path) / entry_name
        info = os.lstat(absolute)
        if stat.S_ISLNK(info.st_mode):
            # A broken link or a loop raises here and is reported by the caller.
            target = os.stat(os.path.realpath(absolute))
            return EntryClassification(is_directory=stat.S_ISDIR(target.st_mode))
        return EntryClassification(is_directory=stat.S_ISDIR(info.st_mode))

    def is_directory(self, base_path: Path, entry_name: str) -> bool:
        return self.classify(base_path, entry_name).is_directory

    @staticmethod
    def is_hidden(entry_name: str) -> bool:
        return entry_name.startswith(HIDDEN_PREFIX)


def is_filesystem_root(path: Path) -> bool:
    """Return ``True`` when ``path`` has no parent directory."""

    return Path(path).parent == Path(path)


class DirectoryLister:
    """Produce the listing a session shows for a directory."""

    def __init__(self, classifier: PathClassifier | None = None) -> None:
        self.classifier = classifier or PathClassifier()

    def list(self, path: Path, secure_mode: bool) -> DirectoryListing:
        """Return the filtered listing of ``path``.

        Hidden names are always dropped. Secure mode also drops directories and
        the parent entry, which confines the session to ``path`` itself.
        """

        path = Path(path)
        classifier = self.classifier
        try:
            names = sorted(os.listdir(path))
            entries: list[DirectoryEntry] = []
            for name in names:
                if classifier.is_hidden(name):
                    continue
                is_directory = classifier.is_directory(path, name)
                if secure_mode and is_directory:
                    continue
                entries.append(DirectoryEntry(name=name, is_directory=is_directory))
        except OSError as exc:
            raise DirectoryReadError(path, exc) from exc

        if not secure_mode and not is_filesystem_root(path):
            entries.insert(0, DirectoryEntry(name=PARENT_ENTRY, is_directory=True))
        return DirectoryListing(path=path, entries=tuple(entries))


__all__ = [
    "DirectoryEntry",
    "DirectoryLister",
    "DirectoryListing",
    "DirectoryReadError",
    "EntryClassification",
    "PARENT_ENTRY",
    "PathClassifier",
    "is_filesystem_root",
]

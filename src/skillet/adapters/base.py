"""Abstract base class for file-system adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


class FileSystem(ABC):
    """The file operations the install engine is allowed to perform."""

    @abstractmethod
    def write_file(self, path: Path, data: bytes) -> None:
        """Atomically replace path with data, creating parent directories."""

    @abstractmethod
    def read_file(self, path: Path) -> bytes | None:
        """Read a single file. Returns None if not found."""

    @abstractmethod
    def delete_tree(self, path: Path) -> None:
        """Remove a file or directory tree. Missing paths are ignored."""

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Check whether path exists."""

    @abstractmethod
    def remove_empty_dir(self, path: Path) -> bool:
        """Remove path if it is an empty directory. Returns True if removed."""

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for status messages."""

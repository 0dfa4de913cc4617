"""File-system adapters used when materializing profiles."""

from skillet.adapters.base import FileSystem
from skillet.adapters.local import LocalFileSystem, atomic_write, atomic_write_text


def create_adapter(kind: str = "local") -> FileSystem:
    """Factory: create the file-system adapter for a kind name."""
    if kind == "local":
        return LocalFileSystem()
    else:
        raise ValueError(f"Unknown file-system adapter: {kind}")


__all__ = [
    "FileSystem",
    "LocalFileSystem",
    "atomic_write",
    "atomic_write_text",
    "create_adapter",
]

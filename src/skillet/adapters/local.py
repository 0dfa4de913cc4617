"""Local filesystem adapter."""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from pathlib import Path

from skillet.adapters.base import FileSystem


def atomic_write(path: Path, data: bytes) -> None:
    """Write data to a temp file beside path, then rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise


def atomic_write_text(path: Path, text: str) -> None:
    atomic_write(path, text.encode("utf-8"))


class LocalFileSystem(FileSystem):
    """Adapter for the local filesystem."""

    def write_file(self, path: Path, data: bytes) -> None:
        atomic_write(path, data)

    def read_file(self, path: Path) -> bytes | None:
        if path.exists() and path.is_file():
            return path.read_bytes()
        return None

    def delete_tree(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()

    def exists(self, path: Path) -> bool:
        return path.exists()

    def remove_empty_dir(self, path: Path) -> bool:
        if not path.is_dir():
            return False
        try:
            path.rmdir()
        except OSError:
            return False
        return True

    @property
    def display_name(self) -> str:
        return "local"

"""Tests for file-system adapters."""

from unittest.mock import patch

import pytest

from skillet.adapters import create_adapter
from skillet.adapters.local import LocalFileSystem, atomic_write


class TestCreateAdapter:
    def test_creates_local_adapter(self):
        adapter = create_adapter()
        assert isinstance(adapter, LocalFileSystem)
        assert adapter.display_name == "local"

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError, match="Unknown file-system adapter"):
            create_adapter("ftp")


class TestAtomicWrite:
    def test_creates_parents(self, tmp_path):
        target = tmp_path / "a" / "b" / "file.txt"
        atomic_write(target, b"hello")
        assert target.read_bytes() == b"hello"

    def test_replaces_existing(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_bytes(b"old")
        atomic_write(target, b"new")
        assert target.read_bytes() == b"new"

    def test_failure_keeps_old_content_and_no_temp_files(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_bytes(b"old")
        with patch("skillet.adapters.local.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                atomic_write(target, b"new")
        assert target.read_bytes() == b"old"
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]


class TestLocalFileSystem:
    def test_read_missing_returns_none(self, tmp_path):
        assert LocalFileSystem().read_file(tmp_path / "missing") is None

    def test_read_directory_returns_none(self, tmp_path):
        assert LocalFileSystem().read_file(tmp_path) is None

    def test_delete_file_and_tree(self, tmp_path):
        fs = LocalFileSystem()
        (tmp_path / "d" / "e").mkdir(parents=True)
        (tmp_path / "d" / "e" / "f.txt").write_text("x")
        (tmp_path / "g.txt").write_text("y")

        fs.delete_tree(tmp_path / "g.txt")
        fs.delete_tree(tmp_path / "d")
        fs.delete_tree(tmp_path / "never-existed")
        assert list(tmp_path.iterdir()) == []

    def test_remove_empty_dir(self, tmp_path):
        fs = LocalFileSystem()
        (tmp_path / "empty").mkdir()
        (tmp_path / "full").mkdir()
        (tmp_path / "full" / "x").write_text("x")

        assert fs.remove_empty_dir(tmp_path / "empty") is True
        assert fs.remove_empty_dir(tmp_path / "full") is False
        assert fs.remove_empty_dir(tmp_path / "missing") is False
        assert (tmp_path / "full" / "x").exists()

"""Shared test fixtures."""

import itertools
from pathlib import Path

import pytest

from skillet.adapters import LocalFileSystem
from skillet.install import InstallEngine
from skillet.mcp import McpConfigStore
from skillet.packager import ConfigPackager
from skillet.profiles import AutoInvokeRule, ProfileInput, ProfileStore, Scope
from skillet.settings import OutputStyleStore, SettingsStore
from skillet.skills import DirectorySkillRegistry, SkillMeta


class RecordingFileSystem(LocalFileSystem):
    """Local file system that remembers every write and delete."""

    def __init__(self):
        self.writes: list[Path] = []
        self.deletes: list[Path] = []

    def write_file(self, path, data):
        self.writes.append(path)
        super().write_file(path, data)

    def delete_tree(self, path):
        self.deletes.append(path)
        super().delete_tree(path)


def make_clock(start: int = 0):
    """Return a clock producing strictly increasing ISO timestamps."""
    counter = itertools.count(start)
    return lambda: f"2026-01-01T00:00:{next(counter):02d}.000000Z"


def make_skill(skill_id: str, description: str = "") -> SkillMeta:
    return SkillMeta(
        id=skill_id,
        name=skill_id.replace("-", " ").title(),
        description=description or f"Guidance for {skill_id}",
        content=f"# {skill_id}\n\nUse {skill_id} carefully.",
    )


@pytest.fixture
def clock():
    return make_clock()


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / "data"
    d.mkdir()
    return d


@pytest.fixture
def profile_store(data_dir, clock):
    return ProfileStore(data_dir / "profiles.json", clock=clock)


@pytest.fixture
def registry(data_dir):
    reg = DirectorySkillRegistry(data_dir / "skills")
    for skill_id in ("s1", "s2", "s3"):
        reg.save(make_skill(skill_id))
    return reg


@pytest.fixture
def user_root(tmp_path):
    return tmp_path / "home" / ".claude"


@pytest.fixture
def fs():
    return RecordingFileSystem()


@pytest.fixture
def engine(profile_store, registry, user_root, fs):
    return InstallEngine(profile_store, registry, user_root, fs=fs, clock=make_clock(50))


@pytest.fixture
def main_profile(profile_store):
    return profile_store.create(
        ProfileInput(
            id="main",
            name="Main",
            scope=Scope.USER,
            skills=["s1", "s2"],
            auto_invoke_rules=[AutoInvokeRule("s1", "writing tests", "unit tests")],
            instructions="Be concise.",
        )
    )


@pytest.fixture
def packager_factory(tmp_path):
    """Build a packager over a fresh set of stores under tmp_path/<name>."""

    def build(name: str) -> ConfigPackager:
        root = tmp_path / name
        settings = SettingsStore(root / "settings.json")
        return ConfigPackager(
            profiles=ProfileStore(root / "profiles.json", clock=make_clock()),
            skills=DirectorySkillRegistry(root / "skills"),
            settings=settings,
            output_styles=OutputStyleStore(root / "output-styles", settings),
            mcp=McpConfigStore(root / ".mcp.json"),
            clock=lambda: "2026-01-01T00:00:00Z",
        )

    return build

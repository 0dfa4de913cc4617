"""Install engine: materialize a profile at a target and keep it current.

A target moves through ABSENT -> INSTALLED -> UP_TO_DATE / DRIFTED and back
to ABSENT. The manifest is always the last file written, so a target
without one is treated as never installed.
"""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable

from skillet import SkilletError
from skillet.adapters import FileSystem, create_adapter
from skillet.drift import content_hash, diff_trees
from skillet.instructions import FileRole, generate_instructions, render_skill_document
from skillet.manifest import InstalledManifest, ManifestEntry
from skillet.profiles import Profile, ProfileStore, Scope
from skillet.skills import SkillMeta, SkillNotFoundError, SkillRegistry

logger = logging.getLogger(__name__)

MANIFEST_FILE = ".skillet-manifest.json"
PLUGIN_VERSION = "1.0.0"
SKILL_ROLE = "skill"
PLUGIN_ROLE = "plugin"


class InstallError(SkilletError):
    """Base error for install, update and uninstall."""


class SkillUnresolvableError(InstallError):
    def __init__(self, skill_ids: list[str]):
        super().__init__(f"Skill(s) not found in the registry: {', '.join(skill_ids)}")
        self.skill_ids = skill_ids


class TargetNotWritableError(InstallError):
    def __init__(self, root: Path, reason: str):
        super().__init__(f"Cannot write to {root}: {reason}")
        self.root = root


class TargetConflictError(InstallError):
    def __init__(self, root: Path, paths: list[str]):
        super().__init__(
            f"{len(paths)} file(s) under {root} were not created by skillet and would be "
            f"overwritten: {', '.join(paths)} (use --force to replace them)"
        )
        self.root = root
        self.paths = paths


class AlreadyInstalledError(InstallError):
    def __init__(self, root: Path, profile_id: str):
        super().__init__(f"Profile '{profile_id}' is already installed at {root}; run update instead")
        self.root = root
        self.profile_id = profile_id


class NotInstalledError(InstallError):
    def __init__(self, root: Path):
        super().__init__(f"No skillet install found at {root}")
        self.root = root


class UninstallError(InstallError):
    def __init__(self, root: Path, failures: list[tuple[str, str]]):
        listed = ", ".join(f"{p} ({reason})" for p, reason in failures)
        super().__init__(f"Could not remove {len(failures)} file(s) under {root}: {listed}")
        self.root = root
        self.failures = failures


class InstallState(str, Enum):
    ABSENT = "absent"
    UP_TO_DATE = "up-to-date"
    DRIFTED = "drifted"
    OUTDATED = "outdated"


@dataclass(frozen=True)
class PlannedFile:
    path: str
    data: bytes
    role: str
    skill_id: str | None = None


# -- layouts -------------------------------------------------------------


class Layout:
    """Where each generated file lives for one scope."""

    scope: Scope
    skills_dir: str
    manifest_path: str
    role_paths: dict[FileRole, str]
    scaffolding: tuple[str, ...] = ()

    def __init__(self, root: Path):
        self.root = root

    @property
    def manifest_file(self) -> Path:
        return self.root / self.manifest_path

    def skill_path(self, skill_id: str) -> str:
        return f"{self.skills_dir}/{skill_id}/SKILL.md"

    def plan(self, profile: Profile, skills: dict[str, SkillMeta]) -> list[PlannedFile]:
        files = []
        documents = generate_instructions(profile, skills, self.skills_dir)
        for role, text in documents.items():
            files.append(PlannedFile(self.role_paths[role], text.encode("utf-8"), role.value))
        for skill_id in profile.skills:
            doc = render_skill_document(skills[skill_id])
            files.append(PlannedFile(self.skill_path(skill_id), doc.encode("utf-8"), SKILL_ROLE, skill_id))
        return files


class UserLayout(Layout):
    """Installs into the assistant's user configuration root."""

    scope = Scope.USER
    skills_dir = "skills"
    manifest_path = MANIFEST_FILE
    role_paths = {
        FileRole.PRIMARY: "CLAUDE.md",
        FileRole.SECONDARY: "AGENTS.md",
        FileRole.MASTER: "CLAUDE.master.md",
    }
    scaffolding = ("skills",)


class ProjectLayout(Layout):
    """Installs a self-contained plugin into a project directory."""

    scope = Scope.PROJECT
    skills_dir = ".claude/skills"
    manifest_path = f".claude/{MANIFEST_FILE}"
    role_paths = {
        FileRole.PRIMARY: "CLAUDE.md",
        FileRole.SECONDARY: "AGENTS.md",
        FileRole.MASTER: ".claude/CLAUDE.master.md",
    }
    scaffolding = (".claude/skills", ".claude", ".claude-plugin")
    plugin_path = ".claude-plugin/plugin.json"

    def plan(self, profile: Profile, skills: dict[str, SkillMeta]) -> list[PlannedFile]:
        plugin = {
            "name": profile.id,
            "description": profile.description or profile.name,
            "version": PLUGIN_VERSION,
            "author": {"name": "skillet"},
        }
        data = (json.dumps(plugin, indent=2) + "\n").encode("utf-8")
        return [PlannedFile(self.plugin_path, data, PLUGIN_ROLE)] + super().plan(profile, skills)


def create_layout(scope: Scope, target: Path | None, user_root: Path) -> Layout:
    """Factory: pick the layout for a scope. User scope ignores target."""
    if scope == Scope.USER:
        return UserLayout(user_root)
    elif scope == Scope.PROJECT:
        if target is None:
            raise InstallError("Project profiles need a target path")
        return ProjectLayout(target)
    else:
        raise ValueError(f"Unknown scope: {scope}")


# -- results -------------------------------------------------------------


@dataclass
class InstallResult:
    profile_id: str
    root: Path
    written: list[str] = field(default_factory=list)
    skills_installed: list[str] = field(default_factory=list)


@dataclass
class UpdateResult:
    profile_id: str
    root: Path
    written: list[str] = field(default_factory=list)
    recreated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    drifted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    manifest_written: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.written or self.removed or self.manifest_written)


@dataclass
class UninstallResult:
    root: Path
    removed: list[str] = field(default_factory=list)
    already_absent: bool = False


@dataclass
class InstallStatus:
    state: InstallState
    root: Path
    profile_id: str | None = None
    drifted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class InstallEngine:
    """Places, refreshes and removes a profile's generated files."""

    def __init__(
        self,
        profiles: ProfileStore,
        registry: SkillRegistry,
        user_root: Path,
        fs: FileSystem | None = None,
        clock: Callable[[], str] | None = None,
        max_workers: int = 8,
    ):
        self.profiles = profiles
        self.registry = registry
        self.user_root = user_root
        self.fs = fs or create_adapter()
        self._clock = clock or _utc_now_iso
        self.max_workers = max_workers

    # -- helpers -----------------------------------------------------------

    def layout(self, scope: Scope, target: Path | None) -> Layout:
        return create_layout(scope, target, self.user_root)

    def _read_manifest(self, layout: Layout) -> tuple[InstalledManifest, bytes] | None:
        raw = self.fs.read_file(layout.manifest_file)
        if raw is None:
            return None
        return InstalledManifest.from_json(raw), raw

    def _resolve(self, profile: Profile) -> dict[str, SkillMeta]:
        """Resolve every skill of the profile, or fail before anything is written."""

        def lookup(skill_id: str) -> SkillMeta | None:
            try:
                return self.registry.resolve(skill_id)
            except SkillNotFoundError:
                return None

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            resolved = list(pool.map(lookup, profile.skills))

        missing = [sid for sid, meta in zip(profile.skills, resolved) if meta is None]
        if missing:
            raise SkillUnresolvableError(missing)
        return {meta.id: meta for meta in resolved if meta is not None}

    def _check_writable(self, root: Path) -> None:
        existing = root
        while not existing.exists():
            if existing.parent == existing:
                break
            existing = existing.parent
        if not existing.is_dir():
            raise TargetNotWritableError(root, f"{existing} is not a directory")
        if not os.access(existing, os.W_OK):
            raise TargetNotWritableError(root, "permission denied")

    def _prune_empty_parents(self, layout: Layout, directory: Path) -> None:
        current = directory
        while current != layout.root and layout.root in current.parents:
            if not self.fs.remove_empty_dir(current):
                return
            current = current.parent

    # -- operations --------------------------------------------------------

    def install(self, profile_id: str, target: Path | None = None, force: bool = False) -> InstallResult:
        profile = self.profiles.get(profile_id)
        layout = self.layout(profile.scope, target)

        existing = self._read_manifest(layout)
        if existing is not None:
            raise AlreadyInstalledError(layout.root, existing[0].profile_id)

        skills = self._resolve(profile)
        self._check_writable(layout.root)
        planned = layout.plan(profile, skills)

        created = []
        conflicts = []
        for f in planned:
            on_disk = self.fs.read_file(layout.root / f.path)
            if on_disk is None:
                created.append(f.path)
            elif on_disk != f.data:
                conflicts.append(f.path)
        if conflicts and not force:
            raise TargetConflictError(layout.root, conflicts)

        result = InstallResult(profile_id=profile.id, root=layout.root)
        try:
            for f in planned:
                self.fs.write_file(layout.root / f.path, f.data)
                result.written.append(f.path)

            manifest = InstalledManifest(
                profile_id=profile.id,
                scope=profile.scope.value,
                source_version=profile.updated_at,
                installed_at=self._clock(),
                files=[ManifestEntry(f.path, content_hash(f.data), f.role, f.skill_id) for f in planned],
            )
            self.fs.write_file(layout.manifest_file, manifest.to_json())
        except OSError as e:
            logger.error("Install of %s into %s failed: %s", profile.id, layout.root, e)
            self._rollback(layout, [p for p in result.written if p in created])
            raise TargetNotWritableError(layout.root, str(e)) from e

        result.skills_installed = list(profile.skills)
        logger.info("Installed profile %s into %s (%d files)", profile.id, layout.root, len(planned))
        return result

    def _rollback(self, layout: Layout, paths: list[str]) -> None:
        for rel in reversed(paths):
            full = layout.root / rel
            try:
                self.fs.delete_tree(full)
                self._prune_empty_parents(layout, full.parent)
            except OSError as e:
                logger.warning("Rollback could not remove %s: %s", full, e)

    def update(self, profile_id: str, target: Path | None = None, force: bool = False) -> UpdateResult:
        profile = self.profiles.get(profile_id)
        layout = self.layout(profile.scope, target)

        existing = self._read_manifest(layout)
        if existing is None:
            raise NotInstalledError(layout.root)
        manifest, raw_manifest = existing
        if manifest.profile_id != profile.id:
            raise InstallError(
                f"{layout.root} has profile '{manifest.profile_id}' installed, not '{profile.id}'"
            )

        skills = self._resolve(profile)
        planned = {f.path: f for f in layout.plan(profile, skills)}
        result = UpdateResult(profile_id=profile.id, root=layout.root)
        entries: dict[str, ManifestEntry] = {}

        try:
            for path, f in planned.items():
                full = layout.root / path
                new_entry = ManifestEntry(path, content_hash(f.data), f.role, f.skill_id)
                recorded = manifest.entry(path)
                on_disk = self.fs.read_file(full)

                if on_disk is None:
                    self.fs.write_file(full, f.data)
                    result.written.append(path)
                    if recorded is not None:
                        result.recreated.append(path)
                    entries[path] = new_entry
                    continue

                disk_hash = content_hash(on_disk)
                if disk_hash == new_entry.hash:
                    result.unchanged.append(path)
                    entries[path] = new_entry
                    continue

                hand_edited = recorded is None or disk_hash != recorded.hash
                if hand_edited and not force:
                    logger.warning("Skipping %s: it was edited since the last install", full)
                    result.drifted.append(path)
                    if recorded is not None:
                        entries[path] = recorded
                    continue

                self.fs.write_file(full, f.data)
                result.written.append(path)
                entries[path] = new_entry

            for old in manifest.files:
                if old.path in planned:
                    continue
                full = layout.root / old.path
                on_disk = self.fs.read_file(full)
                if on_disk is not None:
                    if content_hash(on_disk) != old.hash and not force:
                        logger.warning("Keeping %s: it was edited since the last install", full)
                        result.drifted.append(old.path)
                        entries[old.path] = old
                        continue
                    self.fs.delete_tree(full)
                self._prune_empty_parents(layout, full.parent)
                result.removed.append(old.path)
        except OSError as e:
            raise TargetNotWritableError(layout.root, str(e)) from e

        updated = InstalledManifest(
            profile_id=profile.id,
            scope=profile.scope.value,
            source_version=profile.updated_at,
            installed_at=manifest.installed_at,
            files=list(entries.values()),
        )
        new_raw = updated.to_json()
        if new_raw != raw_manifest:
            self.fs.write_file(layout.manifest_file, new_raw)
            result.manifest_written = True

        if result.changed:
            logger.info(
                "Updated %s in %s: %d written, %d removed, %d drifted",
                profile.id,
                layout.root,
                len(result.written),
                len(result.removed),
                len(result.drifted),
            )
        return result

    def uninstall(self, scope: Scope, target: Path | None = None) -> UninstallResult:
        layout = self.layout(scope, target)
        result = UninstallResult(root=layout.root)

        if not self.fs.exists(layout.root):
            result.already_absent = True
            return result
        existing = self._read_manifest(layout)
        if existing is None:
            result.already_absent = True
            return result
        manifest, _ = existing

        failures = []
        for entry in manifest.files:
            full = layout.root / entry.path
            try:
                self.fs.delete_tree(full)
            except OSError as e:
                failures.append((entry.path, e.strerror or str(e)))
                continue
            result.removed.append(entry.path)
            self._prune_empty_parents(layout, full.parent)

        if failures:
            raise UninstallError(layout.root, failures)

        self.fs.delete_tree(layout.manifest_file)
        for rel in layout.scaffolding:
            self.fs.remove_empty_dir(layout.root / rel)

        logger.info("Uninstalled %s from %s", manifest.profile_id, layout.root)
        return result

    def status(self, scope: Scope, target: Path | None = None) -> InstallStatus:
        layout = self.layout(scope, target)
        existing = self._read_manifest(layout)
        if existing is None:
            return InstallStatus(state=InstallState.ABSENT, root=layout.root)
        manifest, _ = existing

        status = InstallStatus(state=InstallState.UP_TO_DATE, root=layout.root, profile_id=manifest.profile_id)
        for entry in manifest.files:
            on_disk = self.fs.read_file(layout.root / entry.path)
            if on_disk is None:
                status.missing.append(entry.path)
            elif content_hash(on_disk) != entry.hash:
                status.drifted.append(entry.path)

        if status.drifted or status.missing:
            status.state = InstallState.DRIFTED
        else:
            profile = self.profiles.find(manifest.profile_id)
            if profile is None or profile.updated_at != manifest.source_version:
                status.state = InstallState.OUTDATED
        return status

    def diff(self, scope: Scope, target: Path | None = None) -> list[str]:
        """Unified diffs between freshly generated content and what is on disk."""
        layout = self.layout(scope, target)
        existing = self._read_manifest(layout)
        if existing is None:
            raise NotInstalledError(layout.root)
        manifest, _ = existing

        profile = self.profiles.get(manifest.profile_id)
        planned = layout.plan(profile, self._resolve(profile))
        expected = {f.path: f.data for f in planned}

        actual = {}
        for path in sorted(set(expected) | set(manifest.paths())):
            data = self.fs.read_file(layout.root / path)
            if data is not None:
                actual[path] = data
        return diff_trees(expected, actual)

"""Package the whole configuration surface into one versioned archive.

An archive is a zip holding ``manifest.json`` (version, changelog,
createdAt, format) plus one JSON document per collection, each a mapping
keyed by natural id. Importing merges last-writer-wins per id and never
deletes records that exist only locally.
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from skillet import SkilletError
from skillet.mcp import McpConfigStore, McpSettings, validate_server
from skillet.profiles import ProfileStore, Scope
from skillet.settings import OutputStyle, OutputStyleStore, SettingsStore
from skillet.skills import SkillMeta, SkillNotFoundError, SkillRegistry

logger = logging.getLogger(__name__)

ARCHIVE_FORMAT = 1
MANIFEST_ENTRY = "manifest.json"
COLLECTIONS = ("profiles", "skills", "settings", "output_styles", "mcp_servers")
SEMVER_RE = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")
# Fixed timestamp so identical snapshots produce identical bytes.
ZIP_DATE = (1980, 1, 1, 0, 0, 0)


class ArchiveError(SkilletError):
    """The archive container or one of its documents is unreadable."""


class InvalidVersionError(SkilletError, ValueError):
    def __init__(self, version: str):
        super().__init__(f"Invalid version '{version}', expected MAJOR.MINOR.PATCH")
        self.version = version


def parse_version(version: str) -> tuple[int, int, int]:
    match = SEMVER_RE.match(version.strip())
    if not match:
        raise InvalidVersionError(version)
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


@dataclass
class ConfigArchive:
    version: str
    changelog: str
    created_at: str
    format: int = ARCHIVE_FORMAT
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)
    skills: dict[str, dict[str, Any]] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    output_styles: dict[str, dict[str, Any]] = field(default_factory=dict)
    mcp_servers: dict[str, dict[str, Any]] = field(default_factory=dict)
    mcp_settings: dict[str, Any] | None = None

    def to_bytes(self) -> bytes:
        manifest = {
            "format": self.format,
            "version": self.version,
            "changelog": self.changelog,
            "createdAt": self.created_at,
        }
        documents = {
            MANIFEST_ENTRY: manifest,
            "profiles.json": self.profiles,
            "skills.json": self.skills,
            "settings.json": self.settings,
            "output_styles.json": self.output_styles,
            "mcp.json": {"mcpServers": self.mcp_servers, "settings": self.mcp_settings},
        }
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, doc in documents.items():
                info = zipfile.ZipInfo(name, date_time=ZIP_DATE)
                info.compress_type = zipfile.ZIP_DEFLATED
                zf.writestr(info, json.dumps(doc, indent=2, sort_keys=True, ensure_ascii=False) + "\n")
        return buffer.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> ConfigArchive:
        try:
            with zipfile.ZipFile(io.BytesIO(data), "r") as zf:
                names = set(zf.namelist())
                if MANIFEST_ENTRY not in names:
                    raise ArchiveError(f"Archive has no {MANIFEST_ENTRY}")

                def doc(name: str, default: Any) -> Any:
                    if name not in names:
                        return default
                    return json.loads(zf.read(name).decode("utf-8"))

                manifest = doc(MANIFEST_ENTRY, {})
                mcp = doc("mcp.json", {})
                archive = cls(
                    version=manifest["version"],
                    changelog=manifest.get("changelog", ""),
                    created_at=manifest.get("createdAt", ""),
                    format=int(manifest.get("format", ARCHIVE_FORMAT)),
                    profiles=doc("profiles.json", {}),
                    skills=doc("skills.json", {}),
                    settings=doc("settings.json", {}),
                    output_styles=doc("output_styles.json", {}),
                    mcp_servers=mcp.get("mcpServers") or {},
                    mcp_settings=mcp.get("settings"),
                )
                parse_version(archive.version)
        except (zipfile.BadZipFile, UnicodeDecodeError, KeyError, TypeError, AttributeError, ValueError) as e:
            raise ArchiveError(f"Archive is corrupt: {e}") from e
        return archive


@dataclass
class MergeCounts:
    created: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated)


@dataclass
class MergeReport:
    collections: dict[str, MergeCounts] = field(default_factory=lambda: {c: MergeCounts() for c in COLLECTIONS})

    def __getitem__(self, collection: str) -> MergeCounts:
        return self.collections[collection]

    @property
    def changed(self) -> bool:
        return any(c.changed for c in self.collections.values())


def merge_records(
    local: dict[str, Any],
    incoming: dict[str, Any],
    counts: MergeCounts,
) -> dict[str, Any]:
    """Last-writer-wins merge keyed by id. Local-only keys survive."""
    merged = dict(local)
    for key in sorted(incoming):
        value = incoming[key]
        if key not in local:
            counts.created += 1
        elif local[key] != value:
            counts.updated += 1
        else:
            counts.unchanged += 1
            continue
        merged[key] = value
    return merged


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ConfigPackager:
    """Snapshots every bundled store into an archive and merges one back."""

    def __init__(
        self,
        profiles: ProfileStore,
        skills: SkillRegistry,
        settings: SettingsStore,
        output_styles: OutputStyleStore,
        mcp: McpConfigStore,
        clock: Callable[[], str] | None = None,
    ):
        self.profiles = profiles
        self.skills = skills
        self.settings = settings
        self.output_styles = output_styles
        self.mcp = mcp
        self._clock = clock or _utc_now_iso

    def export(self, version: str, changelog: str, include_skills: bool = True) -> ConfigArchive:
        parse_version(version)
        mcp = self.mcp.load()
        archive = ConfigArchive(
            version=version,
            changelog=changelog,
            created_at=self._clock(),
            profiles=self.profiles.snapshot(),
            skills={s.id: s.to_dict() for s in self.skills.list()} if include_skills else {},
            settings=self.settings.load(),
            output_styles={s.id: s.to_dict() for s in self.output_styles.list()},
            mcp_servers=dict(mcp.servers),
            mcp_settings=mcp.settings.to_dict(),
        )
        logger.info(
            "Exported %s: %d profiles, %d skills, %d output styles, %d MCP servers",
            version,
            len(archive.profiles),
            len(archive.skills),
            len(archive.output_styles),
            len(archive.mcp_servers),
        )
        return archive

    def import_archive(self, archive: ConfigArchive) -> MergeReport:
        """Merge an archive into the local stores.

        Every collection is checked first; an archive that fails the check
        raises ArchiveError and leaves the stores untouched.
        """
        self.validate(archive)
        report = MergeReport()
        self._import_skills(archive, report["skills"])
        self._import_profiles(archive, report["profiles"])
        self._import_settings(archive, report["settings"])
        self._import_output_styles(archive, report["output_styles"])
        self._import_mcp(archive, report["mcp_servers"])
        return report

    def validate(self, archive: ConfigArchive) -> None:
        try:
            if not isinstance(archive.settings, dict):
                raise ArchiveError("settings must be an object")
            for record in archive.skills.values():
                SkillMeta.from_dict(record)
            for record in archive.output_styles.values():
                OutputStyle.from_dict(record)
            for name, server in archive.mcp_servers.items():
                validate_server(name, server)
            if archive.mcp_settings is not None:
                McpSettings.from_dict(archive.mcp_settings)
            merged, _ = self._merged_profiles(archive, MergeCounts())
            self.profiles.validate_records(merged)
        except (SkilletError, KeyError, TypeError, AttributeError, ValueError) as e:
            raise ArchiveError(f"Archive {archive.version} cannot be merged: {e}") from e

    def _merged_profiles(self, archive: ConfigArchive, counts: MergeCounts) -> tuple[dict[str, Any], list[str]]:
        """Merge incoming profiles and demote local user profiles the team replaces."""
        merged = merge_records(self.profiles.snapshot(), archive.profiles, counts)
        demoted = []
        incoming_users = [pid for pid, p in archive.profiles.items() if p.get("scope") == Scope.USER.value]
        if incoming_users:
            for pid, record in merged.items():
                if pid not in archive.profiles and record.get("scope") == Scope.USER.value:
                    merged[pid] = {**record, "scope": Scope.PROJECT.value}
                    demoted.append(pid)
        return merged, demoted

    def _import_profiles(self, archive: ConfigArchive, counts: MergeCounts) -> None:
        merged, demoted = self._merged_profiles(archive, counts)
        if not counts.changed:
            return
        for pid in demoted:
            logger.warning("Profile %s moved to project scope; the archive carries the team user profile", pid)
        self.profiles.replace_all(merged)

    def _import_skills(self, archive: ConfigArchive, counts: MergeCounts) -> None:
        for skill_id in sorted(archive.skills):
            incoming = SkillMeta.from_dict(archive.skills[skill_id])
            try:
                local = self.skills.resolve(skill_id)
            except SkillNotFoundError:
                local = None
            if local is None:
                counts.created += 1
            elif local.to_dict() != incoming.to_dict():
                counts.updated += 1
            else:
                counts.unchanged += 1
                continue
            self.skills.save(incoming)

    def _import_settings(self, archive: ConfigArchive, counts: MergeCounts) -> None:
        local = self.settings.load()
        merged = merge_records(local, archive.settings, counts)
        if counts.changed:
            self.settings.save(merged)

    def _import_output_styles(self, archive: ConfigArchive, counts: MergeCounts) -> None:
        local = {s.id: s.to_dict() for s in self.output_styles.list()}
        for style_id in sorted(archive.output_styles):
            record = archive.output_styles[style_id]
            if style_id not in local:
                counts.created += 1
            elif local[style_id] != record:
                counts.updated += 1
            else:
                counts.unchanged += 1
                continue
            self.output_styles.save(OutputStyle.from_dict(record))

    def _import_mcp(self, archive: ConfigArchive, counts: MergeCounts) -> None:
        config = self.mcp.load()
        config.servers = merge_records(config.servers, archive.mcp_servers, counts)

        settings_changed = False
        if archive.mcp_settings is not None:
            incoming = McpSettings.from_dict(archive.mcp_settings)
            settings_changed = incoming != config.settings
            config.settings = incoming

        if counts.changed or settings_changed:
            self.mcp.save(config)

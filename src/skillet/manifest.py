"""The on-disk record of what an install produced at a target."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from skillet import SkilletError

MANIFEST_VERSION = 1


class ManifestError(SkilletError):
    """Raised when a manifest file cannot be read."""


@dataclass(frozen=True)
class ManifestEntry:
    path: str
    hash: str
    role: str
    skill_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"path": self.path, "hash": self.hash, "role": self.role}
        if self.skill_id:
            d["skillId"] = self.skill_id
        return d

    @classmethod
    def from_dict(cls, d: dict) -> ManifestEntry:
        return cls(path=d["path"], hash=d["hash"], role=d["role"], skill_id=d.get("skillId"))


@dataclass
class InstalledManifest:
    profile_id: str
    scope: str
    source_version: str
    installed_at: str
    files: list[ManifestEntry] = field(default_factory=list)

    def entry(self, path: str) -> ManifestEntry | None:
        for e in self.files:
            if e.path == path:
                return e
        return None

    def paths(self, role: str | None = None) -> list[str]:
        return [e.path for e in self.files if role is None or e.role == role]

    def to_json(self) -> bytes:
        data = {
            "version": MANIFEST_VERSION,
            "profileId": self.profile_id,
            "scope": self.scope,
            "sourceVersion": self.source_version,
            "installedAt": self.installed_at,
            "files": [e.to_dict() for e in sorted(self.files, key=lambda e: e.path)],
        }
        return (json.dumps(data, indent=2, sort_keys=False) + "\n").encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes) -> InstalledManifest:
        try:
            data = json.loads(raw.decode("utf-8"))
            return cls(
                profile_id=data["profileId"],
                scope=data["scope"],
                source_version=data.get("sourceVersion", ""),
                installed_at=data.get("installedAt", ""),
                files=[ManifestEntry.from_dict(f) for f in data.get("files", [])],
            )
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError) as e:
            raise ManifestError(f"Install manifest is corrupt: {e}") from e

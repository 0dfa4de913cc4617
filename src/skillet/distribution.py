"""Deploy the team configuration as a release, and sync it back down."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from skillet import SkilletError
from skillet.adapters.local import atomic_write_text
from skillet.config import DEFAULT_TAG_PREFIX
from skillet.packager import (
    ARCHIVE_FORMAT,
    ArchiveError,
    ConfigArchive,
    ConfigPackager,
    MergeReport,
    parse_version,
)
from skillet.releases import Release, ReleaseExistsError, ReleaseStore, ReleaseStoreError

logger = logging.getLogger(__name__)


class VersionFileError(SkilletError):
    """The local version record exists but cannot be read."""


class DeployStatus(str, Enum):
    PUBLISHED = "published"
    VERSION_CONFLICT = "version-conflict"
    PUBLISH_FAILED = "publish-failed"


class SyncStatus(str, Enum):
    SYNCED = "synced"
    UP_TO_DATE = "up-to-date"
    NO_RELEASE = "no-release"
    DOWNLOAD_FAILED = "download-failed"
    INCOMPATIBLE = "incompatible"
    CANCELLED = "cancelled"


@dataclass
class DeployResult:
    status: DeployStatus
    version: str
    tag: str
    release: Release | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == DeployStatus.PUBLISHED


@dataclass
class SyncResult:
    status: SyncStatus
    version: str | None = None
    local_version: str | None = None
    report: MergeReport | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in (SyncStatus.SYNCED, SyncStatus.UP_TO_DATE, SyncStatus.NO_RELEASE)


class LocalVersion:
    """The configuration version this machine last deployed or synced."""

    def __init__(self, path: Path):
        self.path = path

    def get(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            version = json.loads(self.path.read_text(encoding="utf-8")).get("version")
            if version is not None:
                parse_version(version)
        except (ValueError, AttributeError) as e:
            raise VersionFileError(f"{self.path} is corrupt: {e}") from e
        return version

    def set(self, version: str) -> None:
        data = {"version": version, "recordedAt": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")}
        atomic_write_text(self.path, json.dumps(data, indent=2) + "\n")


class DistributionClient:
    def __init__(
        self,
        packager: ConfigPackager,
        releases: ReleaseStore,
        local_version: LocalVersion,
        tag_prefix: str = DEFAULT_TAG_PREFIX,
        include_skills: bool = True,
        timeout: float | None = None,
    ):
        self.packager = packager
        self.releases = releases
        self.local_version = local_version
        self.tag_prefix = tag_prefix
        self.include_skills = include_skills
        self.timeout = timeout

    def tag_for(self, version: str) -> str:
        return f"{self.tag_prefix}{version}"

    def version_of(self, tag: str) -> str | None:
        if not tag.startswith(self.tag_prefix):
            return None
        version = tag[len(self.tag_prefix):]
        try:
            parse_version(version)
        except ValueError:
            return None
        return version

    def latest_release(self, timeout: float | None = None) -> tuple[str, Release] | None:
        """Highest-versioned release carrying our tag prefix."""
        best: tuple[tuple[int, int, int], str, Release] | None = None
        for release in self.releases.list_releases(timeout=timeout or self.timeout):
            version = self.version_of(release.tag)
            if version is None:
                continue
            key = parse_version(version)
            if best is None or key > best[0]:
                best = (key, version, release)
        if best is None:
            return None
        return best[1], best[2]

    def deploy(self, version: str, changelog: str, timeout: float | None = None) -> DeployResult:
        parse_version(version)
        timeout = timeout or self.timeout
        tag = self.tag_for(version)

        try:
            existing = self.releases.list_releases(timeout=timeout)
        except ReleaseStoreError as e:
            return DeployResult(DeployStatus.PUBLISH_FAILED, version, tag, error=str(e))
        if any(r.tag == tag for r in existing):
            logger.info("Release %s already exists; nothing published", tag)
            return DeployResult(DeployStatus.VERSION_CONFLICT, version, tag)

        archive = self.packager.export(version, changelog, include_skills=self.include_skills)
        data = archive.to_bytes()

        try:
            release = self.releases.upload(tag, data, changelog, timeout=timeout)
        except ReleaseExistsError:
            return DeployResult(DeployStatus.VERSION_CONFLICT, version, tag)
        except ReleaseStoreError as e:
            logger.error("Deploy of %s failed: %s", tag, e)
            return DeployResult(DeployStatus.PUBLISH_FAILED, version, tag, error=str(e))

        local = self.local_version.get()
        if local is None or parse_version(version) > parse_version(local):
            self.local_version.set(version)
        else:
            logger.info("Keeping local version %s; %s is not newer", local, version)
        logger.info("Deployed %s (%d bytes) to %s", tag, len(data), self.releases.display_name)
        return DeployResult(DeployStatus.PUBLISHED, version, tag, release=release)

    def sync(self, timeout: float | None = None, cancel: threading.Event | None = None) -> SyncResult:
        timeout = timeout or self.timeout
        local = self.local_version.get()

        try:
            latest = self.latest_release(timeout=timeout)
        except ReleaseStoreError as e:
            return SyncResult(SyncStatus.DOWNLOAD_FAILED, local_version=local, error=str(e))
        if latest is None:
            return SyncResult(SyncStatus.NO_RELEASE, local_version=local)

        version, release = latest
        if local is not None and parse_version(version) <= parse_version(local):
            return SyncResult(SyncStatus.UP_TO_DATE, version=local, local_version=local)

        try:
            data = self.releases.download(release.asset_url, timeout=timeout)
            archive = ConfigArchive.from_bytes(data)
        except (ReleaseStoreError, ArchiveError) as e:
            logger.error("Sync of %s failed: %s", release.tag, e)
            return SyncResult(SyncStatus.DOWNLOAD_FAILED, version=version, local_version=local, error=str(e))

        if archive.version != version:
            return SyncResult(
                SyncStatus.DOWNLOAD_FAILED,
                version=version,
                local_version=local,
                error=f"download failed: {release.tag} contains version {archive.version}",
            )
        if archive.format > ARCHIVE_FORMAT:
            return SyncResult(
                SyncStatus.INCOMPATIBLE,
                version=version,
                local_version=local,
                error=f"archive format {archive.format} is newer than supported format {ARCHIVE_FORMAT}",
            )
        if cancel is not None and cancel.is_set():
            return SyncResult(SyncStatus.CANCELLED, version=version, local_version=local)

        try:
            report = self.packager.import_archive(archive)
        except ArchiveError as e:
            logger.error("Sync of %s failed: %s", release.tag, e)
            return SyncResult(SyncStatus.DOWNLOAD_FAILED, version=version, local_version=local, error=str(e))
        self.local_version.set(version)
        logger.info("Synced %s from %s", version, self.releases.display_name)
        return SyncResult(SyncStatus.SYNCED, version=version, local_version=local, report=report)

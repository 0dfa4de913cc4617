"""Release stores: where deployed configuration archives are published.

Security Requirements:
- HTTPS only for API calls
- Token read from the environment, never written to config
- Timeout on every network call
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import requests

from skillet import SkilletError
from skillet.adapters.local import atomic_write, atomic_write_text
from skillet.config import ReleaseConfig

logger = logging.getLogger(__name__)

ASSET_NAME = "skillet-config.zip"
NOTES_NAME = "CHANGELOG.md"


class ReleaseStoreError(SkilletError):
    """A release store operation failed. Carries the operation name."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class ReleaseExistsError(ReleaseStoreError):
    def __init__(self, tag: str):
        super().__init__("upload", f"release {tag} already exists")
        self.tag = tag


@dataclass(frozen=True)
class Release:
    tag: str
    asset_url: str
    changelog: str = ""


class ReleaseStore(ABC):
    """Append-only store of tagged configuration archives."""

    @abstractmethod
    def list_releases(self, timeout: float | None = None) -> list[Release]:
        """Return every release that carries an archive asset."""

    @abstractmethod
    def upload(self, tag: str, data: bytes, changelog: str, timeout: float | None = None) -> Release:
        """Publish data under tag. Raises ReleaseExistsError if tag is taken."""

    @abstractmethod
    def download(self, asset_url: str, timeout: float | None = None) -> bytes:
        """Fetch the archive bytes for a release."""

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for status messages."""


class GitHubReleaseStore(ReleaseStore):
    """Publishes archives as assets on GitHub releases."""

    API_BASE = "https://api.github.com"
    UPLOAD_BASE = "https://uploads.github.com"
    API_TIMEOUT = 30

    def __init__(self, repo: str, token: str | None = None, timeout: float | None = None):
        self._validate_repo(repo)
        self.repo = repo
        self.token = token
        self.timeout = timeout or self.API_TIMEOUT

    @staticmethod
    def _validate_repo(repo: str) -> None:
        if not re.match(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$", repo):
            raise ValueError(f"Invalid GitHub repository '{repo}', expected 'owner/name'")

    def _headers(self, accept: str = "application/vnd.github+json") -> dict[str, str]:
        headers = {"Accept": accept, "X-GitHub-Api-Version": "2022-11-28"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _message(response: requests.Response) -> str:
        try:
            return response.json().get("message", "Unknown error")
        except ValueError:
            return response.text or "Unknown error"

    def list_releases(self, timeout: float | None = None) -> list[Release]:
        url = f"{self.API_BASE}/repos/{self.repo}/releases"
        try:
            response = requests.get(
                url, headers=self._headers(), params={"per_page": 100}, timeout=timeout or self.timeout
            )
        except requests.RequestException as e:
            raise ReleaseStoreError("list releases", str(e)) from e
        if response.status_code != 200:
            raise ReleaseStoreError("list releases", f"{response.status_code} - {self._message(response)}")

        releases = []
        for item in response.json():
            asset = next((a for a in item.get("assets", []) if a.get("name") == ASSET_NAME), None)
            if asset is None:
                continue
            releases.append(Release(tag=item["tag_name"], asset_url=asset["url"], changelog=item.get("body") or ""))
        return releases

    def upload(self, tag: str, data: bytes, changelog: str, timeout: float | None = None) -> Release:
        timeout = timeout or self.timeout
        url = f"{self.API_BASE}/repos/{self.repo}/releases"
        payload = {"tag_name": tag, "name": tag, "body": changelog, "draft": False, "prerelease": False}
        try:
            response = requests.post(url, headers=self._headers(), json=payload, timeout=timeout)
        except requests.RequestException as e:
            raise ReleaseStoreError("upload", str(e)) from e

        if response.status_code == 422:
            raise ReleaseExistsError(tag)
        if response.status_code != 201:
            raise ReleaseStoreError("upload", f"{response.status_code} - {self._message(response)}")
        release_id = response.json()["id"]

        asset_url = f"{self.UPLOAD_BASE}/repos/{self.repo}/releases/{release_id}/assets"
        try:
            response = requests.post(
                asset_url,
                headers={**self._headers(), "Content-Type": "application/zip"},
                params={"name": ASSET_NAME},
                data=data,
                timeout=timeout,
            )
        except requests.RequestException as e:
            raise ReleaseStoreError("upload", str(e)) from e
        if response.status_code != 201:
            raise ReleaseStoreError("upload", f"{response.status_code} - {self._message(response)}")

        logger.info("Published %s to %s", tag, self.repo)
        return Release(tag=tag, asset_url=response.json()["url"], changelog=changelog)

    def download(self, asset_url: str, timeout: float | None = None) -> bytes:
        if not asset_url.startswith("https://"):
            raise ReleaseStoreError("download", f"refusing non-HTTPS asset URL {asset_url}")
        try:
            response = requests.get(
                asset_url,
                headers=self._headers(accept="application/octet-stream"),
                timeout=timeout or self.timeout,
            )
        except requests.RequestException as e:
            raise ReleaseStoreError("download", str(e)) from e
        if response.status_code != 200:
            raise ReleaseStoreError("download", f"{response.status_code} - {self._message(response)}")
        return response.content

    @property
    def display_name(self) -> str:
        return f"github {self.repo}"


class DirectoryReleaseStore(ReleaseStore):
    """Releases kept as ``<root>/<tag>/`` folders, e.g. on a shared drive."""

    def __init__(self, root: Path):
        self.root = root

    def list_releases(self, timeout: float | None = None) -> list[Release]:
        if not self.root.exists():
            return []
        releases = []
        for entry in sorted(self.root.iterdir()):
            asset = entry / ASSET_NAME
            if not asset.is_file():
                continue
            notes = entry / NOTES_NAME
            changelog = notes.read_text(encoding="utf-8") if notes.exists() else ""
            releases.append(Release(tag=entry.name, asset_url=str(asset), changelog=changelog))
        return releases

    def upload(self, tag: str, data: bytes, changelog: str, timeout: float | None = None) -> Release:
        release_dir = self.root / tag
        if (release_dir / ASSET_NAME).exists():
            raise ReleaseExistsError(tag)
        try:
            atomic_write_text(release_dir / NOTES_NAME, changelog)
            atomic_write(release_dir / ASSET_NAME, data)
        except OSError as e:
            raise ReleaseStoreError("upload", str(e)) from e
        return Release(tag=tag, asset_url=str(release_dir / ASSET_NAME), changelog=changelog)

    def download(self, asset_url: str, timeout: float | None = None) -> bytes:
        try:
            return Path(asset_url).read_bytes()
        except OSError as e:
            raise ReleaseStoreError("download", str(e)) from e

    @property
    def display_name(self) -> str:
        return f"directory {self.root}"


def create_release_store(config: ReleaseConfig, timeout: float | None = None) -> ReleaseStore:
    """Factory: create the right release store from the release config block."""
    if config.kind == "github":
        if not config.repo:
            raise ValueError("GitHub release store needs 'repo'")
        return GitHubReleaseStore(config.repo, token=os.environ.get(config.token_env), timeout=timeout)
    elif config.kind == "directory":
        if not config.path:
            raise ValueError("Directory release store needs 'path'")
        return DirectoryReleaseStore(Path(config.path).expanduser())
    else:
        raise ValueError(f"Unknown release store type: {config.kind}")

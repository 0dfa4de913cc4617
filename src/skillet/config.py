"""Configuration management for skillet."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from skillet import SkilletError
from skillet.adapters.local import atomic_write_text

CONFIG_DIR = Path(os.environ.get("SKILLET_HOME", Path.home() / ".config" / "skillet"))
CONFIG_FILE = CONFIG_DIR / "config.json"
CONFIG_VERSION = 1

DEFAULT_USER_ROOT = "~/.claude"
DEFAULT_TAG_PREFIX = "config-v"
DEFAULT_SESSION_WINDOW = 3600
DEFAULT_TIMEOUT = 30


class ConfigError(SkilletError):
    """Raised when the config file cannot be understood."""


@dataclass
class ReleaseConfig:
    """Where deployed configuration archives are published."""

    kind: str = "github"
    # GitHub-specific: "owner/name"
    repo: str | None = None
    # Directory-specific
    path: str | None = None
    tag_prefix: str = DEFAULT_TAG_PREFIX
    token_env: str = "GITHUB_TOKEN"

    @property
    def is_configured(self) -> bool:
        if self.kind == "github":
            return bool(self.repo)
        if self.kind == "directory":
            return bool(self.path)
        return False


@dataclass
class Config:
    """Root configuration object."""

    version: int = CONFIG_VERSION
    data_dir: str = str(CONFIG_DIR)
    user_root: str = DEFAULT_USER_ROOT
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    session_window_seconds: int = DEFAULT_SESSION_WINDOW
    auto_sync: bool = False
    bundle_skills: bool = True
    timeout: float = DEFAULT_TIMEOUT

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def user_root_path(self) -> Path:
        return Path(self.user_root).expanduser()

    @property
    def profiles_file(self) -> Path:
        return self.data_path / "profiles.json"

    @property
    def skills_dir(self) -> Path:
        return self.data_path / "skills"

    @property
    def settings_file(self) -> Path:
        return self.data_path / "settings.json"

    @property
    def output_styles_dir(self) -> Path:
        return self.data_path / "output-styles"

    @property
    def mcp_file(self) -> Path:
        return self.data_path / ".mcp.json"

    @property
    def version_file(self) -> Path:
        return self.data_path / "version.json"

    @property
    def session_file(self) -> Path:
        return self.data_path / "session.json"

    @property
    def rag_settings_file(self) -> Path:
        return self.data_path / "rag-settings.json"


def _release_from_dict(d: dict) -> ReleaseConfig:
    return ReleaseConfig(
        kind=d.get("kind", "github"),
        repo=d.get("repo"),
        path=d.get("path"),
        tag_prefix=d.get("tag_prefix", DEFAULT_TAG_PREFIX),
        token_env=d.get("token_env", "GITHUB_TOKEN"),
    )


def load_config(path: Path | None = None) -> Config:
    """Load config from disk. Returns default Config if file doesn't exist."""
    path = path or CONFIG_FILE
    if not path.exists():
        return Config()

    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e

    release = _release_from_dict(data.get("release", {}))
    if release.kind not in ("github", "directory"):
        raise ConfigError(f"Unknown release store kind: {release.kind}")

    return Config(
        version=data.get("version", CONFIG_VERSION),
        data_dir=data.get("data_dir", str(CONFIG_DIR)),
        user_root=data.get("user_root", DEFAULT_USER_ROOT),
        release=release,
        session_window_seconds=data.get("session_window_seconds", DEFAULT_SESSION_WINDOW),
        auto_sync=data.get("auto_sync", False),
        bundle_skills=data.get("bundle_skills", True),
        timeout=data.get("timeout", DEFAULT_TIMEOUT),
    )


def save_config(config: Config, path: Path | None = None) -> None:
    """Save config to disk."""
    path = path or CONFIG_FILE

    rd: dict[str, Any] = {
        "kind": config.release.kind,
        "tag_prefix": config.release.tag_prefix,
    }
    if config.release.repo:
        rd["repo"] = config.release.repo
    if config.release.path:
        rd["path"] = config.release.path
    if config.release.token_env != "GITHUB_TOKEN":
        rd["token_env"] = config.release.token_env

    data: dict[str, Any] = {
        "version": config.version,
        "data_dir": config.data_dir,
        "user_root": config.user_root,
        "release": rd,
        "session_window_seconds": config.session_window_seconds,
        "auto_sync": config.auto_sync,
        "bundle_skills": config.bundle_skills,
        "timeout": config.timeout,
    }

    atomic_write_text(path, json.dumps(data, indent=2) + "\n")

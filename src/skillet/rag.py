"""Per-project RAG configuration.

A project opts into the team's retrieval service by carrying
``.claude/rag.json`` (project id, API key, optional service URL). Global
settings (default service URL, admin key) live in the skillet data dir.
Saving and searching happen in the service itself; skillet only manages
the keys and the files that point the assistant at it.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import requests

from skillet import SkilletError
from skillet.adapters.local import atomic_write_text

logger = logging.getLogger(__name__)

RAG_CONFIG_FILE = "rag.json"
ADMIN_KEY_ENV = "SKILLET_RAG_ADMIN_KEY"
MCP_URL_ENV = "SKILLET_RAG_MCP_URL"
API_TIMEOUT = 30


class RagError(SkilletError):
    """Raised when RAG configuration is missing, duplicated or unreadable."""


class RagAdminError(RagError):
    """A key-management call to the RAG service failed."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


@dataclass
class RagConfig:
    project_id: str
    api_key: str
    mcp_url: str | None = None

    def to_dict(self) -> dict[str, str]:
        d = {"projectId": self.project_id, "apiKey": self.api_key}
        if self.mcp_url:
            d["mcpUrl"] = self.mcp_url
        return d

    @classmethod
    def from_dict(cls, d: dict) -> RagConfig:
        return cls(project_id=d["projectId"], api_key=d["apiKey"], mcp_url=d.get("mcpUrl"))


@dataclass
class RagSettings:
    default_mcp_url: str | None = None
    admin_key: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"defaultMcpUrl": self.default_mcp_url, "adminKey": self.admin_key}

    @classmethod
    def from_dict(cls, d: dict) -> RagSettings:
        return cls(default_mcp_url=d.get("defaultMcpUrl"), admin_key=d.get("adminKey"))


@dataclass(frozen=True)
class ApiKeyInfo:
    key: str
    name: str
    projects: list[str] = field(default_factory=list)
    created: str = ""

    @property
    def all_projects(self) -> bool:
        return "*" in self.projects


def mask_key(key: str) -> str:
    if len(key) <= 10:
        return "*" * len(key)
    return f"{key[:7]}...{key[-4:]}"


class RagConfigStore:
    """Reads and writes project RAG files plus the global RAG settings."""

    def __init__(self, settings_path: Path):
        self.settings_path = settings_path

    @staticmethod
    def config_path(project: Path) -> Path:
        return project / ".claude" / RAG_CONFIG_FILE

    def load_config(self, project: Path) -> RagConfig | None:
        path = self.config_path(project)
        if not path.exists():
            return None
        try:
            return RagConfig.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RagError(f"{path} is not a valid RAG config: {e}") from e

    def save_config(self, project: Path, config: RagConfig) -> None:
        atomic_write_text(self.config_path(project), json.dumps(config.to_dict(), indent=2) + "\n")

    def is_configured(self, project: Path) -> bool:
        return self.load_config(project) is not None

    def init(self, project: Path, project_id: str, api_key: str) -> RagConfig:
        existing = self.load_config(project)
        if existing is not None:
            raise RagError(f"RAG already initialized for project '{existing.project_id}'")
        if not project_id.strip() or not api_key.strip():
            raise RagError("RAG needs both a project id and an API key")

        config = RagConfig(project_id=project_id, api_key=api_key)
        self.save_config(project, config)
        logger.info("Initialized RAG for %s in %s", project_id, project)
        return config

    def remove(self, project: Path) -> None:
        path = self.config_path(project)
        if not path.exists():
            raise RagError("RAG not configured for this project")
        path.unlink()

    def load_settings(self) -> RagSettings:
        if not self.settings_path.exists():
            return RagSettings()
        try:
            return RagSettings.from_dict(json.loads(self.settings_path.read_text(encoding="utf-8")))
        except (ValueError, AttributeError) as e:
            raise RagError(f"{self.settings_path} is not valid RAG settings: {e}") from e

    def save_settings(self, settings: RagSettings) -> None:
        atomic_write_text(self.settings_path, json.dumps(settings.to_dict(), indent=2) + "\n")

    def set_admin_key(self, admin_key: str) -> None:
        settings = self.load_settings()
        settings.admin_key = admin_key
        self.save_settings(settings)

    def set_default_mcp_url(self, url: str | None) -> None:
        settings = self.load_settings()
        settings.default_mcp_url = url
        self.save_settings(settings)

    def admin_key(self) -> str | None:
        """Admin key from global settings, falling back to the environment."""
        return self.load_settings().admin_key or os.environ.get(ADMIN_KEY_ENV)

    def mcp_url(self, config: RagConfig | None = None) -> str | None:
        """Service URL: project config, then global settings, then the environment."""
        if config is not None and config.mcp_url:
            return config.mcp_url
        return self.load_settings().default_mcp_url or os.environ.get(MCP_URL_ENV)


class RagAdminClient:
    """Manages project API keys through the RAG service's admin endpoints."""

    def __init__(self, base_url: str, admin_key: str, timeout: float | None = None):
        if not base_url.startswith("https://"):
            raise RagError(f"Refusing non-HTTPS RAG service URL {base_url}")
        self.base_url = base_url.rstrip("/")
        self.admin_key = admin_key
        self.timeout = timeout or API_TIMEOUT

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.admin_key}", "Accept": "application/json"}

    @staticmethod
    def _message(response: requests.Response) -> str:
        return f"{response.status_code} - {response.text or 'Unknown error'}"

    def create_key(self, name: str, projects: list[str] | None = None) -> str:
        payload = {"name": name, "projects": projects or ["*"]}
        try:
            response = requests.post(
                f"{self.base_url}/admin/keys", headers=self._headers(), json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise RagAdminError("create key", str(e)) from e
        if not response.ok:
            raise RagAdminError("create key", self._message(response))
        return response.json()["key"]

    def list_keys(self) -> list[ApiKeyInfo]:
        try:
            response = requests.get(f"{self.base_url}/admin/keys", headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise RagAdminError("list keys", str(e)) from e
        if not response.ok:
            raise RagAdminError("list keys", self._message(response))

        keys = []
        for item in response.json().get("keys", []):
            data: dict[str, Any] = item.get("data", {})
            keys.append(
                ApiKeyInfo(
                    key=item["key"],
                    name=data.get("name", ""),
                    projects=list(data.get("projects", [])),
                    created=data.get("created", ""),
                )
            )
        return keys

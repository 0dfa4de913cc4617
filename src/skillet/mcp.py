"""MCP server configuration (``.mcp.json``) and syncing it from a source."""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import requests

from skillet import SkilletError
from skillet.adapters.local import atomic_write_text

logger = logging.getLogger(__name__)

MCP_NOTE = "This file is managed by skillet. Edit it with `skillet mcp` or through a deploy."
FETCH_TIMEOUT = 30


class McpConfigError(SkilletError):
    """Raised when an MCP config is missing, malformed or unreachable."""


@dataclass
class McpSettings:
    default_timeout: int = 30000
    retry_attempts: int = 3
    log_level: str = "info"

    def to_dict(self) -> dict[str, Any]:
        return {
            "defaultTimeout": self.default_timeout,
            "retryAttempts": self.retry_attempts,
            "logLevel": self.log_level,
        }

    @classmethod
    def from_dict(cls, d: dict) -> McpSettings:
        return cls(
            default_timeout=d.get("defaultTimeout", 30000),
            retry_attempts=d.get("retryAttempts", 3),
            log_level=d.get("logLevel", "info"),
        )


@dataclass
class McpConfig:
    """Servers are kept as raw mappings (stdio or http transport)."""

    servers: dict[str, dict[str, Any]] = field(default_factory=dict)
    settings: McpSettings = field(default_factory=McpSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "_note": MCP_NOTE,
            "mcpServers": {name: self.servers[name] for name in sorted(self.servers)},
            "settings": self.settings.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: dict) -> McpConfig:
        servers = d.get("mcpServers")
        if not isinstance(servers, dict):
            raise McpConfigError("MCP config must contain an 'mcpServers' object")
        for name, server in servers.items():
            validate_server(name, server)
        return cls(servers=dict(servers), settings=McpSettings.from_dict(d.get("settings", {})))


def validate_server(name: str, server: Any) -> None:
    if not isinstance(server, dict):
        raise McpConfigError(f"MCP server '{name}' must be an object")
    if not server.get("command") and not server.get("url"):
        raise McpConfigError(f"MCP server '{name}' needs either 'command' (stdio) or 'url' (http)")


class McpConfigStore:
    def __init__(self, path: Path):
        self.path = path

    def load(self) -> McpConfig:
        if not self.path.exists():
            return McpConfig()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise McpConfigError(f"{self.path} is not valid JSON: {e}") from e
        return McpConfig.from_dict(data)

    def save(self, config: McpConfig) -> None:
        atomic_write_text(self.path, json.dumps(config.to_dict(), indent=2, ensure_ascii=False) + "\n")

    def add_server(self, name: str, server: dict[str, Any]) -> None:
        validate_server(name, server)
        config = self.load()
        if name in config.servers:
            raise McpConfigError(f"MCP server '{name}' already exists")
        config.servers[name] = server
        self.save(config)

    def update_server(self, name: str, server: dict[str, Any]) -> None:
        """Replace the definition of an existing server."""
        validate_server(name, server)
        config = self.load()
        if name not in config.servers:
            raise McpConfigError(f"MCP server '{name}' not found")
        config.servers[name] = server
        self.save(config)

    def update_settings(self, settings: McpSettings) -> None:
        config = self.load()
        config.settings = settings
        self.save(config)

    def remove_server(self, name: str) -> None:
        config = self.load()
        if config.servers.pop(name, None) is None:
            raise McpConfigError(f"MCP server '{name}' not found")
        self.save(config)

    def backup(self) -> Path | None:
        """Copy the current file to ``.mcp.json.backup.YYYYMMDD_HHMMSS``."""
        if not self.path.exists():
            return None
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        target = self.path.with_name(f"{self.path.name}.backup.{stamp}")
        shutil.copy2(self.path, target)
        return target

    def sync_from(self, source: str, timeout: float = FETCH_TIMEOUT) -> McpConfig:
        """Replace the local MCP config with one fetched from a URL or file."""
        if source.startswith(("http://", "https://")):
            try:
                response = requests.get(source, timeout=timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                raise McpConfigError(f"Failed to fetch MCP config from {source}: {e}") from e
            text = response.text
        else:
            path = Path(source).expanduser()
            if not path.exists():
                raise McpConfigError(f"MCP config file not found: {path}")
            text = path.read_text(encoding="utf-8")

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise McpConfigError(f"MCP config from {source} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise McpConfigError("MCP config root must be an object")

        config = McpConfig.from_dict(data)
        backup = self.backup()
        if backup:
            logger.info("Backed up MCP config to %s", backup)
        self.save(config)
        return config

"""Tests for MCP server configuration."""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from skillet.mcp import McpConfig, McpConfigError, McpConfigStore, McpSettings

TEAM_CONFIG = {
    "mcpServers": {
        "docs": {"command": "npx", "args": ["-y", "docs-server"]},
        "search": {"type": "http", "url": "https://mcp.example.com/search"},
    },
    "settings": {"defaultTimeout": 60000, "retryAttempts": 5, "logLevel": "debug"},
}


@pytest.fixture
def store(tmp_path):
    return McpConfigStore(tmp_path / ".mcp.json")


class TestMcpConfig:
    def test_from_dict(self):
        config = McpConfig.from_dict(TEAM_CONFIG)
        assert set(config.servers) == {"docs", "search"}
        assert config.settings == McpSettings(default_timeout=60000, retry_attempts=5, log_level="debug")

    def test_defaults(self):
        config = McpConfig.from_dict({"mcpServers": {}})
        assert config.settings.to_dict() == {"defaultTimeout": 30000, "retryAttempts": 3, "logLevel": "info"}

    def test_requires_servers_object(self):
        with pytest.raises(McpConfigError, match="mcpServers"):
            McpConfig.from_dict({"servers": {}})

    def test_server_needs_command_or_url(self):
        with pytest.raises(McpConfigError, match="needs either"):
            McpConfig.from_dict({"mcpServers": {"bad": {"args": []}}})


class TestMcpConfigStore:
    def test_add_and_remove(self, store):
        store.add_server("docs", {"command": "npx"})
        assert store.load().servers == {"docs": {"command": "npx"}}
        with pytest.raises(McpConfigError, match="already exists"):
            store.add_server("docs", {"command": "other"})

        store.remove_server("docs")
        assert store.load().servers == {}
        with pytest.raises(McpConfigError, match="not found"):
            store.remove_server("docs")

    def test_saved_file_has_note(self, store):
        store.save(McpConfig.from_dict(TEAM_CONFIG))
        data = json.loads(store.path.read_text())
        assert "_note" in data
        assert list(data["mcpServers"]) == ["docs", "search"]

    def test_sync_from_file_backs_up(self, store, tmp_path):
        store.add_server("old", {"command": "old-server"})
        source = tmp_path / "team.json"
        source.write_text(json.dumps(TEAM_CONFIG))

        config = store.sync_from(str(source))
        assert set(config.servers) == {"docs", "search"}
        backups = list(tmp_path.glob(".mcp.json.backup.*"))
        assert len(backups) == 1
        assert "old" in json.loads(backups[0].read_text())["mcpServers"]

    def test_sync_from_missing_file(self, store, tmp_path):
        with pytest.raises(McpConfigError, match="not found"):
            store.sync_from(str(tmp_path / "nope.json"))

    @patch("requests.get")
    def test_sync_from_url(self, mock_get, store):
        response = Mock()
        response.text = json.dumps(TEAM_CONFIG)
        response.raise_for_status.return_value = None
        mock_get.return_value = response

        store.sync_from("https://config.example.com/mcp.json", timeout=5)
        assert set(store.load().servers) == {"docs", "search"}
        assert mock_get.call_args[1]["timeout"] == 5

    @patch("requests.get")
    def test_sync_from_url_failure_keeps_local(self, mock_get, store):
        store.add_server("old", {"command": "old-server"})
        mock_get.side_effect = requests.Timeout("timed out")

        with pytest.raises(McpConfigError, match="Failed to fetch"):
            store.sync_from("https://config.example.com/mcp.json")
        assert set(store.load().servers) == {"old"}

    def test_invalid_json_source(self, store, tmp_path):
        source = tmp_path / "team.json"
        source.write_text("{oops")
        with pytest.raises(McpConfigError, match="not valid JSON"):
            store.sync_from(str(source))

    def test_update_server(self, store):
        store.add_server("docs", {"command": "npx"})
        store.update_server("docs", {"type": "http", "url": "https://mcp.example.com/docs"})
        assert store.load().servers["docs"]["url"] == "https://mcp.example.com/docs"

        with pytest.raises(McpConfigError, match="not found"):
            store.update_server("ghost", {"command": "npx"})
        with pytest.raises(McpConfigError, match="needs either"):
            store.update_server("docs", {"args": []})

    def test_update_settings_keeps_servers(self, store):
        store.add_server("docs", {"command": "npx"})
        store.update_settings(McpSettings(default_timeout=5000, retry_attempts=1, log_level="debug"))
        config = store.load()
        assert config.settings.default_timeout == 5000
        assert config.settings.log_level == "debug"
        assert set(config.servers) == {"docs"}

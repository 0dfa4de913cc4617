"""Tests for release stores."""

from unittest.mock import Mock, patch

import pytest
import requests

from skillet.config import ReleaseConfig
from skillet.releases import (
    ASSET_NAME,
    DirectoryReleaseStore,
    GitHubReleaseStore,
    ReleaseExistsError,
    ReleaseStoreError,
    create_release_store,
)


def _response(status_code, json_data=None, content=b""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.content = content
    response.text = ""
    return response


class TestGitHubListReleases:
    @patch("requests.get")
    def test_keeps_releases_with_archive_asset(self, mock_get):
        mock_get.return_value = _response(
            200,
            [
                {
                    "tag_name": "config-v1.0.0",
                    "body": "first",
                    "assets": [{"name": ASSET_NAME, "url": "https://api.github.com/assets/1"}],
                },
                {"tag_name": "app-v3.0.0", "body": "", "assets": [{"name": "app.tar.gz", "url": "x"}]},
            ],
        )
        store = GitHubReleaseStore("team/config", token="t0ken")

        releases = store.list_releases()
        assert [r.tag for r in releases] == ["config-v1.0.0"]
        assert releases[0].asset_url == "https://api.github.com/assets/1"
        assert releases[0].changelog == "first"

        call_args = mock_get.call_args
        assert call_args[0][0] == "https://api.github.com/repos/team/config/releases"
        assert call_args[1]["headers"]["Authorization"] == "Bearer t0ken"
        assert call_args[1]["timeout"] == 30

    @patch("requests.get")
    def test_api_error(self, mock_get):
        mock_get.return_value = _response(404, {"message": "Not Found"})
        with pytest.raises(ReleaseStoreError, match="list releases failed: 404 - Not Found"):
            GitHubReleaseStore("team/config").list_releases()

    @patch("requests.get")
    def test_network_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(ReleaseStoreError) as exc:
            GitHubReleaseStore("team/config").list_releases(timeout=5)
        assert exc.value.operation == "list releases"

    def test_invalid_repo(self):
        with pytest.raises(ValueError):
            GitHubReleaseStore("not a repo")


class TestGitHubUpload:
    @patch("requests.post")
    def test_creates_release_then_asset(self, mock_post):
        mock_post.side_effect = [
            _response(201, {"id": 42}),
            _response(201, {"url": "https://api.github.com/assets/7"}),
        ]
        store = GitHubReleaseStore("team/config", token="t0ken")

        release = store.upload("config-v1.0.0", b"zip-bytes", "notes")
        assert release.asset_url == "https://api.github.com/assets/7"

        create, asset = mock_post.call_args_list
        assert create[1]["json"]["tag_name"] == "config-v1.0.0"
        assert create[1]["json"]["body"] == "notes"
        assert asset[0][0] == "https://uploads.github.com/repos/team/config/releases/42/assets"
        assert asset[1]["params"] == {"name": ASSET_NAME}
        assert asset[1]["data"] == b"zip-bytes"

    @patch("requests.post")
    def test_existing_tag(self, mock_post):
        mock_post.return_value = _response(422, {"message": "Validation Failed"})
        with pytest.raises(ReleaseExistsError):
            GitHubReleaseStore("team/config").upload("config-v1.0.0", b"", "")
        assert mock_post.call_count == 1


class TestGitHubDownload:
    @patch("requests.get")
    def test_fetches_octet_stream(self, mock_get):
        mock_get.return_value = _response(200, content=b"archive")
        data = GitHubReleaseStore("team/config").download("https://api.github.com/assets/1")
        assert data == b"archive"
        assert mock_get.call_args[1]["headers"]["Accept"] == "application/octet-stream"

    def test_refuses_plain_http(self):
        with pytest.raises(ReleaseStoreError, match="non-HTTPS"):
            GitHubReleaseStore("team/config").download("http://example.com/a")


class TestDirectoryReleaseStore:
    def test_upload_list_download(self, tmp_path):
        store = DirectoryReleaseStore(tmp_path / "releases")
        assert store.list_releases() == []

        store.upload("config-v1.0.0", b"data", "notes")
        (release,) = store.list_releases()
        assert release.tag == "config-v1.0.0"
        assert release.changelog == "notes"
        assert store.download(release.asset_url) == b"data"

    def test_existing_tag(self, tmp_path):
        store = DirectoryReleaseStore(tmp_path)
        store.upload("config-v1.0.0", b"one", "")
        with pytest.raises(ReleaseExistsError):
            store.upload("config-v1.0.0", b"two", "")
        assert (tmp_path / "config-v1.0.0" / ASSET_NAME).read_bytes() == b"one"

    def test_missing_asset(self, tmp_path):
        with pytest.raises(ReleaseStoreError, match="download failed"):
            DirectoryReleaseStore(tmp_path).download(str(tmp_path / "nope.zip"))


class TestCreateReleaseStore:
    def test_github(self, monkeypatch):
        monkeypatch.setenv("TEAM_TOKEN", "abc")
        store = create_release_store(ReleaseConfig(kind="github", repo="team/config", token_env="TEAM_TOKEN"))
        assert isinstance(store, GitHubReleaseStore)
        assert store.token == "abc"

    def test_directory(self, tmp_path):
        store = create_release_store(ReleaseConfig(kind="directory", path=str(tmp_path)))
        assert isinstance(store, DirectoryReleaseStore)
        assert store.root == tmp_path

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown release store"):
            create_release_store(ReleaseConfig(kind="s3"))

"""Tests for iwe_bootstrap._core.releases module."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from iwe_bootstrap._core.releases import ReleaseFetcher, parse_release
from iwe_bootstrap._core.version import USER_AGENT
from iwe_bootstrap.errors import MetadataUnavailableError
from iwe_bootstrap.types import AssetRef, ReleaseDescriptor


GITHUB_PAYLOAD = {
    "url": "https://api.github.com/repos/iwe-org/iwe/releases/1",
    "tag_name": "v0.0.21",
    "name": "v0.0.21",
    "draft": False,
    "assets": [
        {
            "name": "v0.0.21-x86_64-unknown-linux-gnu.tar.gz",
            "size": 4096,
            "browser_download_url": "https://github.com/iwe-org/iwe/releases/download/v0.0.21/v0.0.21-x86_64-unknown-linux-gnu.tar.gz",
        },
        {
            "name": "v0.0.21-universal-apple-darwin.tar.gz",
            "browser_download_url": "https://github.com/iwe-org/iwe/releases/download/v0.0.21/v0.0.21-universal-apple-darwin.tar.gz",
        },
    ],
}


def _fetcher_with(response=None, error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return ReleaseFetcher(session=session), session


class TestParseRelease:
    """Tests for parse_release function."""

    def test_parses_version_and_assets(self):
        release = parse_release(GITHUB_PAYLOAD)

        assert release.version == "v0.0.21"
        assert len(release.assets) == 2
        assert release.assets[0] == AssetRef(
            name="v0.0.21-x86_64-unknown-linux-gnu.tar.gz",
            download_url=GITHUB_PAYLOAD["assets"][0]["browser_download_url"],
        )

    def test_asset_order_preserved(self):
        release = parse_release(GITHUB_PAYLOAD)
        assert [a.name for a in release.assets] == [a["name"] for a in GITHUB_PAYLOAD["assets"]]

    def test_empty_assets_allowed(self):
        release = parse_release({"tag_name": "v1", "assets": []})
        assert release == ReleaseDescriptor(version="v1", assets=())

    def test_missing_tag_name(self):
        payload = dict(GITHUB_PAYLOAD)
        del payload["tag_name"]
        with pytest.raises(MetadataUnavailableError, match="tag_name"):
            parse_release(payload)

    @pytest.mark.parametrize("tag", [
        "../v2.0.0",
        "v2.0.0/../../etc",
        "v1..2",
        "nested/v2.0.0",
        "C:\\v2.0.0",
        ".hidden",
        "v2.0.0\n",
    ])
    def test_rejects_unsafe_tag(self, tag):
        payload = dict(GITHUB_PAYLOAD, tag_name=tag)
        with pytest.raises(MetadataUnavailableError, match="safe directory name"):
            parse_release(payload)

    @pytest.mark.parametrize("tag", ["v0.0.21", "2.0.0", "v2.0.0-rc.1", "release_1.0+build"])
    def test_accepts_ordinary_tags(self, tag):
        assert parse_release(dict(GITHUB_PAYLOAD, tag_name=tag)).version == tag

    def test_missing_assets(self):
        with pytest.raises(MetadataUnavailableError, match="assets"):
            parse_release({"tag_name": "v1"})

    def test_asset_missing_download_url(self):
        payload = {"tag_name": "v1", "assets": [{"name": "a.tar.gz"}]}
        with pytest.raises(MetadataUnavailableError):
            parse_release(payload)

    def test_asset_wrong_type(self):
        payload = {"tag_name": "v1", "assets": ["a.tar.gz"]}
        with pytest.raises(MetadataUnavailableError):
            parse_release(payload)

    def test_not_an_object(self):
        with pytest.raises(MetadataUnavailableError):
            parse_release([GITHUB_PAYLOAD])


class TestFindAsset:
    """Tests for ReleaseDescriptor.find_asset."""

    def test_exact_match(self):
        release = parse_release(GITHUB_PAYLOAD)
        asset = release.find_asset("v0.0.21-universal-apple-darwin.tar.gz")
        assert asset is not None
        assert asset.download_url.endswith("apple-darwin.tar.gz")

    def test_no_match(self):
        release = parse_release(GITHUB_PAYLOAD)
        assert release.find_asset("v0.0.21-x86_64-pc-windows-msvc.zip") is None


class TestReleaseFetcher:
    """Tests for ReleaseFetcher."""

    def test_latest_release_url(self):
        fetcher = ReleaseFetcher()
        assert fetcher.latest_release_url == (
            "https://api.github.com/repos/iwe-org/iwe/releases/latest"
        )

    @pytest.mark.asyncio
    async def test_fetch_latest_success(self, make_response):
        fetcher, session = _fetcher_with(make_response(200, json_data=GITHUB_PAYLOAD))

        release = await fetcher.fetch_latest()

        assert release.version == "v0.0.21"
        assert len(release.assets) == 2
        session.get.assert_called_once()

    def test_sends_user_agent(self, make_response):
        fetcher, session = _fetcher_with(make_response(200, json_data=GITHUB_PAYLOAD))

        fetcher.fetch_latest_sync()

        args, kwargs = session.get.call_args
        assert args[0] == fetcher.latest_release_url
        assert kwargs["headers"]["User-Agent"] == USER_AGENT
        assert kwargs["timeout"] == fetcher.timeout

    @pytest.mark.asyncio
    async def test_network_error(self):
        fetcher, _ = _fetcher_with(error=requests.ConnectionError("Connection refused"))

        with pytest.raises(MetadataUnavailableError) as exc_info:
            await fetcher.fetch_latest()

        assert "Connection refused" in str(exc_info.value)

    @pytest.mark.parametrize("status_code", [403, 404, 500, 502])
    def test_non_2xx_status(self, make_response, status_code):
        fetcher, _ = _fetcher_with(make_response(status_code, json_data={"message": "nope"}))

        with pytest.raises(MetadataUnavailableError) as exc_info:
            fetcher.fetch_latest_sync()

        assert exc_info.value.status_code == status_code

    def test_malformed_json(self, make_response):
        fetcher, _ = _fetcher_with(make_response(200))

        with pytest.raises(MetadataUnavailableError, match="Malformed"):
            fetcher.fetch_latest_sync()

    def test_incomplete_payload(self, make_response):
        fetcher, _ = _fetcher_with(make_response(200, json_data={"assets": []}))

        with pytest.raises(MetadataUnavailableError):
            fetcher.fetch_latest_sync()

    def test_uses_requests_without_session(self, make_response):
        with patch("requests.get", return_value=make_response(200, json_data=GITHUB_PAYLOAD)) as mock_get:
            release = ReleaseFetcher().fetch_latest_sync()

        assert release.version == "v0.0.21"
        mock_get.assert_called_once()

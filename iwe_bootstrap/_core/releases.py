"""
Latest release lookup via the GitHub releases API.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Optional

import requests

from iwe_bootstrap._core.version import GITHUB_REPO, USER_AGENT
from iwe_bootstrap.errors import MetadataUnavailableError
from iwe_bootstrap.types import AssetRef, ReleaseDescriptor

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

# Tags name the install directory, so path separators are never accepted
_SAFE_TAG_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._+-]*")


class ReleaseFetcher:
    """
    Fetches the latest published release descriptor.

    Performs a single GET per call; descriptors are never cached here.
    Any transport error, non-2xx status or missing field raises
    MetadataUnavailableError instead of returning a partial result.
    """

    def __init__(
        self,
        repo: str = GITHUB_REPO,
        api_url: str = GITHUB_API_URL,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
    ):
        self.repo = repo
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session

    @property
    def latest_release_url(self) -> str:
        return f"{self.api_url}/repos/{self.repo}/releases/latest"

    async def fetch_latest(self) -> ReleaseDescriptor:
        """
        Fetch the latest release descriptor.

        Returns:
            ReleaseDescriptor with version tag and assets

        Raises:
            MetadataUnavailableError: If the registry cannot be reached or
                returns an unusable response
        """
        # Run in thread pool to avoid blocking async loop
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.fetch_latest_sync)

    def fetch_latest_sync(self) -> ReleaseDescriptor:
        """Sync implementation of fetch_latest."""
        url = self.latest_release_url
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github+json",
        }

        http = self._session or requests
        try:
            response = http.get(url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise MetadataUnavailableError(f"Network error fetching {url}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise MetadataUnavailableError(
                f"Release lookup failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MetadataUnavailableError(f"Malformed release metadata: {e}") from e

        release = parse_release(payload)
        logger.debug(
            f"Latest {self.repo} release is {release.version} "
            f"with {len(release.assets)} assets"
        )
        return release


def parse_release(payload: Any) -> ReleaseDescriptor:
    """
    Convert a GitHub release JSON object into a ReleaseDescriptor.

    Unrecognized fields are ignored.

    Raises:
        MetadataUnavailableError: If a required field is missing or mistyped,
            or the tag cannot be used as a directory name
    """
    if not isinstance(payload, dict):
        raise MetadataUnavailableError("Release metadata is not a JSON object")

    version = payload.get("tag_name")
    if not isinstance(version, str) or not version:
        raise MetadataUnavailableError("Release metadata is missing 'tag_name'")
    if not _SAFE_TAG_RE.fullmatch(version) or ".." in version:
        raise MetadataUnavailableError(f"Release tag is not a safe directory name: {version!r}")

    raw_assets = payload.get("assets")
    if not isinstance(raw_assets, list):
        raise MetadataUnavailableError("Release metadata is missing 'assets'")

    assets = []
    for index, raw in enumerate(raw_assets):
        if not isinstance(raw, dict):
            raise MetadataUnavailableError(f"Asset #{index} is not a JSON object")
        name = raw.get("name")
        download_url = raw.get("browser_download_url")
        if not isinstance(name, str) or not isinstance(download_url, str):
            raise MetadataUnavailableError(
                f"Asset #{index} is missing 'name' or 'browser_download_url'"
            )
        assets.append(AssetRef(name=name, download_url=download_url))

    return ReleaseDescriptor(version=version, assets=tuple(assets))

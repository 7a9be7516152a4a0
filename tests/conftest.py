"""
Pytest configuration for iwe-bootstrap tests.
"""

import io
import os
import tarfile
import zipfile
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from iwe_bootstrap._core.state import InstallationState, MemoryStore
from iwe_bootstrap.types import AssetRef, ReleaseDescriptor

# Note: With pytest-asyncio in auto mode, no event_loop fixture needed

BINARY_CONTENT = b"#!/bin/sh\necho iwes\n"


@pytest.fixture(autouse=True)
def clean_iwe_env(monkeypatch):
    """Keep developer IWE_* settings out of the tests."""
    for name in list(os.environ):
        if name.startswith("IWE_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def state(memory_store):
    return InstallationState(memory_store)


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def make_tar_gz():
    """Build a tar.gz archive from {member name: bytes}."""
    def _make(path: Path, members: dict) -> Path:
        with tarfile.open(path, "w:gz") as tar:
            for name, data in members.items():
                info = tarfile.TarInfo(name)
                info.size = len(data)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(data))
        return path
    return _make


@pytest.fixture
def make_zip():
    """Build a zip archive from {member name: bytes}."""
    def _make(path: Path, members: dict) -> Path:
        with zipfile.ZipFile(path, "w") as zf:
            for name, data in members.items():
                zf.writestr(name, data)
        return path
    return _make


@pytest.fixture
def make_response():
    """Build a mock requests.Response."""
    def _make(status_code=200, body=b"", headers=None, json_data=None):
        response = MagicMock()
        response.status_code = status_code
        response.headers = headers or {}
        response.iter_content = MagicMock(return_value=[body] if body else [])
        if json_data is None:
            response.json = MagicMock(side_effect=ValueError("No JSON object could be decoded"))
        else:
            response.json = MagicMock(return_value=json_data)
        return response
    return _make


@pytest.fixture
def linux_release():
    """Latest release publishing a linux x86_64 archive."""
    return ReleaseDescriptor(
        version="v2.0.0",
        assets=(
            AssetRef(
                name="v2.0.0-x86_64-unknown-linux-gnu.tar.gz",
                download_url="https://example.com/v2.0.0-x86_64-unknown-linux-gnu.tar.gz",
            ),
            AssetRef(
                name="v2.0.0-universal-apple-darwin.tar.gz",
                download_url="https://example.com/v2.0.0-universal-apple-darwin.tar.gz",
            ),
        ),
    )


@pytest.fixture
def mock_fetcher(linux_release):
    """ReleaseFetcher returning linux_release."""
    fetcher = MagicMock()
    fetcher.fetch_latest = AsyncMock(return_value=linux_release)
    return fetcher


@pytest.fixture
def mock_installer():
    """ArchiveInstaller writing an executable file to the destination."""
    async def _install(download_url, destination, archive_kind):
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(BINARY_CONTENT)
        destination.chmod(0o755)

    installer = MagicMock()
    installer.install = AsyncMock(side_effect=_install)
    return installer


@pytest.fixture
def installed_binary(storage_root):
    """An executable iwes inside storage_root/iwe-v1.0.0."""
    path = storage_root / "iwe-v1.0.0" / "iwes"
    path.parent.mkdir()
    path.write_bytes(BINARY_CONTENT)
    path.chmod(0o755)
    return path

"""
Release archive download and installation.

Handles:
- Downloading with bounded 301/302 redirect following
- Extraction into a private scratch directory
- Locating the binary and renaming it into its version directory
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin

import requests

from iwe_bootstrap._core.archives import get_extractor
from iwe_bootstrap._core.version import USER_AGENT
from iwe_bootstrap.errors import (
    BinaryNotFoundInArchiveError,
    DownloadFailedError,
    InstallFailedError,
    RedirectMissingLocationError,
    UnexpectedStatusError,
)
from iwe_bootstrap.types import ArchiveKind

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5
REDIRECT_STATUSES = (301, 302)

# rwxr-xr-x
EXECUTABLE_MODE = (
    stat.S_IRWXU
    | stat.S_IRGRP | stat.S_IXGRP
    | stat.S_IROTH | stat.S_IXOTH
)


class ArchiveInstaller:
    """
    Downloads a release archive and installs the binary it contains.

    The binary is only moved to its destination after the archive was
    fully downloaded and extracted, so a destination never holds a
    partially written file. The scratch directory is removed whatever
    the outcome.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 60.0,
        max_redirects: int = MAX_REDIRECTS,
        chunk_size: int = 8192,
    ):
        self.timeout = timeout
        self.max_redirects = max_redirects
        self.chunk_size = chunk_size
        self._session = session

    async def install(
        self,
        download_url: str,
        destination: Path,
        archive_kind: ArchiveKind,
    ) -> None:
        """
        Download and install the binary named destination.name.

        Args:
            download_url: URL of the release archive
            destination: Final path of the binary
            archive_kind: Format of the archive

        Raises:
            DownloadFailedError: On transport errors or too many redirects
            RedirectMissingLocationError: If a redirect has no Location
            UnexpectedStatusError: If the download ends on a non-200 status
            ArchiveExtractionFailedError: If the archive cannot be unpacked
            BinaryNotFoundInArchiveError: If no entry matches the binary name
            InstallFailedError: If the filesystem rejects an install step
        """
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(
            None,
            self.install_sync,
            download_url,
            destination,
            archive_kind,
        )

    def install_sync(
        self,
        download_url: str,
        destination: Path,
        archive_kind: ArchiveKind,
    ) -> None:
        """Sync implementation of install."""
        destination = Path(destination)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            scratch = Path(tempfile.mkdtemp(prefix=".scratch-", dir=destination.parent))
        except OSError as e:
            raise InstallFailedError(
                f"Cannot create scratch directory in {destination.parent}: {e}"
            ) from e

        try:
            archive = scratch / f"release.{ArchiveKind(archive_kind).value}"
            extracted = scratch / "extracted"

            self.download(download_url, archive)
            get_extractor(archive_kind).extract(archive, extracted)

            binary = find_binary(extracted, destination.name)
            _place_binary(binary, destination)

            logger.info(f"Installed {destination.name} to {destination}")
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

    def download(self, url: str, target: Path) -> None:
        """
        Stream url into target, following 301/302 redirects.

        target is only complete once this returns; callers extract after.
        """
        http = self._session or requests
        headers = {"User-Agent": USER_AGENT}
        current = url

        for hop in range(self.max_redirects + 1):
            try:
                response = http.get(
                    current,
                    headers=headers,
                    stream=True,
                    allow_redirects=False,
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                raise DownloadFailedError(f"Failed to download {current}: {e}") from e

            try:
                if response.status_code in REDIRECT_STATUSES:
                    location = response.headers.get("Location")
                    if not location:
                        raise RedirectMissingLocationError(current)
                    logger.debug(f"Redirect {hop + 1} from {current} to {location}")
                    current = urljoin(current, location)
                    continue

                if response.status_code != 200:
                    raise UnexpectedStatusError(response.status_code, current)

                logger.info(f"Downloading {current}")
                self._write_body(response, target)
                return
            finally:
                response.close()

        raise DownloadFailedError(
            f"Too many redirects ({self.max_redirects}) downloading {url}"
        )

    def _write_body(self, response: requests.Response, target: Path) -> None:
        try:
            with open(target, "wb") as f:
                for chunk in response.iter_content(chunk_size=self.chunk_size):
                    if chunk:
                        f.write(chunk)
        except requests.RequestException as e:
            raise DownloadFailedError(f"Download interrupted: {e}") from e
        except OSError as e:
            raise DownloadFailedError(f"Failed to write {target}: {e}") from e


def find_binary(root: Path, binary_name: str) -> Path:
    """
    Locate the binary anywhere below root.

    An entry matches if its relative path equals binary_name or ends
    with "/" + binary_name.

    Raises:
        BinaryNotFoundInArchiveError: If no regular file matches
    """
    suffix = f"/{binary_name}"
    for entry in sorted(root.rglob("*")):
        if not entry.is_file():
            continue
        relative = entry.relative_to(root).as_posix()
        if relative == binary_name or relative.endswith(suffix):
            return entry
    raise BinaryNotFoundInArchiveError(binary_name)


def _place_binary(binary: Path, destination: Path) -> None:
    """Move the extracted binary to destination and mark it executable."""
    try:
        os.replace(binary, destination)
        if os.name != "nt":
            os.chmod(destination, EXECUTABLE_MODE)
    except OSError as e:
        raise InstallFailedError(f"Failed to install {destination}: {e}") from e

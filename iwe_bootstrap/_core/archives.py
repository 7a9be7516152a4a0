"""
Archive extraction for release downloads.

The archive format is chosen once per target platform (see
platforms.archive_kind_for_platform) and mapped to an extractor here.
"""

from __future__ import annotations

import logging
import tarfile
import zipfile
from pathlib import Path

from iwe_bootstrap.errors import ArchiveExtractionFailedError
from iwe_bootstrap.types import ArchiveKind

logger = logging.getLogger(__name__)


class ArchiveExtractor:
    """Unpacks a whole archive into a target directory."""

    kind: ArchiveKind

    def extract(self, archive: Path, target: Path) -> None:
        """
        Extract every entry of archive below target.

        Raises:
            ArchiveExtractionFailedError: If the archive is corrupt, truncated
                or has entries escaping target
        """
        raise NotImplementedError


class TarGzExtractor(ArchiveExtractor):
    """Extractor for tar+gzip archives (POSIX targets)."""

    kind = ArchiveKind.TAR_GZ

    def extract(self, archive: Path, target: Path) -> None:
        target.mkdir(parents=True, exist_ok=True)
        try:
            with tarfile.open(archive, "r:gz") as tar:
                members = tar.getmembers()
                _check_member_paths(target, (m.name for m in members))
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(target, members=members, filter="data")
                else:
                    tar.extractall(target, members=members)
        except ArchiveExtractionFailedError:
            raise
        except (tarfile.TarError, EOFError, OSError) as e:
            raise ArchiveExtractionFailedError(
                f"Failed to extract {archive.name}: {e}"
            ) from e
        logger.debug(f"Extracted {len(members)} entries from {archive.name}")


class ZipExtractor(ArchiveExtractor):
    """Extractor for zip archives (Windows target)."""

    kind = ArchiveKind.ZIP

    def extract(self, archive: Path, target: Path) -> None:
        target.mkdir(parents=True, exist_ok=True)
        try:
            with zipfile.ZipFile(archive) as zf:
                names = zf.namelist()
                _check_member_paths(target, names)
                zf.extractall(target)
        except ArchiveExtractionFailedError:
            raise
        except (zipfile.BadZipFile, EOFError, OSError) as e:
            raise ArchiveExtractionFailedError(
                f"Failed to extract {archive.name}: {e}"
            ) from e
        logger.debug(f"Extracted {len(names)} entries from {archive.name}")


_EXTRACTORS = {
    ArchiveKind.TAR_GZ: TarGzExtractor,
    ArchiveKind.ZIP: ZipExtractor,
}


def get_extractor(kind: ArchiveKind) -> ArchiveExtractor:
    """Return the extractor for an archive kind."""
    return _EXTRACTORS[ArchiveKind(kind)]()


def _check_member_paths(target: Path, names) -> None:
    root = target.resolve()
    for name in names:
        resolved = (root / name).resolve()
        if resolved != root and root not in resolved.parents:
            raise ArchiveExtractionFailedError(
                f"Archive entry escapes extraction directory: {name}"
            )

"""
Type definitions for iwe-bootstrap.

Defines enums and dataclasses used across the package for:
- Release metadata (descriptor and assets)
- Installed binary bookkeeping
- Provisioning configuration and outcomes
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from iwe_bootstrap.errors import ConfigurationError


# =============================================================================
# Enums
# =============================================================================


class ArchiveKind(str, Enum):
    """
    Release archive format.

    POSIX targets ship tar+gzip archives, the Windows target ships zip.
    """
    TAR_GZ = "tar.gz"
    ZIP = "zip"


class ProvisioningState(str, Enum):
    """
    States of a single provisioning attempt.

    - NO_BINARY: Nothing cached and nothing on PATH
    - CACHED_ONLY: A cached binary exists, no update check due
    - CHECK_PENDING: Fetching the latest release descriptor
    - INSTALLING: Downloading and unpacking a release
    - READY: A usable binary path is available
    - DEGRADED_FALLBACK: Check or install failed, cached binary used instead

    READY and DEGRADED_FALLBACK are the terminal states returned to callers.
    """
    NO_BINARY = "no_binary"
    CACHED_ONLY = "cached_only"
    CHECK_PENDING = "check_pending"
    INSTALLING = "installing"
    READY = "ready"
    DEGRADED_FALLBACK = "degraded_fallback"


class BinarySource(str, Enum):
    """Where the returned binary came from."""
    PATH = "path"            # Found via PATH lookup (developer override)
    CACHE = "cache"          # Previously installed, reused as-is
    INSTALLED = "installed"  # Installed during this attempt


# =============================================================================
# Release Metadata
# =============================================================================


@dataclass(frozen=True)
class AssetRef:
    """One downloadable archive within a release."""
    name: str
    download_url: str


@dataclass(frozen=True)
class ReleaseDescriptor:
    """
    Latest published release.

    Attributes:
        version: Release tag, may carry a leading marker such as "v"
        assets: Archives published for the release, one per platform
    """
    version: str
    assets: Tuple[AssetRef, ...] = ()

    def find_asset(self, name: str) -> Optional[AssetRef]:
        """Return the asset with exactly this name, if published."""
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None


# =============================================================================
# Installation
# =============================================================================


@dataclass(frozen=True)
class InstalledBinary:
    """
    The currently usable executable.

    Attributes:
        path: Absolute path to the binary
        version: Installed version, None when unknown (e.g. found on PATH)
        installed_at: When this binary was discovered
    """
    path: Path
    version: Optional[str] = None
    installed_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


@dataclass(frozen=True)
class ProvisioningConfig:
    """
    Update policy supplied by the host application.

    Attributes:
        auto_update: Check upstream for newer releases
        update_check_interval_hours: Minimum hours between update checks
    """
    auto_update: bool = True
    update_check_interval_hours: float = 24

    def __post_init__(self) -> None:
        if self.update_check_interval_hours < 0:
            raise ConfigurationError(
                "update_check_interval_hours must be non-negative, "
                f"got: {self.update_check_interval_hours}"
            )

    @property
    def update_check_interval_ms(self) -> float:
        """Interval between update checks in milliseconds."""
        return self.update_check_interval_hours * 3600 * 1000

    @classmethod
    def from_env(cls) -> "ProvisioningConfig":
        """Build a config from IWE_* environment variables."""
        from iwe_bootstrap.config import load_provisioning_config
        return load_provisioning_config()


@dataclass(frozen=True)
class ProvisioningResult:
    """
    Outcome of a successful provisioning attempt.

    A DEGRADED_FALLBACK result is as usable as a READY one; it only
    records that the update check or install failed along the way.
    """
    path: Path
    version: Optional[str]
    state: ProvisioningState
    source: BinarySource

    @property
    def is_degraded(self) -> bool:
        """Check if the cached binary was used after a failure."""
        return self.state == ProvisioningState.DEGRADED_FALLBACK

"""
Exception types for iwe-bootstrap.

Provides typed exceptions for:
- Platform and configuration errors
- Release metadata lookup errors
- Archive download and installation errors
- Provisioning outcomes surfaced to the host application
"""

from __future__ import annotations

from typing import Optional


class IweBootstrapError(Exception):
    """Base exception for all iwe-bootstrap errors."""
    pass


class ConfigurationError(IweBootstrapError):
    """Raised when provisioning configuration is invalid."""
    pass


# =============================================================================
# Platform Errors
# =============================================================================


class UnsupportedPlatformError(IweBootstrapError):
    """
    Raised when no release build exists for the current platform.

    This is fatal: retrying cannot help because upstream publishes no
    archive for the platform.
    """

    def __init__(self, platform_id: str, arch_id: Optional[str] = None):
        self.platform_id = platform_id
        self.arch_id = arch_id

        target = platform_id if arch_id is None else f"{platform_id}/{arch_id}"
        super().__init__(f"Unsupported platform: {target}")


# =============================================================================
# Release Metadata Errors
# =============================================================================


class MetadataUnavailableError(IweBootstrapError):
    """
    Raised when the latest release descriptor cannot be retrieved.

    This includes:
    - Network failures
    - Non-2xx responses from the registry
    - Malformed or incomplete JSON payloads
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AssetNotFoundError(IweBootstrapError):
    """
    Raised when the latest release has no archive for this platform.

    Surfaced even when a cached binary exists: it signals a gap in the
    published release rather than a transient failure.
    """

    def __init__(self, asset_name: str, version: str):
        self.asset_name = asset_name
        self.version = version
        super().__init__(
            f"No matching asset found for platform: {asset_name} "
            f"(release {version})"
        )


# =============================================================================
# Installation Errors
# =============================================================================


class InstallError(IweBootstrapError):
    """
    Base class for failures while downloading and unpacking a release.

    All subclasses are recoverable by falling back to a previously
    installed binary.
    """
    pass


class DownloadFailedError(InstallError):
    """Raised on transport errors or too many redirects during download."""
    pass


class UnexpectedStatusError(InstallError):
    """Raised when the download ends on a status other than 200."""

    def __init__(self, status_code: int, url: str):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Server returned status code {status_code} for {url}")


class RedirectMissingLocationError(InstallError):
    """Raised when a 301/302 response carries no Location header."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Redirect location header missing for {url}")


class ArchiveExtractionFailedError(InstallError):
    """Raised when the downloaded archive cannot be unpacked."""
    pass


class InstallFailedError(InstallError):
    """
    Raised when the filesystem rejects an install step.

    Covers creating the version or scratch directory, moving the binary
    into place and marking it executable.
    """
    pass


class BinaryNotFoundInArchiveError(InstallError):
    """Raised when the archive holds no entry named like the binary."""

    def __init__(self, binary_name: str):
        self.binary_name = binary_name
        super().__init__(f"Binary not found in archive: {binary_name}")


# =============================================================================
# Provisioning Errors
# =============================================================================


class ProvisioningUnavailableError(IweBootstrapError):
    """
    Raised when no usable binary can be provided.

    There is no cached install to fall back on and the release
    metadata could not be fetched.
    """
    pass

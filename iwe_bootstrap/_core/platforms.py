"""
Platform detection and release asset naming.

Upstream publishes one archive per target triple:

    {version}-aarch64-unknown-linux-gnu.tar.gz
    {version}-x86_64-unknown-linux-gnu.tar.gz
    {version}-universal-apple-darwin.tar.gz
    {version}-x86_64-pc-windows-msvc.zip
"""

from __future__ import annotations

import platform
from typing import Tuple

from iwe_bootstrap._core.version import BINARY_NAME, VERSION_DIR_PREFIX
from iwe_bootstrap.errors import UnsupportedPlatformError
from iwe_bootstrap.types import ArchiveKind

SUPPORTED_PLATFORMS = ("linux", "darwin", "windows")


def get_platform_info() -> Tuple[str, str]:
    """
    Determine the OS and architecture of the running interpreter.

    Unknown systems and machines are passed through lowercased so that
    resolve_asset_name() can reject them with a consistent error.

    Returns:
        Tuple of (platform_id, arch_id)
    """
    system = platform.system().lower()
    machine = platform.machine().lower()

    # Normalize OS
    if system.startswith("win"):
        platform_id = "windows"
    else:
        platform_id = system

    # Normalize Architecture
    if machine in ("x86_64", "amd64"):
        arch_id = "x64"
    elif machine in ("arm64", "aarch64"):
        arch_id = "arm64"
    else:
        arch_id = machine

    return platform_id, arch_id


def resolve_asset_name(version: str, platform_id: str, arch_id: str) -> str:
    """
    Map a release version and platform to the archive name published upstream.

    Args:
        version: Release tag exactly as published (e.g., "v0.0.21")
        platform_id: linux, darwin or windows
        arch_id: CPU architecture; only distinguishes arm64 on linux

    Returns:
        Asset file name

    Raises:
        UnsupportedPlatformError: If platform_id has no published build
    """
    if platform_id == "linux":
        triple = "aarch64" if arch_id == "arm64" else "x86_64"
        return f"{version}-{triple}-unknown-linux-gnu.tar.gz"
    if platform_id == "darwin":
        return f"{version}-universal-apple-darwin.tar.gz"
    if platform_id == "windows":
        return f"{version}-x86_64-pc-windows-msvc.zip"
    raise UnsupportedPlatformError(platform_id, arch_id)


def archive_kind_for_platform(platform_id: str) -> ArchiveKind:
    """
    Select the archive format shipped for a platform.

    Raises:
        UnsupportedPlatformError: If platform_id has no published build
    """
    if platform_id == "windows":
        return ArchiveKind.ZIP
    if platform_id in SUPPORTED_PLATFORMS:
        return ArchiveKind.TAR_GZ
    raise UnsupportedPlatformError(platform_id)


def binary_filename(platform_id: str) -> str:
    """Name of the language server executable on a platform."""
    return f"{BINARY_NAME}.exe" if platform_id == "windows" else BINARY_NAME


def version_directory_name(version: str) -> str:
    """Name of the install directory for a release version."""
    return f"{VERSION_DIR_PREFIX}{version}"

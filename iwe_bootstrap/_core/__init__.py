"""
Provisioning core for iwe-bootstrap.

This module handles:
- Platform detection and release asset naming
- Version comparison
- Release metadata lookup and archive installation
- Persisted installation state and the provisioning lifecycle
"""

from iwe_bootstrap._core.version import (
    PACKAGE_VERSION,
    BINARY_NAME,
    GITHUB_REPO,
    parse_version,
    is_newer,
)
from iwe_bootstrap._core.platforms import (
    get_platform_info,
    resolve_asset_name,
    archive_kind_for_platform,
    binary_filename,
)
from iwe_bootstrap._core.releases import ReleaseFetcher, parse_release
from iwe_bootstrap._core.archives import (
    ArchiveExtractor,
    TarGzExtractor,
    ZipExtractor,
    get_extractor,
)
from iwe_bootstrap._core.installer import ArchiveInstaller, find_binary
from iwe_bootstrap._core.state import (
    KeyValueStore,
    MemoryStore,
    JsonFileStore,
    InstallationState,
)
from iwe_bootstrap._core.lifecycle import (
    BinaryProvisioner,
    prune_version_dirs,
    create_default_provisioner,
    ensure_language_server,
    ensure_language_server_sync,
)

__all__ = [
    # Version
    "PACKAGE_VERSION",
    "BINARY_NAME",
    "GITHUB_REPO",
    "parse_version",
    "is_newer",
    # Platforms
    "get_platform_info",
    "resolve_asset_name",
    "archive_kind_for_platform",
    "binary_filename",
    # Releases
    "ReleaseFetcher",
    "parse_release",
    # Archives
    "ArchiveExtractor",
    "TarGzExtractor",
    "ZipExtractor",
    "get_extractor",
    # Installer
    "ArchiveInstaller",
    "find_binary",
    # State
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "InstallationState",
    # Lifecycle
    "BinaryProvisioner",
    "prune_version_dirs",
    "create_default_provisioner",
    "ensure_language_server",
    "ensure_language_server_sync",
]

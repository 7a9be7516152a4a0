"""
iwe-bootstrap: Provisioning for the IWE language server.

Downloads the iwes binary from GitHub releases, keeps it up to date and
falls back to the installed copy when the network is unavailable.

This package provides:
- BinaryProvisioner for the install / update / prune lifecycle
- ensure_language_server() convenience entry point
- LanguageServerProcess for running the provisioned binary

Installation:
    pip install iwe-bootstrap

Quickstart:
    from iwe_bootstrap import ensure_language_server, LanguageServerProcess

    path = await ensure_language_server(host_version="1.4.0")
    async with LanguageServerProcess(path) as server:
        ...

Quickstart (custom state storage):
    from iwe_bootstrap import BinaryProvisioner, MemoryStore, ProvisioningConfig

    provisioner = BinaryProvisioner(MemoryStore())
    result = await provisioner.provision("/var/lib/app/iwe", ProvisioningConfig())
    if result.is_degraded:
        print("Update check failed, using installed copy")
"""

from iwe_bootstrap.types import (
    ArchiveKind,
    AssetRef,
    BinarySource,
    InstalledBinary,
    ProvisioningConfig,
    ProvisioningResult,
    ProvisioningState,
    ReleaseDescriptor,
)
from iwe_bootstrap.errors import (
    IweBootstrapError,
    ConfigurationError,
    UnsupportedPlatformError,
    MetadataUnavailableError,
    AssetNotFoundError,
    InstallError,
    DownloadFailedError,
    InstallFailedError,
    UnexpectedStatusError,
    RedirectMissingLocationError,
    ArchiveExtractionFailedError,
    BinaryNotFoundInArchiveError,
    ProvisioningUnavailableError,
)
from iwe_bootstrap._core import (
    PACKAGE_VERSION,
    ArchiveInstaller,
    BinaryProvisioner,
    InstallationState,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    ReleaseFetcher,
    ensure_language_server,
    ensure_language_server_sync,
    is_newer,
    resolve_asset_name,
)
from iwe_bootstrap.launcher import (
    LanguageServerProcess,
    LanguageServerStartError,
    start_language_server,
)

__version__ = PACKAGE_VERSION

__all__ = [
    "__version__",
    "PACKAGE_VERSION",
    # Types
    "ArchiveKind",
    "AssetRef",
    "BinarySource",
    "InstalledBinary",
    "ProvisioningConfig",
    "ProvisioningResult",
    "ProvisioningState",
    "ReleaseDescriptor",
    # Errors
    "IweBootstrapError",
    "ConfigurationError",
    "UnsupportedPlatformError",
    "MetadataUnavailableError",
    "AssetNotFoundError",
    "InstallError",
    "DownloadFailedError",
    "InstallFailedError",
    "UnexpectedStatusError",
    "RedirectMissingLocationError",
    "ArchiveExtractionFailedError",
    "BinaryNotFoundInArchiveError",
    "ProvisioningUnavailableError",
    # Provisioning
    "BinaryProvisioner",
    "ReleaseFetcher",
    "ArchiveInstaller",
    "InstallationState",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "ensure_language_server",
    "ensure_language_server_sync",
    "is_newer",
    "resolve_asset_name",
    # Process
    "LanguageServerProcess",
    "LanguageServerStartError",
    "start_language_server",
]

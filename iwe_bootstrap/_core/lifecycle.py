"""
Binary lifecycle management for iwe-bootstrap.

Handles:
- Reuse of a cached install or a binary found on PATH
- Periodic update checks against the latest GitHub release
- Installation into per-version directories and pruning of old ones
- Fallback to the cached install when the network lets us down
"""

from __future__ import annotations

import asyncio
import functools
import logging
import os
import shutil
import time
import weakref
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from iwe_bootstrap._core.installer import ArchiveInstaller
from iwe_bootstrap._core.platforms import (
    archive_kind_for_platform,
    binary_filename,
    get_platform_info,
    resolve_asset_name,
    version_directory_name,
)
from iwe_bootstrap._core.releases import ReleaseFetcher
from iwe_bootstrap._core.state import InstallationState, JsonFileStore, KeyValueStore
from iwe_bootstrap._core.version import BINARY_NAME, VERSION_DIR_PREFIX, is_newer
from iwe_bootstrap.config import (
    find_on_path,
    get_state_file,
    get_storage_root,
    load_provisioning_config,
)
from iwe_bootstrap.errors import (
    AssetNotFoundError,
    InstallError,
    InstallFailedError,
    MetadataUnavailableError,
    ProvisioningUnavailableError,
)
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

logger = logging.getLogger(__name__)

PathLookup = Callable[[str], Optional[str]]


async def _run_blocking(func: Callable, *args):
    """Run a blocking call in the default executor."""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args))


def is_usable_binary(path: Path) -> bool:
    """Check that path is an existing, executable file."""
    if not path.is_file():
        return False
    return os.name == "nt" or os.access(path, os.X_OK)


def prune_version_dirs(storage_root: Path, keep: Path) -> List[Path]:
    """
    Remove every version directory under storage_root except keep.

    Only directories named iwe-* are touched. Failures are logged and
    skipped so that a locked directory cannot fail a finished install.

    Returns:
        The directories that were removed
    """
    removed = []
    for entry in sorted(storage_root.iterdir()):
        if entry == keep or not entry.is_dir():
            continue
        if not entry.name.startswith(VERSION_DIR_PREFIX):
            continue
        try:
            shutil.rmtree(entry)
        except OSError as e:
            logger.warning(f"Failed to remove old version directory {entry}: {e}")
            continue
        logger.info(f"Removed old version directory {entry.name}")
        removed.append(entry)
    return removed


def _remove_if_empty(directory: Path) -> None:
    try:
        directory.rmdir()
    except OSError:
        logger.debug(f"Leaving non-empty directory {directory}")


class BinaryProvisioner:
    """
    Provides a usable iwes binary, installing or updating it as needed.

    One provisioning attempt runs at a time per storage root (and event
    loop); concurrent callers wait for the running attempt to finish.

    Example:
        provisioner = BinaryProvisioner(InstallationState(MemoryStore()))
        result = await provisioner.provision(storage_root, ProvisioningConfig())
        print(result.path)
    """

    # {event loop: {storage root: lock}}
    _locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, asyncio.Lock]]" = (
        weakref.WeakKeyDictionary()
    )

    def __init__(
        self,
        state: Union[InstallationState, KeyValueStore],
        fetcher: Optional[ReleaseFetcher] = None,
        installer: Optional[ArchiveInstaller] = None,
        lookup: PathLookup = find_on_path,
        platform_info: Optional[Tuple[str, str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        if not isinstance(state, InstallationState):
            state = InstallationState(state)
        self.state = state
        self.fetcher = fetcher or ReleaseFetcher()
        self.installer = installer or ArchiveInstaller()
        self.lookup = lookup
        self.platform_info = platform_info or get_platform_info()
        self.clock = clock

    @classmethod
    def _get_lock(cls, storage_root: Path) -> asyncio.Lock:
        """Get or create the lock for a storage root in the running loop."""
        loop = asyncio.get_running_loop()
        locks = cls._locks.setdefault(loop, {})
        key = str(storage_root.resolve())
        if key not in locks:
            locks[key] = asyncio.Lock()
        return locks[key]

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    async def provision(
        self,
        storage_root: Union[str, Path],
        config: ProvisioningConfig,
        host_version: Optional[str] = None,
    ) -> ProvisioningResult:
        """
        Return a usable binary, checking for and installing updates when due.

        Args:
            storage_root: Directory holding the iwe-{version} installs
            config: Update policy
            host_version: Running host application version; a change
                invalidates the cached install

        Returns:
            ProvisioningResult in state READY or DEGRADED_FALLBACK

        Raises:
            ProvisioningUnavailableError: No cached binary and no release info
            AssetNotFoundError: Latest release has no build for this platform
            UnsupportedPlatformError: This platform is never published
            InstallError: Install failed and there is no cached binary
        """
        storage_root = Path(storage_root)
        async with self._get_lock(storage_root):
            if host_version is not None:
                self.state.observe_host_version(host_version)

            on_path = await _run_blocking(self.lookup, BINARY_NAME)
            if on_path:
                path = Path(on_path)
                logger.info(f"Using {BINARY_NAME} found on PATH: {path}")
                self.state.record_install(path, None)
                return ProvisioningResult(
                    path=path,
                    version=None,
                    state=ProvisioningState.READY,
                    source=BinarySource.PATH,
                )

            return await self._provision_managed(storage_root, config)

    async def force_update(
        self,
        storage_root: Union[str, Path],
        config: ProvisioningConfig,
    ) -> ProvisioningResult:
        """
        Discard the cached install and check for the latest release now.

        PATH is not consulted; the result is always a managed install.
        """
        storage_root = Path(storage_root)
        async with self._get_lock(storage_root):
            logger.info("Forcing update check, cached binary invalidated")
            self.state.invalidate()
            return await self._provision_managed(storage_root, config)

    async def _cached_binary(self) -> Optional[InstalledBinary]:
        cached = self.state.installed_binary()
        if cached is None:
            return None
        if not await _run_blocking(is_usable_binary, cached.path):
            logger.warning(f"Ignoring stale cached binary path: {cached.path}")
            return None
        return cached

    async def _provision_managed(
        self,
        storage_root: Path,
        config: ProvisioningConfig,
    ) -> ProvisioningResult:
        cached = await self._cached_binary()
        state = ProvisioningState.CACHED_ONLY if cached else ProvisioningState.NO_BINARY
        logger.debug(f"Provisioning from state {state.value}")

        now_ms = self._now_ms()
        elapsed_ms = now_ms - self.state.last_update_check
        should_check = (
            config.auto_update and elapsed_ms > config.update_check_interval_ms
        )

        if cached is not None and not should_check:
            logger.debug(f"Update check not due, using cached binary {cached.path}")
            return self._ready(cached)

        # Recorded before fetching so persistent failures cannot cause
        # a check on every activation.
        self.state.record_update_check(now_ms)
        logger.debug(f"Provisioning from state {ProvisioningState.CHECK_PENDING.value}")
        try:
            release = await self.fetcher.fetch_latest()
        except MetadataUnavailableError as e:
            if cached is not None:
                return self._fallback(cached, f"Update check failed: {e}")
            raise ProvisioningUnavailableError(
                f"No {BINARY_NAME} binary installed and release lookup failed: {e}"
            ) from e

        platform_id, arch_id = self.platform_info
        asset_name = resolve_asset_name(release.version, platform_id, arch_id)
        asset = release.find_asset(asset_name)
        if asset is None:
            raise AssetNotFoundError(asset_name, release.version)

        cached_version = self.state.installed_version
        needs_update = cached_version is None or is_newer(release.version, cached_version)
        if not needs_update and cached is not None:
            logger.debug(f"Cached {BINARY_NAME} {cached_version} is up to date")
            return self._ready(cached)

        return await self._install(storage_root, release, asset, cached)

    async def _install(
        self,
        storage_root: Path,
        release: ReleaseDescriptor,
        asset: AssetRef,
        cached: Optional[InstalledBinary],
    ) -> ProvisioningResult:
        platform_id, _ = self.platform_info
        version_dir = storage_root / version_directory_name(release.version)
        destination = version_dir / binary_filename(platform_id)

        logger.info(f"Installing {BINARY_NAME} {release.version} from {asset.name}")
        created = not await _run_blocking(version_dir.exists)
        try:
            await self._run_installer(
                asset.download_url,
                destination,
                archive_kind_for_platform(platform_id),
            )
        except InstallError as e:
            if created:
                await _run_blocking(_remove_if_empty, version_dir)
            if cached is not None:
                return self._fallback(cached, f"Install of {release.version} failed: {e}")
            raise

        self.state.record_install(destination, release.version)
        await _run_blocking(prune_version_dirs, storage_root, version_dir)

        logger.info(f"{BINARY_NAME} {release.version} ready at {destination}")
        return ProvisioningResult(
            path=destination,
            version=release.version,
            state=ProvisioningState.READY,
            source=BinarySource.INSTALLED,
        )

    async def _run_installer(
        self,
        download_url: str,
        destination: Path,
        archive_kind: ArchiveKind,
    ) -> None:
        """Create the version directory and install; OS errors become InstallFailedError."""
        try:
            await _run_blocking(
                functools.partial(destination.parent.mkdir, parents=True, exist_ok=True)
            )
            await self.installer.install(download_url, destination, archive_kind)
        except OSError as e:
            raise InstallFailedError(f"Failed to install {destination}: {e}") from e

    def _ready(self, cached: InstalledBinary) -> ProvisioningResult:
        return ProvisioningResult(
            path=cached.path,
            version=cached.version,
            state=ProvisioningState.READY,
            source=BinarySource.CACHE,
        )

    def _fallback(self, cached: InstalledBinary, reason: str) -> ProvisioningResult:
        logger.warning(f"{reason}; falling back to cached binary {cached.path}")
        return ProvisioningResult(
            path=cached.path,
            version=cached.version,
            state=ProvisioningState.DEGRADED_FALLBACK,
            source=BinarySource.CACHE,
        )


def create_default_provisioner(
    state_file: Optional[Union[str, Path]] = None,
) -> BinaryProvisioner:
    """Build a provisioner persisting its state to a JSON file."""
    store = JsonFileStore(state_file or get_state_file())
    return BinaryProvisioner(InstallationState(store))


async def ensure_language_server(
    storage_root: Optional[Union[str, Path]] = None,
    config: Optional[ProvisioningConfig] = None,
    host_version: Optional[str] = None,
    force: bool = False,
    state_file: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Ensure the iwes binary is available.

    Environment Variables:
        IWE_BINARY_PATH: Path to a local binary (skips download)
        IWE_STORAGE_DIR, IWE_STATE_FILE: Install and state locations
        IWE_AUTO_UPDATE, IWE_UPDATE_CHECK_INTERVAL_HOURS: Update policy

    Args:
        storage_root: Install directory (default: per-user cache dir)
        config: Update policy (default: from environment)
        host_version: Running host application version
        force: Skip PATH and force an update check and fresh install
        state_file: JSON state file (default: per-user data dir)

    Returns:
        Path to the binary
    """
    root = Path(storage_root) if storage_root else get_storage_root()
    config = config or load_provisioning_config()
    provisioner = create_default_provisioner(state_file)

    if force:
        result = await provisioner.force_update(root, config)
    else:
        result = await provisioner.provision(root, config, host_version=host_version)
    return result.path


def ensure_language_server_sync(
    storage_root: Optional[Union[str, Path]] = None,
    config: Optional[ProvisioningConfig] = None,
    host_version: Optional[str] = None,
    force: bool = False,
    state_file: Optional[Union[str, Path]] = None,
) -> Path:
    """
    Sync wrapper for ensure_language_server.

    See ensure_language_server() for full documentation. Must not be
    called from a running event loop.
    """
    return asyncio.run(
        ensure_language_server(storage_root, config, host_version, force, state_file)
    )

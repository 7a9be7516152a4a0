"""
Persisted installation state.

The host application owns the actual storage; the core only needs a
KeyValueStore with get/set. InstallationState wraps it in typed
accessors with a documented default for every field:

    binary_path          None
    installed_version    None
    last_update_check    0 (epoch millis)
    last_host_version    None
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from iwe_bootstrap.types import InstalledBinary

logger = logging.getLogger(__name__)

BINARY_PATH_KEY = "iwe.binaryPath"
INSTALLED_VERSION_KEY = "iwe.installedVersion"
LAST_UPDATE_CHECK_KEY = "iwe.lastUpdateCheck"
LAST_HOST_VERSION_KEY = "iwe.lastHostVersion"

StateValue = Union[str, int, float, None]


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Persisted key/value storage supplied by the host application.

    Contract:
        - get() returns default for keys never set
        - set(key, None) clears the key
    """

    def get(self, key: str, default: StateValue = None) -> StateValue:
        ...

    def set(self, key: str, value: StateValue) -> None:
        ...


class MemoryStore:
    """In-process KeyValueStore, for embedding hosts and tests."""

    def __init__(self, initial: Optional[Dict[str, StateValue]] = None):
        self._data: Dict[str, StateValue] = dict(initial or {})

    def get(self, key: str, default: StateValue = None) -> StateValue:
        return self._data.get(key, default)

    def set(self, key: str, value: StateValue) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value

    def as_dict(self) -> Dict[str, StateValue]:
        return dict(self._data)


class JsonFileStore:
    """
    KeyValueStore backed by a JSON file.

    Every set() rewrites the file through a temporary file and an atomic
    rename. A missing file reads as empty; a corrupt one is logged and
    also read as empty.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get(self, key: str, default: StateValue = None) -> StateValue:
        return self._load().get(key, default)

    def set(self, key: str, value: StateValue) -> None:
        data = self._load()
        if value is None:
            data.pop(key, None)
        else:
            data[key] = value
        self._save(data)

    def _load(self) -> Dict[str, Any]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt state file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring state file {self.path}: not a JSON object")
            return {}
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".state-", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


class InstallationState:
    """Typed view over the persisted installation keys."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def binary_path(self) -> Optional[Path]:
        value = self._store.get(BINARY_PATH_KEY)
        return Path(value) if isinstance(value, str) and value else None

    @binary_path.setter
    def binary_path(self, value: Optional[Union[str, Path]]) -> None:
        self._store.set(BINARY_PATH_KEY, str(value) if value is not None else None)

    @property
    def installed_version(self) -> Optional[str]:
        value = self._store.get(INSTALLED_VERSION_KEY)
        return value if isinstance(value, str) and value else None

    @installed_version.setter
    def installed_version(self, value: Optional[str]) -> None:
        self._store.set(INSTALLED_VERSION_KEY, value)

    @property
    def last_update_check(self) -> int:
        """Epoch millis of the last update check, 0 if never checked."""
        value = self._store.get(LAST_UPDATE_CHECK_KEY, 0)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0
        return int(value)

    @property
    def last_host_version(self) -> Optional[str]:
        value = self._store.get(LAST_HOST_VERSION_KEY)
        return value if isinstance(value, str) and value else None

    def record_update_check(self, timestamp_ms: int) -> None:
        """Advance the last-check timestamp; older values are ignored."""
        if timestamp_ms > self.last_update_check:
            self._store.set(LAST_UPDATE_CHECK_KEY, int(timestamp_ms))

    def record_install(self, path: Path, version: Optional[str]) -> None:
        self.binary_path = path
        self.installed_version = version

    def installed_binary(self) -> Optional[InstalledBinary]:
        """The cached binary as recorded, without checking the filesystem."""
        path = self.binary_path
        if path is None:
            return None
        return InstalledBinary(
            path=path,
            version=self.installed_version,
            installed_at=datetime.now(timezone.utc),
        )

    def invalidate(self) -> None:
        """Forget the cached binary and reset the update-check timer."""
        self._store.set(LAST_UPDATE_CHECK_KEY, 0)
        self._store.set(BINARY_PATH_KEY, None)
        self._store.set(INSTALLED_VERSION_KEY, None)

    def observe_host_version(self, host_version: str) -> bool:
        """
        Record the running host application version.

        Returns:
            True if it changed since the last call, in which case the
            cache was invalidated
        """
        previous = self.last_host_version
        if previous == host_version:
            return False

        logger.info(
            f"Host version changed ({previous or 'none'} -> {host_version}), "
            "invalidating cached binary"
        )
        self.invalidate()
        self._store.set(LAST_HOST_VERSION_KEY, host_version)
        return True

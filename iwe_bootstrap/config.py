"""
Environment-driven configuration for iwe-bootstrap.

Environment Variables:
    IWE_AUTO_UPDATE: Check for newer releases (default: true)
    IWE_UPDATE_CHECK_INTERVAL_HOURS: Hours between update checks (default: 24)
    IWE_STORAGE_DIR: Directory holding the iwe-{version} installs
    IWE_STATE_FILE: JSON file holding the persisted installation state
    IWE_BINARY_PATH: Path to a local binary, takes precedence over PATH
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from platformdirs import user_cache_dir, user_data_dir

from iwe_bootstrap.errors import ConfigurationError
from iwe_bootstrap.types import ProvisioningConfig

logger = logging.getLogger(__name__)

APP_NAME = "iwe-bootstrap"
APP_AUTHOR = "iwe-org"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got: {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got: {raw!r}")


def load_provisioning_config() -> ProvisioningConfig:
    """
    Build a ProvisioningConfig from the environment.

    Raises:
        ConfigurationError: If a variable is set to an invalid value
    """
    defaults = ProvisioningConfig()
    return ProvisioningConfig(
        auto_update=_env_bool("IWE_AUTO_UPDATE", defaults.auto_update),
        update_check_interval_hours=_env_float(
            "IWE_UPDATE_CHECK_INTERVAL_HOURS",
            defaults.update_check_interval_hours,
        ),
    )


def get_storage_root() -> Path:
    """Get the directory where version directories are installed."""
    override = os.environ.get("IWE_STORAGE_DIR")
    if override:
        storage_root = Path(override).expanduser()
    else:
        storage_root = Path(user_cache_dir(APP_NAME, APP_AUTHOR)) / "bin"
    storage_root.mkdir(parents=True, exist_ok=True)
    return storage_root


def get_state_file() -> Path:
    """Get the JSON file holding the persisted installation state."""
    override = os.environ.get("IWE_STATE_FILE")
    if override:
        return Path(override).expanduser()
    return Path(user_data_dir(APP_NAME, APP_AUTHOR)) / "state.json"


def find_on_path(name: str) -> Optional[str]:
    """
    Look up an executable, honouring the IWE_BINARY_PATH override.

    Returns:
        Absolute path to the executable, or None if not found
    """
    local_binary = os.environ.get("IWE_BINARY_PATH")
    if local_binary:
        if Path(local_binary).is_file():
            return str(Path(local_binary).resolve())
        logger.warning(f"IWE_BINARY_PATH set but file not found: {local_binary}")
    found = shutil.which(name)
    return str(Path(found).resolve()) if found else None

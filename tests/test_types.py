"""
Tests for iwe_bootstrap.types module.
"""

from dataclasses import FrozenInstanceError
from datetime import datetime, timezone
from pathlib import Path

import pytest

from iwe_bootstrap.errors import ConfigurationError
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


class TestArchiveKind:
    """Tests for ArchiveKind enum."""

    def test_values(self):
        assert ArchiveKind.TAR_GZ.value == "tar.gz"
        assert ArchiveKind.ZIP.value == "zip"

    def test_string_enum(self):
        assert ArchiveKind.ZIP == "zip"
        assert ArchiveKind("tar.gz") is ArchiveKind.TAR_GZ


class TestProvisioningState:
    """Tests for ProvisioningState enum."""

    def test_all_states(self):
        assert [s.value for s in ProvisioningState] == [
            "no_binary",
            "cached_only",
            "check_pending",
            "installing",
            "ready",
            "degraded_fallback",
        ]


class TestBinarySource:
    """Tests for BinarySource enum."""

    def test_values(self):
        assert BinarySource.PATH.value == "path"
        assert BinarySource.CACHE.value == "cache"
        assert BinarySource.INSTALLED.value == "installed"


class TestReleaseDescriptor:
    """Tests for ReleaseDescriptor dataclass."""

    def test_defaults(self):
        release = ReleaseDescriptor(version="v1.0.0")
        assert release.assets == ()
        assert release.find_asset("anything") is None

    def test_find_asset_exact_name(self):
        asset = AssetRef("v1.0.0-universal-apple-darwin.tar.gz", "https://example.com/a")
        release = ReleaseDescriptor(version="v1.0.0", assets=(asset,))

        assert release.find_asset("v1.0.0-universal-apple-darwin.tar.gz") is asset
        assert release.find_asset("v1.0.0-universal-apple-darwin") is None

    def test_frozen(self):
        release = ReleaseDescriptor(version="v1.0.0")
        with pytest.raises(FrozenInstanceError):
            release.version = "v2.0.0"


class TestInstalledBinary:
    """Tests for InstalledBinary dataclass."""

    def test_defaults(self):
        binary = InstalledBinary(path=Path("/usr/bin/iwes"))

        assert binary.version is None
        assert binary.installed_at.tzinfo == timezone.utc

    def test_explicit_timestamp(self):
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        binary = InstalledBinary(path=Path("/x/iwes"), version="v1", installed_at=ts)
        assert binary.installed_at == ts


class TestProvisioningConfig:
    """Tests for ProvisioningConfig dataclass."""

    def test_defaults(self):
        config = ProvisioningConfig()

        assert config.auto_update is True
        assert config.update_check_interval_hours == 24
        assert config.update_check_interval_ms == 24 * 3600 * 1000

    def test_zero_interval_allowed(self):
        assert ProvisioningConfig(update_check_interval_hours=0).update_check_interval_ms == 0

    def test_negative_interval_rejected(self):
        with pytest.raises(ConfigurationError, match="non-negative"):
            ProvisioningConfig(update_check_interval_hours=-1)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("IWE_AUTO_UPDATE", "false")
        monkeypatch.setenv("IWE_UPDATE_CHECK_INTERVAL_HOURS", "2")

        config = ProvisioningConfig.from_env()

        assert config == ProvisioningConfig(auto_update=False, update_check_interval_hours=2)


class TestProvisioningResult:
    """Tests for ProvisioningResult dataclass."""

    def test_ready_not_degraded(self):
        result = ProvisioningResult(
            path=Path("/x/iwes"),
            version="v1",
            state=ProvisioningState.READY,
            source=BinarySource.CACHE,
        )
        assert result.is_degraded is False

    def test_fallback_is_degraded(self):
        result = ProvisioningResult(
            path=Path("/x/iwes"),
            version="v1",
            state=ProvisioningState.DEGRADED_FALLBACK,
            source=BinarySource.CACHE,
        )
        assert result.is_degraded is True

"""Tests for VaultConfig and host identifier lookup."""
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

from sophia_vault.vault import config as config_module
from sophia_vault.vault.config import VaultConfig, get_host_identifier
from sophia_vault.vault.exceptions import InitializationError


class TestVaultConfig:
    """Tests for path layout and validation."""

    def test_paths(self, tmp_path):
        """Primary, backup and temp files share one directory."""
        cfg = VaultConfig(storage_dir=tmp_path)
        assert cfg.file_path == tmp_path / "secrets.enc"
        assert cfg.backup_path == tmp_path / "secrets.enc.bak"
        assert cfg.temp_path == tmp_path / "secrets.enc.tmp"
        assert cfg.temp_path.parent == cfg.file_path.parent

    def test_default_uses_user_config_dir(self, monkeypatch, tmp_path):
        """default() roots the vault in the application config dir."""
        monkeypatch.setattr(
            config_module, "user_config_dir",
            lambda appname, appauthor=None: str(tmp_path / appname),
        )
        cfg = VaultConfig.default()
        assert cfg.storage_dir == tmp_path / "sophia"

    @pytest.mark.parametrize("name", ["../secrets.enc", "a/b", "a\\b", ".."])
    def test_file_name_must_be_bare(self, tmp_path, name):
        with pytest.raises(ValidationError):
            VaultConfig(storage_dir=tmp_path, file_name=name)

    @pytest.mark.parametrize("suffix", ["bak", ".", "", "./x"])
    def test_invalid_suffix(self, tmp_path, suffix):
        with pytest.raises(ValidationError):
            VaultConfig(storage_dir=tmp_path, backup_suffix=suffix)

    def test_suffixes_must_differ(self, tmp_path):
        """Backup and temp file may not be the same file."""
        with pytest.raises(ValidationError):
            VaultConfig(
                storage_dir=tmp_path, backup_suffix=".x", temp_suffix=".x",
            )


class TestHostIdentifier:
    """Tests for get_host_identifier on Linux."""

    def test_reads_machine_id(self, monkeypatch, tmp_path):
        machine_id = tmp_path / "machine-id"
        machine_id.write_text("abc123\n")
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setattr(
            config_module, "_LINUX_MACHINE_ID_PATHS", (machine_id,),
        )
        assert get_host_identifier() == "abc123"

    def test_falls_through_to_dbus_id(self, monkeypatch, tmp_path):
        """An empty or missing first file falls through to the next path."""
        empty = tmp_path / "machine-id"
        empty.write_text("")
        dbus = tmp_path / "dbus-machine-id"
        dbus.write_text("fromdbus")
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setattr(
            config_module, "_LINUX_MACHINE_ID_PATHS",
            (tmp_path / "missing", empty, dbus),
        )
        assert get_host_identifier() == "fromdbus"

    def test_unavailable(self, monkeypatch, tmp_path):
        """No identifier is an initialization failure."""
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setattr(
            config_module, "_LINUX_MACHINE_ID_PATHS", (tmp_path / "missing",),
        )
        with pytest.raises(InitializationError):
            get_host_identifier()

    def test_darwin_ioreg(self, monkeypatch):
        """macOS reads IOPlatformUUID from ioreg output."""
        class _Result:
            stdout = '  "IOPlatformUUID" = "1234-ABCD"\n'

        monkeypatch.setattr(sys, "platform", "darwin")
        monkeypatch.setattr(
            config_module.subprocess, "run", lambda *a, **kw: _Result(),
        )
        assert get_host_identifier() == "1234-ABCD"

    def test_storage_dir_is_path(self, tmp_path):
        cfg = VaultConfig(storage_dir=str(tmp_path))
        assert isinstance(cfg.storage_dir, Path)

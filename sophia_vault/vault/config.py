"""
Vault Configuration — storage paths and the host identifier.

The vault lives in the per-user application configuration directory:
    <user_config_dir>/secrets.enc      primary envelope
    <user_config_dir>/secrets.enc.bak  previous generation

Security Note:
    The host identifier is key material input. Never log it.
"""
import re
import sys
import logging
import subprocess
from pathlib import Path

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, field_validator, model_validator

from .exceptions import InitializationError

logger = logging.getLogger("sophia.vault")

APP_NAME = "sophia"
# Fixed application salt mixed into the master key derivation.
APP_SALT = "sophia-assistant-v1.2-encryption-key"

_LINUX_MACHINE_ID_PATHS = (
    Path("/etc/machine-id"),
    Path("/var/lib/dbus/machine-id"),
)
_IOREG_UUID = re.compile(r'"IOPlatformUUID"\s*=\s*"([^"]+)"')


def _linux_machine_id() -> str | None:
    for path in _LINUX_MACHINE_ID_PATHS:
        try:
            value = path.read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if value:
            return value
    return None


def _darwin_machine_id() -> str | None:
    try:
        result = subprocess.run(
            ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
            capture_output=True, text=True, timeout=5, check=True,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    match = _IOREG_UUID.search(result.stdout)
    return match.group(1) if match else None


def _windows_machine_id() -> str | None:
    import winreg  # pylint: disable=import-outside-toplevel,import-error

    try:
        with winreg.OpenKey(
            winreg.HKEY_LOCAL_MACHINE,
            r"SOFTWARE\Microsoft\Cryptography",
            0,
            winreg.KEY_READ | winreg.KEY_WOW64_64KEY,
        ) as key:
            value, _ = winreg.QueryValueEx(key, "MachineGuid")
    except OSError:
        return None
    return str(value).strip() or None


def get_host_identifier() -> str:
    """Return a stable identifier of this machine.

    Returns:
        The OS machine id (Linux machine-id, macOS IOPlatformUUID or
        Windows MachineGuid).

    Raises:
        InitializationError: If the platform exposes no usable identifier.
    """
    if sys.platform == "win32":
        host_id = _windows_machine_id()
    elif sys.platform == "darwin":
        host_id = _darwin_machine_id()
    else:
        host_id = _linux_machine_id()
    if not host_id:
        raise InitializationError(
            f"Could not obtain a machine identifier on platform {sys.platform!r}"
        )
    return host_id


def default_storage_dir() -> Path:
    """Per-user configuration directory of the application."""
    return Path(user_config_dir(APP_NAME, appauthor=False))


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    storage_dir: Path = Field(default_factory=default_storage_dir)
    file_name: str = Field(default="secrets.enc", min_length=1)
    backup_suffix: str = Field(default=".bak")
    temp_suffix: str = Field(default=".tmp")
    app_salt: str = Field(default=APP_SALT, min_length=1)

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, v: str) -> str:
        """File name must be a bare name inside storage_dir."""
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError(f"file_name must not contain a path: {v!r}")
        return v

    @field_validator("backup_suffix", "temp_suffix")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        """Suffixes are appended to file_name and must start with a dot."""
        if not v.startswith(".") or len(v) < 2:
            raise ValueError(f"Suffix must start with '.': {v!r}")
        if "/" in v or "\\" in v:
            raise ValueError(f"Suffix must not contain a path: {v!r}")
        return v

    @model_validator(mode="after")
    def validate_distinct_suffixes(self) -> "VaultConfig":
        """Backup and temp files must not collide."""
        if self.backup_suffix == self.temp_suffix:
            raise ValueError(
                "backup_suffix and temp_suffix must differ "
                f"(both are {self.backup_suffix!r})"
            )
        return self

    @property
    def file_path(self) -> Path:
        return self.storage_dir / self.file_name

    @property
    def backup_path(self) -> Path:
        return self.storage_dir / f"{self.file_name}{self.backup_suffix}"

    @property
    def temp_path(self) -> Path:
        """Scratch file for atomic writes, in the same directory as the primary."""
        return self.storage_dir / f"{self.file_name}{self.temp_suffix}"

    @classmethod
    def default(cls) -> "VaultConfig":
        """Create a VaultConfig rooted at the user's configuration directory.

        Returns:
            VaultConfig with default file names.
        """
        config = cls()
        logger.debug("Vault storage directory: %s", config.storage_dir)
        return config

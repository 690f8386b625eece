"""
FileBackend — Encrypted on-disk persistence of the secret mapping.

File layout:
    secrets.enc       [nonce 12B][AES-GCM(envelope JSON) + tag 16B]
    secrets.enc.bak   previous successful generation of secrets.enc

Envelope (plaintext, once decrypted)::

    {"version": "1",
     "secrets": {"<key>": "<value>", ...},
     "metadata": {"created_at": "<ISO-8601>", "updated_at": "<ISO-8601>"}}

Every ``save()`` rewrites the whole mapping: the current primary is copied to
the backup path, the new envelope is written and fsynced to a temp file in the
same directory, and the temp file is renamed over the primary. The rename is
the only step that changes what the primary path holds.

Security Note:
    Never log secret values or ciphertext. Only log paths and counts.
"""
import os
import shutil
import logging
from pathlib import Path
from datetime import datetime, timezone
from collections.abc import Mapping
from typing import Optional

import orjson
from pydantic import BaseModel, Field, ValidationError, field_validator

from .config import VaultConfig
from .crypto import derive_master_key, encrypt, decrypt
from .exceptions import (
    VaultError,
    InitializationError,
    StorageError,
    BackupNotFoundError,
    EnvelopeError,
)

logger = logging.getLogger("sophia.vault")

ENVELOPE_VERSION = "1"
_DIR_MODE = 0o700  # owner only
_FILE_MODE = 0o600  # owner read/write only
_POSIX = os.name == "posix"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SecretsMetadata(BaseModel):
    """Timestamps carried inside the envelope."""

    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class SecretsFile(BaseModel):
    """Plaintext envelope stored (encrypted) in the vault file."""

    version: str = ENVELOPE_VERSION
    secrets: dict[str, str] = Field(default_factory=dict)
    metadata: SecretsMetadata = Field(default_factory=SecretsMetadata)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Only envelope version 1 is understood."""
        if v != ENVELOPE_VERSION:
            raise ValueError(f"Unsupported secrets file version: {v!r}")
        return v

    def to_bytes(self) -> bytes:
        """Serialize envelope to JSON bytes."""
        return orjson.dumps(
            self.model_dump(mode="json"), option=orjson.OPT_INDENT_2,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "SecretsFile":
        """Parse envelope JSON bytes.

        Raises:
            EnvelopeError: If the bytes are not a valid envelope.
        """
        try:
            return cls.model_validate(orjson.loads(data))
        except orjson.JSONDecodeError as err:
            raise EnvelopeError(f"Secrets file is not valid JSON: {err}") from err
        except ValidationError as err:
            raise EnvelopeError(f"Invalid secrets file structure: {err}") from err


class FileBackend:
    """Reads and writes the encrypted secrets envelope.

    The backend derives the master key once at construction and keeps it for
    the life of the process. It is not thread-safe on its own; the
    :class:`~sophia_vault.vault.secret_store.SecretStore` serializes access.
    """

    def __init__(
        self,
        config: Optional[VaultConfig] = None,
        master_key: Optional[bytes] = None,
    ):
        self._config = config or VaultConfig.default()
        self._ensure_storage_dir()
        if master_key is None:
            master_key = derive_master_key(app_salt=self._config.app_salt)
        if len(master_key) != 32:
            raise InitializationError(
                f"Master key must be 32 bytes, got {len(master_key)}"
            )
        self._master_key = master_key
        self._created_at: Optional[datetime] = None
        logger.info("FileBackend initialized with path: %s", self.file_path)

    @property
    def config(self) -> VaultConfig:
        return self._config

    @property
    def file_path(self) -> Path:
        return self._config.file_path

    @property
    def backup_path(self) -> Path:
        return self._config.backup_path

    # ------------------------------------------------------------------
    # Directory handling
    # ------------------------------------------------------------------

    def _ensure_storage_dir(self) -> None:
        """Create the storage directory (idempotent) and restrict it to owner.

        Raises:
            InitializationError: If the directory cannot be created or secured.
        """
        storage_dir = self._config.storage_dir
        try:
            storage_dir.mkdir(parents=True, exist_ok=True)
            if _POSIX:
                os.chmod(storage_dir, _DIR_MODE)
        except OSError as err:
            raise InitializationError(
                f"Failed to prepare storage directory {storage_dir}: {err}"
            ) from err

    def _sync_storage_dir(self) -> None:
        """fsync the directory so the rename itself is durable."""
        if not _POSIX:
            return
        fd = os.open(self._config.storage_dir, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def read_envelope(self, path: Path) -> SecretsFile:
        """Read, decrypt and parse the envelope stored at ``path``.

        Raises:
            StorageError: If the file cannot be read.
            CryptoError: If the file fails authentication.
            EnvelopeError: If the plaintext is not a valid envelope.
        """
        try:
            encrypted_data = path.read_bytes()
        except OSError as err:
            raise StorageError(f"Failed to read {path}: {err}") from err
        plaintext = decrypt(encrypted_data, self._master_key)
        return SecretsFile.from_bytes(plaintext)

    def load(self) -> dict[str, str]:
        """Load the secret mapping from the primary file.

        Returns:
            The stored mapping, or an empty dict if no vault file exists yet.
        """
        if not self.file_path.exists():
            logger.info("Secrets file does not exist, returning empty map")
            return {}
        envelope = self.read_envelope(self.file_path)
        self._created_at = envelope.metadata.created_at
        logger.info("Loaded %d secrets from file", len(envelope.secrets))
        return dict(envelope.secrets)

    def load_from_backup(self) -> dict[str, str]:
        """Load the secret mapping from the backup file.

        Raises:
            BackupNotFoundError: If there is no backup file.
        """
        if not self.backup_path.exists():
            raise BackupNotFoundError(
                f"Backup file does not exist: {self.backup_path}"
            )
        logger.warning("Loading from backup file: %s", self.backup_path)
        envelope = self.read_envelope(self.backup_path)
        self._created_at = envelope.metadata.created_at
        logger.info("Loaded %d secrets from backup", len(envelope.secrets))
        return dict(envelope.secrets)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def _backup_primary(self) -> None:
        if not self.file_path.exists():
            return
        try:
            # copy2 keeps the 0600 mode bits of the primary.
            shutil.copy2(self.file_path, self.backup_path)
        except OSError as err:
            raise StorageError(f"Failed to create backup: {err}") from err
        logger.debug("Created backup at: %s", self.backup_path)

    def _build_envelope(self, secrets: Mapping[str, str]) -> SecretsFile:
        now = _utcnow()
        return SecretsFile(
            secrets=dict(secrets),
            metadata=SecretsMetadata(
                created_at=self._created_at or now,
                updated_at=now,
            ),
        )

    def _write_temp(self, temp_path: Path, data: bytes) -> None:
        fd = os.open(
            temp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE,
        )
        with open(fd, "wb") as fp:
            fp.write(data)
            fp.flush()
            os.fsync(fp.fileno())
        if _POSIX:
            os.chmod(temp_path, _FILE_MODE)

    def save(self, secrets: Mapping[str, str]) -> None:
        """Persist the whole mapping atomically.

        Args:
            secrets: Complete mapping to store; replaces the previous one.

        Raises:
            StorageError: If any step fails. The primary file then still
                holds the previous generation.
        """
        try:
            envelope = self._build_envelope(secrets)
            plaintext = envelope.to_bytes()
        except (orjson.JSONEncodeError, ValueError) as err:
            raise StorageError(f"Failed to serialize secrets: {err}") from err
        encrypted_data = encrypt(plaintext, self._master_key)
        self._backup_primary()

        temp_path = self._config.temp_path
        try:
            self._write_temp(temp_path, encrypted_data)
            os.replace(temp_path, self.file_path)
        except OSError as err:
            try:
                temp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError as cleanup_err:
                logger.warning(
                    "Could not remove temp file %s: %s", temp_path, cleanup_err,
                )
            raise StorageError(f"Failed to write secrets file: {err}") from err

        try:
            self._sync_storage_dir()
        except OSError as err:
            logger.warning(
                "Could not sync storage directory %s: %s",
                self._config.storage_dir, err,
            )
        self._created_at = envelope.metadata.created_at
        logger.info("Saved %d secrets to encrypted file", len(envelope.secrets))


def open_backend(config: Optional[VaultConfig] = None) -> FileBackend:
    """Build a FileBackend, reporting every failure as an InitializationError.

    Raises:
        InitializationError: If the backend cannot be constructed.
    """
    try:
        return FileBackend(config)
    except InitializationError:
        raise
    except (VaultError, OSError) as err:
        raise InitializationError(f"Failed to initialize vault: {err}") from err

"""
SecretStore — In-memory secret cache with write-through encrypted persistence.

Provides the public API consumed by the rest of the application:
- ``set_secret(key, value)`` — store a secret and persist the whole vault
- ``get_secret(key)`` — return a secret from the cache (or ``None``)
- ``delete_secret(key)`` — remove a secret and persist the whole vault
- ``keys()`` / ``exists(key)`` — enumerate and check cached secrets
- ``open(config)`` — factory that builds the file backend and loads the vault

Reads never touch the filesystem. Every mutation holds the writer lock
until the full snapshot has been saved; a failed save is raised to the
caller while the cache keeps the attempted change.

Security Note:
    Never log secret values. Only log key names and counts.
"""
import logging
import threading
from contextlib import contextmanager
from collections.abc import Iterator
from typing import Optional

from .config import VaultConfig
from .exceptions import VaultError, LockError
from .file_backend import FileBackend, open_backend

logger = logging.getLogger("sophia.vault")

_MAX_KEY_LENGTH = 255

LOADED_FROM_PRIMARY = "primary"
LOADED_FROM_BACKUP = "backup"
LOADED_EMPTY = "empty"


def _require_utf8(text: str, what: str) -> None:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as err:
        raise ValueError(f"Secret {what} is not valid UTF-8: {err.reason}") from None


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of ``get_secret``
    calls cannot starve a mutation.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise LockError("Read lock released without being held")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise LockError("Write lock released without being held")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class SecretStore:
    """Credential vault facade.

    Create one instance at application start and hand it to every component
    that needs credentials. The cache is populated from the primary vault
    file, falling back to the backup and finally to an empty vault; a
    damaged vault never prevents startup.
    """

    def __init__(self, backend: FileBackend):
        self._backend = backend
        self._lock = ReadWriteLock()
        self._cache: dict[str, str] = {}
        self.loaded_from = LOADED_EMPTY
        self._load()

    @classmethod
    def open(cls, config: Optional[VaultConfig] = None) -> "SecretStore":
        """Build the file backend and load the vault.

        Args:
            config: Vault configuration; defaults to the user config dir.

        Returns:
            Populated SecretStore instance.

        Raises:
            InitializationError: If the backend cannot be constructed.
        """
        return cls(open_backend(config))

    @property
    def backend(self) -> FileBackend:
        return self._backend

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def _load(self) -> None:
        try:
            secrets = self._backend.load()
            source = (
                LOADED_FROM_PRIMARY if self._backend.file_path.exists()
                else LOADED_EMPTY
            )
        except VaultError as err:
            logger.error(
                "Failed to load secrets file, attempting backup: %s", err,
            )
            try:
                secrets = self._backend.load_from_backup()
                source = LOADED_FROM_BACKUP
            except VaultError as backup_err:
                logger.warning(
                    "Failed to load backup, starting with an empty vault: %s",
                    backup_err,
                )
                secrets = {}
                source = LOADED_EMPTY
        with self._lock.write_locked():
            self._cache = secrets
            self.loaded_from = source
        logger.info(
            "SecretStore ready with %d secret(s) (source=%s)",
            len(secrets), source,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_key(self, key: str) -> None:
        """Validate a secret key name.

        Raises:
            ValueError: If key is not a string, empty, or too long,
                or not encodable as UTF-8.
        """
        if not isinstance(key, str):
            raise ValueError(f"Secret key must be a string, got {type(key).__name__}")
        if not key:
            raise ValueError("Secret key cannot be empty")
        if len(key) > _MAX_KEY_LENGTH:
            raise ValueError(
                f"Secret key cannot exceed {_MAX_KEY_LENGTH} characters"
            )
        _require_utf8(key, "key")

    def _validate_value(self, value: str) -> None:
        if not isinstance(value, str):
            raise ValueError(
                f"Secret value must be a string, got {type(value).__name__}"
            )
        _require_utf8(value, "value")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_secret(self, key: str, value: str) -> None:
        """Store a secret and persist the whole vault.

        Args:
            key: Secret name (1-255 chars).
            value: Secret value.

        Raises:
            ValueError: If key or value is invalid.
            StorageError: If the vault could not be written. The cache
                keeps the new value; the caller may retry.
        """
        self._validate_key(key)
        self._validate_value(value)
        logger.info("Storing secret for key: %s", key)
        with self._lock.write_locked():
            self._cache[key] = value
            self._backend.save(self._cache)
        logger.debug("Secret stored for key: %s", key)

    def get_secret(self, key: str) -> Optional[str]:
        """Return a secret from the in-memory cache.

        Args:
            key: Secret name.

        Returns:
            The secret value, or None if it is not stored.
        """
        self._validate_key(key)
        with self._lock.read_locked():
            value = self._cache.get(key)
        if value is None:
            logger.debug("Secret not found for key: %s", key)
        return value

    def delete_secret(self, key: str) -> None:
        """Remove a secret and persist the whole vault.

        Deleting a missing key is not an error; the vault is still saved.

        Raises:
            StorageError: If the vault could not be written.
        """
        self._validate_key(key)
        logger.info("Deleting secret for key: %s", key)
        with self._lock.write_locked():
            self._cache.pop(key, None)
            self._backend.save(self._cache)

    def keys(self) -> list[str]:
        """List stored secret names."""
        with self._lock.read_locked():
            return list(self._cache.keys())

    def exists(self, key: str) -> bool:
        with self._lock.read_locked():
            return key in self._cache

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.exists(key)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._cache)

    def __repr__(self) -> str:
        return (
            f"<SecretStore path={str(self._backend.file_path)!r} "
            f"secrets={len(self)}>"
        )

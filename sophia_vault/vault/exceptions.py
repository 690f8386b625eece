"""Vault errors.

Every error raised by the vault derives from :class:`VaultError` so callers
can catch the whole family at once.
"""


class VaultError(Exception):
    """Base error for credential vault failures."""


class InitializationError(VaultError):
    """Raised when the vault cannot be brought up (no host id, bad storage dir)."""


class StorageError(VaultError):
    """Raised when reading, writing, syncing or renaming vault files fails."""


class BackupNotFoundError(StorageError):
    """Raised when a backup load is requested but no backup file exists."""


class CryptoError(VaultError):
    """Raised when a blob cannot be authenticated or decrypted."""


class EnvelopeError(CryptoError):
    """Raised when decrypted bytes are not a valid secrets envelope."""


class LockError(VaultError):
    """Raised when the store lock is found in an inconsistent state."""

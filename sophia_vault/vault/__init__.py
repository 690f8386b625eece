"""Credential Vault — Encrypted at-rest storage of API keys on this machine.

Security Note (Threat Model):
    The vault protects secrets against exposure of a disk image. The master
    key is derived from the machine identifier and a fixed application salt,
    so a process running on this host as any user able to read the vault
    file can recover its contents. The vault cannot be opened on another
    machine and offers no key rotation or passphrase. Decrypted secrets live
    in process memory for the lifetime of the store.
"""

from .exceptions import (
    VaultError,
    InitializationError,
    StorageError,
    BackupNotFoundError,
    CryptoError,
    EnvelopeError,
    LockError,
)
from .config import VaultConfig, get_host_identifier
from .crypto import derive_master_key, encrypt, decrypt
from .file_backend import FileBackend, SecretsFile
from .secret_store import SecretStore

__all__ = [
    "SecretStore",
    "FileBackend",
    "SecretsFile",
    "VaultConfig",
    "get_host_identifier",
    "derive_master_key",
    "encrypt",
    "decrypt",
    "VaultError",
    "InitializationError",
    "StorageError",
    "BackupNotFoundError",
    "CryptoError",
    "EnvelopeError",
    "LockError",
]

"""
Vault Crypto Core — Master key derivation and authenticated encryption.

- Master key: SHA-256(host_identifier || APP_SALT), recomputed on every start.
- Cipher: AES-256-GCM → [nonce 12B][ciphertext + tag 16B]

Security Note:
    Never log key material, plaintext or ciphertext values.
    Nonces are random 96-bit values drawn from os.urandom for every call;
    a repeated nonce under the same key breaks confidentiality.
"""
import os
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .config import APP_SALT, get_host_identifier
from .exceptions import CryptoError

logger = logging.getLogger("sophia.vault")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # 128-bit GCM tag
KEY_LENGTH = 32  # AES-256


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_master_key(
    host_id: Optional[str] = None,
    app_salt: str = APP_SALT,
) -> bytes:
    """Derive the 32-byte master key bound to this machine.

    Args:
        host_id: Machine identifier; read from the OS when omitted.
        app_salt: Fixed application salt.

    Returns:
        32-byte master key. Identical on every call on the same host.

    Raises:
        InitializationError: If the host identifier cannot be obtained.
    """
    if host_id is None:
        host_id = get_host_identifier()
    digest = hashes.Hash(hashes.SHA256())
    digest.update(f"{host_id}{app_salt}".encode("utf-8"))
    key = digest.finalize()
    logger.info("Master key derived from machine identifier")
    return key


def _cipher(key: bytes) -> AESGCM:
    if len(key) != KEY_LENGTH:
        raise CryptoError(
            f"Master key must be exactly {KEY_LENGTH} bytes, got {len(key)}"
        )
    return AESGCM(key)


# ---------------------------------------------------------------------------
# Authenticated encryption
# ---------------------------------------------------------------------------

def encrypt(plaintext: bytes, key: bytes) -> bytes:
    """Encrypt plaintext under the master key.

    Format: [nonce 12B][encrypted_payload + GCM_tag 16B]

    Args:
        plaintext: Data to encrypt (may be empty).
        key: Raw 32-byte master key.

    Returns:
        Encrypted blob with the nonce prepended.
    """
    cipher = _cipher(key)
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, plaintext, None)
    logger.debug(
        "Encrypted %d bytes -> %d bytes (with nonce)",
        len(plaintext), NONCE_SIZE + len(ct),
    )
    return nonce + ct


def decrypt(blob: bytes, key: bytes) -> bytes:
    """Decrypt a blob produced by :func:`encrypt`.

    Args:
        blob: Ciphertext in format [nonce 12B][payload+tag].
        key: Raw 32-byte master key.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        CryptoError: If the blob is too short, was tampered with, or the
            key is wrong. No plaintext is returned in that case.
    """
    if len(blob) < NONCE_SIZE:
        raise CryptoError(
            f"Encrypted data too short: {len(blob)} bytes "
            f"(minimum {NONCE_SIZE})"
        )
    cipher = _cipher(key)
    nonce = blob[:NONCE_SIZE]
    ct = blob[NONCE_SIZE:]
    try:
        plaintext = cipher.decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise CryptoError(
            "Decryption failed: authentication tag mismatch"
        ) from err
    logger.debug("Decrypted %d bytes -> %d bytes", len(blob), len(plaintext))
    return plaintext

"""Fernet encryption for source credentials at rest.

API connector configs store their ``api_key`` encrypted. Connectors decrypt
their own credential right before a remote call; nothing else in the
pipeline sees plaintext keys. Decryption falls back to the previous key
while a key rotation is in progress.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

from foundry.core.config import get_settings

logger = logging.getLogger(__name__)


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a valid Fernet key from an arbitrary secret string."""
    try:
        Fernet(secret.encode())
        return secret.encode()
    except (ValueError, binascii.Error):
        derived = hashlib.sha256(secret.encode()).digest()
        return base64.urlsafe_b64encode(derived)


def _get_fernet() -> Fernet:
    settings = get_settings()
    key = settings.encryption_key
    if not key:
        raise RuntimeError("ENCRYPTION_KEY not configured. Set it in environment or .env file.")
    return Fernet(_derive_fernet_key(key))


def _get_fernet_previous() -> Fernet | None:
    settings = get_settings()
    prev_key = settings.encryption_key_previous
    if not prev_key:
        return None
    return Fernet(_derive_fernet_key(prev_key))


def encrypt_value(plaintext: str) -> str:
    """Encrypt a credential and return the Fernet token as text."""
    f = _get_fernet()
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """Decrypt a credential produced by :func:`encrypt_value`.

    Tries the current key first, then the previous key.

    Raises:
        InvalidToken: Neither key can decrypt the value.
    """
    f = _get_fernet()
    try:
        return f.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        prev = _get_fernet_previous()
        if prev:
            try:
                return prev.decrypt(ciphertext.encode()).decode()
            except InvalidToken:
                pass
        logger.error("Failed to decrypt source credential: invalid token or wrong key")
        raise

"""Tests for credential encryption (foundry/core/encryption.py)."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet, InvalidToken

from foundry.core.config import Settings
from foundry.core.encryption import decrypt_value, encrypt_value


def _settings(key: str, previous: str = "") -> Settings:
    return Settings(
        encryption_key=key,
        encryption_key_previous=previous,
        _env_file=None,  # type: ignore[call-arg]
    )


class TestEncryption:
    """Encrypt/decrypt roundtrip with a known Fernet key."""

    @pytest.fixture(autouse=True)
    def _mock_settings(self):
        key = Fernet.generate_key().decode()
        with patch("foundry.core.encryption.get_settings", return_value=_settings(key)):
            yield

    def test_encrypt_decrypt_roundtrip(self) -> None:
        ciphertext = encrypt_value("tw-api-key")
        assert ciphertext != "tw-api-key"
        assert decrypt_value(ciphertext) == "tw-api-key"

    def test_decrypt_invalid_ciphertext_raises(self) -> None:
        with pytest.raises(InvalidToken):
            decrypt_value("not-valid-ciphertext")

    def test_arbitrary_secret_is_derived(self) -> None:
        with patch("foundry.core.encryption.get_settings", return_value=_settings("short secret")):
            assert decrypt_value(encrypt_value("value")) == "value"


class TestKeyRotation:
    """Previous-key fallback."""

    def test_previous_key_fallback(self) -> None:
        old_key = Fernet.generate_key().decode()
        new_key = Fernet.generate_key().decode()
        with patch("foundry.core.encryption.get_settings", return_value=_settings(old_key)):
            ciphertext = encrypt_value("secret")

        with patch("foundry.core.encryption.get_settings", return_value=_settings(new_key, old_key)):
            assert decrypt_value(ciphertext) == "secret"

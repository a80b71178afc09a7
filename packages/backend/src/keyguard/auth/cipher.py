"""Reversible encryption for stored provider API keys.

Learn: Uses Fernet (AES-128-CBC + HMAC-SHA256) from `cryptography`.
Fernet is authenticated, so ciphertext from another key or a corrupted
value fails the HMAC check instead of decrypting to garbage. Every
failure is reported as the same DecryptionError with a fixed message,
so callers can't probe for why a value didn't decrypt.

The key is process-wide (KEYGUARD_ENCRYPTION_KEY). It can be a real
Fernet key (see `keyguard generate-keys`) or any passphrase; passphrases
are stretched with SHA-256 into a Fernet key, deterministically.
"""

import base64
import binascii
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from keyguard.auth.errors import DecryptionError, EncryptionError

FERNET_KEY_BYTES = 32


def _derive_fernet_key(key: bytes) -> bytes:
    """Use the key as-is if it is a Fernet key, else derive one from it."""
    try:
        if len(base64.urlsafe_b64decode(key)) == FERNET_KEY_BYTES:
            return key
    except (binascii.Error, ValueError):
        pass
    return base64.urlsafe_b64encode(hashlib.sha256(key).digest())


class SecretCipher:
    """Encrypt and decrypt individual secret strings under one key."""

    def __init__(self, key: str | bytes):
        if isinstance(key, str):
            key = key.encode("utf-8")
        if not key:
            raise ValueError("Encryption key must not be empty")
        self._fernet = Fernet(_derive_fernet_key(key))

    @staticmethod
    def generate_key() -> str:
        """Return a fresh random Fernet key."""
        return Fernet.generate_key().decode("ascii")

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a secret. Empty input returns '' without touching the cipher."""
        if not plaintext:
            return ""
        try:
            token = self._fernet.encrypt(plaintext.encode("utf-8"))
        except (AttributeError, TypeError, ValueError) as e:
            raise EncryptionError("Failed to encrypt secret") from e
        return token.decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a secret produced by encrypt() under the same key.

        Raises DecryptionError for anything else (wrong key, tampered or
        truncated value, not ciphertext at all).
        """
        if not ciphertext:
            return ""
        try:
            data = self._fernet.decrypt(ciphertext.encode("ascii"))
            return data.decode("utf-8")
        except (InvalidToken, AttributeError, TypeError, ValueError):
            raise DecryptionError("Stored secret could not be decrypted") from None

"""Fernet field encryption for readings and platform credentials at rest.

Readings are stored as encrypted JSON; access tokens and export paths as
encrypted text. Metric history and insight text stay in the clear so trend
queries never need the key.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class FieldEncryptor:
    """Encrypts JSON values and plain strings with one Fernet key.

    Usage::

        encryptor = FieldEncryptor(key=FieldEncryptor.generate_key())
        token = encryptor.encrypt({"steps": 8200})
        encryptor.decrypt(token)           # {"steps": 8200}
        encryptor.decrypt_text(encryptor.encrypt_text("oauth-token"))
    """

    def __init__(self, key: str) -> None:
        """
        Args:
            key: A Fernet key string (``FieldEncryptor.generate_key()``).

        Raises:
            EncryptionError: If the key is empty or malformed.
        """
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.strip().encode("utf-8"))
        except (ValueError, TypeError) as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt_text(self, text: str) -> str:
        """Encrypt a string to a Fernet token. Empty input stays empty."""
        if not text:
            return ""
        return self._fernet.encrypt(text.encode("utf-8")).decode("utf-8")

    def decrypt_text(self, token: str) -> str:
        """
        Raises:
            EncryptionError: Wrong key or tampered token.
        """
        if not token:
            return ""
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc

    def encrypt(self, data: Any) -> str:
        """Encrypt a JSON-serializable value. ``None`` encrypts to ""."""
        if data is None:
            return ""
        try:
            plaintext = json.dumps(data, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self.encrypt_text(plaintext)

    def decrypt(self, token: str) -> Any:
        """Decrypt a token produced by :meth:`encrypt`. "" decrypts to ``None``."""
        if not token:
            return None
        plaintext = self.decrypt_text(token)
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode("utf-8")

"""Document codec for patient records at rest.

Patient documents are stored as JSON. When an encryption key is
configured the JSON is wrapped in a Fernet token; otherwise it is
written as plain text so a development database stays inspectable.
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
    """Encrypts and decrypts JSON-serializable values with Fernet."""

    def __init__(self, key: str) -> None:
        if not key or not key.strip():
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key.encode())
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, data: Any) -> str:
        try:
            plaintext = json.dumps(data, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc
        return self._fernet.encrypt(plaintext).decode("utf-8")

    def decrypt(self, token: str) -> Any:
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        return json.loads(plaintext)

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")


class DocumentCodec:
    """Serializes patient documents for the ``document_enc`` column."""

    def __init__(self, encryptor: FieldEncryptor | None = None) -> None:
        self._encryptor = encryptor

    @classmethod
    def from_key(cls, key: str) -> DocumentCodec:
        """Build a codec; an empty key means documents are stored unencrypted."""
        if not key:
            logger.warning("ENCRYPTION_KEY not set: patient documents stored as plain JSON")
            return cls()
        return cls(FieldEncryptor(key))

    @property
    def encrypted(self) -> bool:
        return self._encryptor is not None

    def encode(self, document: dict[str, Any]) -> str:
        if self._encryptor is not None:
            return self._encryptor.encrypt(document)
        return json.dumps(document, separators=(",", ":"))

    def decode(self, stored: str) -> dict[str, Any]:
        if self._encryptor is not None:
            return self._encryptor.decrypt(stored)
        return json.loads(stored)

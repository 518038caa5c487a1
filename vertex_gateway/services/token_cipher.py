"""Symmetric encryption of the tokens held in the durable credential store."""

from __future__ import annotations

import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from vertex_gateway.core.errors import StorageError


class TokenCipherService:
    """Fernet cipher keyed by a SHA-256 digest of a configured secret."""

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))

    def encrypt(self, plaintext: Optional[str]) -> Optional[str]:
        """Encrypt a token; absent tokens stay absent."""
        if plaintext is None:
            return None
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: Optional[str]) -> Optional[str]:
        """
        Decrypt a stored token.

        A ciphertext produced under a different secret means the persisted
        record is unreadable, which is reported as a storage failure.
        """
        if ciphertext is None:
            return None
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise StorageError(
                "Stored credential could not be decrypted; check TOKEN_ENCRYPTION_SECRET."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["TokenCipherService"]

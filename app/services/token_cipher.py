"""Symmetric encryption for access credentials kept in the credential store."""

from __future__ import annotations

import base64
import hashlib
from typing import Iterable, Mapping, Optional

from cryptography.fernet import Fernet, InvalidToken

from app.models.credentials import ACCESS_CREDENTIAL_FIELDS


class TokenCipherService:
    """Encrypt and decrypt token strings using a Fernet key derived from a secret."""

    def __init__(
        self,
        *,
        secret: str,
        sealed_fields: Iterable[str] = ACCESS_CREDENTIAL_FIELDS,
    ) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        self._fernet = Fernet(base64.urlsafe_b64encode(digest))
        self._sealed_fields = frozenset(sealed_fields)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, ciphertext: str) -> str:
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")

    def seal(self, fields: Mapping[str, Optional[str]]) -> dict[str, Optional[str]]:
        """Encrypt the access-credential fields of a store update, leaving others as-is."""
        return {
            name: self.encrypt(value) if name in self._sealed_fields and value else value
            for name, value in fields.items()
        }

    def unseal(self, fields: Mapping[str, Optional[str]]) -> dict[str, Optional[str]]:
        """Inverse of :meth:`seal` for a stored record."""
        return {
            name: self.decrypt(value) if name in self._sealed_fields and value else value
            for name, value in fields.items()
        }


__all__ = ["TokenCipherService"]

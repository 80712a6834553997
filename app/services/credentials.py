"""
Helpers for reading, presenting and revoking stored Splitwise credentials.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Literal, Optional

from app.clients.credential_store import CredentialStore
from app.models.credentials import (
    AccessCredential,
    CredentialRecord,
    OAuth1Credential,
    OAuth2Credential,
)
from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


class CredentialService:
    """Decrypts stored records and turns them into the configured credential variant."""

    def __init__(
        self,
        *,
        store: CredentialStore,
        cipher: TokenCipherService,
        auth_mode: Literal["oauth1", "oauth2"],
    ) -> None:
        self._store = store
        self._cipher = cipher
        self._auth_mode = auth_mode

    @property
    def auth_mode(self) -> str:
        return self._auth_mode

    async def load_record(self, user_id: str) -> Optional[CredentialRecord]:
        record = await self._store.get(user_id)
        if record is None:
            return None
        try:
            fields = self._cipher.unseal(record.to_store())
        except ValueError:
            logger.warning("Stored credential for user %s could not be decrypted", user_id)
            return None
        return CredentialRecord.model_validate(fields)

    async def load_credential(self, user_id: str) -> Optional[AccessCredential]:
        """Return the access credential for ``user_id`` or ``None`` when not authorized."""
        record = await self.load_record(user_id)
        if record is None or not record.access_token:
            return None
        if self._auth_mode == "oauth1":
            if not record.access_token_secret:
                return None
            return OAuth1Credential(token=record.access_token, secret=record.access_token_secret)
        return OAuth2Credential(token=record.access_token)

    async def describe(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = await self.load_record(user_id)
        if record is None:
            return None
        return record.to_store()

    async def revoke(self, user_id: str) -> bool:
        existed = await self._store.get(user_id) is not None
        await self._store.delete(user_id)
        if existed:
            logger.info("Revoked Splitwise credential for user %s", user_id)
        return existed


__all__ = ["CredentialService"]

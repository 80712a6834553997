"""
Credential storage backends.

Records live in a shared keyed store so any instance can serve any step of the
handshake. Redis is the production backend; the in-memory store only exists for
local development and tests and is never used as a fallback.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Iterable, Mapping, Optional

from pydantic import ValidationError
from redis import asyncio as redis_asyncio
from redis.exceptions import RedisError

from app.core.exceptions import StoreUnavailable
from app.models.credentials import CredentialRecord

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def _parse_record(user_id: str, raw: Mapping[str, Any] | None) -> Optional[CredentialRecord]:
    if not raw:
        return None
    try:
        return CredentialRecord.model_validate(dict(raw))
    except ValidationError:
        logger.warning("Ignoring malformed credential record for user %s", user_id)
        return None


def _split_fields(user_id: str, fields: Mapping[str, Optional[str]]) -> tuple[Dict[str, str], list[str]]:
    """Separate a partial update into fields to write and fields to clear."""
    to_set: Dict[str, str] = {"id": user_id}
    to_clear: list[str] = []
    for name, value in fields.items():
        if name == "id":
            continue
        if value is None:
            to_clear.append(name)
        else:
            to_set[name] = str(value)
    return to_set, to_clear


def _pending_payload(user_id: str, ttl_seconds: int, clock: Clock) -> str:
    return json.dumps({"id": user_id, "expires_at": clock() + ttl_seconds})


def _pending_user(raw: str | bytes | None, clock: Clock) -> Optional[str]:
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(payload, dict) or not payload.get("id"):
        return None
    expires_at = payload.get("expires_at")
    if expires_at is not None:
        try:
            expired = float(expires_at) <= clock()
        except (TypeError, ValueError):
            return None
        if expired:
            return None
    return str(payload["id"])


class CredentialStore(ABC):
    """Keyed persistence for credential records and the pending-exchange index."""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[CredentialRecord]:
        """Return the stored record, or ``None`` when absent or malformed."""

    @abstractmethod
    async def put(self, user_id: str, fields: Mapping[str, Optional[str]]) -> None:
        """Merge ``fields`` into the record; ``None`` values clear that field."""

    @abstractmethod
    async def clear_fields(self, user_id: str, names: Iterable[str]) -> None:
        """Remove the named fields without deleting the record."""

    @abstractmethod
    async def delete(self, user_id: str) -> None:
        """Remove the whole record."""

    @abstractmethod
    async def set_pending(self, token: str, user_id: str, ttl_seconds: int) -> None:
        """Index a temporary token back to the user that requested it."""

    @abstractmethod
    async def get_pending(self, token: str) -> Optional[str]:
        """Return the indexed user id, or ``None`` once the entry expired."""

    @abstractmethod
    async def delete_pending(self, token: str) -> None:
        """Drop a pending-index entry."""

    @abstractmethod
    async def take_pending(self, token: str) -> Optional[str]:
        """Read and drop a pending entry in one step; only one caller wins."""

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        return None


class RedisCredentialStore(CredentialStore):
    """Credential store backed by Redis hashes and expiring string keys."""

    def __init__(
        self,
        client: Any,
        *,
        key_prefix: str = "splitwise",
        clock: Clock = time.time,
    ) -> None:
        self._redis = client
        self._prefix = key_prefix
        self._clock = clock

    @classmethod
    def from_url(
        cls, url: str, *, token: str | None = None, key_prefix: str = "splitwise"
    ) -> "RedisCredentialStore":
        client = redis_asyncio.Redis.from_url(
            url, password=token or None, decode_responses=True
        )
        return cls(client, key_prefix=key_prefix)

    def _user_key(self, user_id: str) -> str:
        return f"{self._prefix}:user:{user_id}"

    def _pending_key(self, token: str) -> str:
        return f"{self._prefix}:pending:{token}"

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except (RedisError, OSError) as exc:
            logger.warning("Credential store %s failed: %s", operation, exc)
            raise StoreUnavailable("Credential store is unavailable.") from exc

    async def get(self, user_id: str) -> Optional[CredentialRecord]:
        async with self._guard("get"):
            raw = await self._redis.hgetall(self._user_key(user_id))
        return _parse_record(user_id, raw)

    async def put(self, user_id: str, fields: Mapping[str, Optional[str]]) -> None:
        to_set, to_clear = _split_fields(user_id, fields)
        key = self._user_key(user_id)
        async with self._guard("put"):
            pipe = self._redis.pipeline(transaction=True)
            pipe.hset(key, mapping=to_set)
            if to_clear:
                pipe.hdel(key, *to_clear)
            await pipe.execute()

    async def clear_fields(self, user_id: str, names: Iterable[str]) -> None:
        names = [name for name in names if name != "id"]
        if not names:
            return
        async with self._guard("clear_fields"):
            await self._redis.hdel(self._user_key(user_id), *names)

    async def delete(self, user_id: str) -> None:
        async with self._guard("delete"):
            await self._redis.delete(self._user_key(user_id))

    async def set_pending(self, token: str, user_id: str, ttl_seconds: int) -> None:
        payload = _pending_payload(user_id, ttl_seconds, self._clock)
        async with self._guard("set_pending"):
            await self._redis.set(self._pending_key(token), payload, ex=ttl_seconds)

    async def get_pending(self, token: str) -> Optional[str]:
        async with self._guard("get_pending"):
            raw = await self._redis.get(self._pending_key(token))
        return _pending_user(raw, self._clock)

    async def delete_pending(self, token: str) -> None:
        async with self._guard("delete_pending"):
            await self._redis.delete(self._pending_key(token))

    async def take_pending(self, token: str) -> Optional[str]:
        key = self._pending_key(token)
        async with self._guard("take_pending"):
            pipe = self._redis.pipeline(transaction=True)
            pipe.get(key)
            pipe.delete(key)
            raw, _ = await pipe.execute()
        return _pending_user(raw, self._clock)

    async def ping(self) -> None:
        async with self._guard("ping"):
            await self._redis.ping()

    async def close(self) -> None:
        await self._redis.aclose()


class InMemoryCredentialStore(CredentialStore):
    """Process-local store for development and tests."""

    def __init__(self, *, clock: Clock = time.time) -> None:
        self._records: Dict[str, Dict[str, str]] = {}
        self._pending: Dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def get(self, user_id: str) -> Optional[CredentialRecord]:
        async with self._lock:
            raw = self._records.get(user_id)
            raw = dict(raw) if raw is not None else None
        return _parse_record(user_id, raw)

    async def put(self, user_id: str, fields: Mapping[str, Optional[str]]) -> None:
        to_set, to_clear = _split_fields(user_id, fields)
        async with self._lock:
            record = self._records.setdefault(user_id, {})
            record.update(to_set)
            for name in to_clear:
                record.pop(name, None)

    async def clear_fields(self, user_id: str, names: Iterable[str]) -> None:
        async with self._lock:
            record = self._records.get(user_id)
            if record is None:
                return
            for name in names:
                if name != "id":
                    record.pop(name, None)

    async def delete(self, user_id: str) -> None:
        async with self._lock:
            self._records.pop(user_id, None)

    async def set_pending(self, token: str, user_id: str, ttl_seconds: int) -> None:
        async with self._lock:
            self._pending[token] = _pending_payload(user_id, ttl_seconds, self._clock)

    async def get_pending(self, token: str) -> Optional[str]:
        async with self._lock:
            raw = self._pending.get(token)
            user_id = _pending_user(raw, self._clock)
            if raw is not None and user_id is None:
                self._pending.pop(token, None)
        return user_id

    async def delete_pending(self, token: str) -> None:
        async with self._lock:
            self._pending.pop(token, None)

    async def take_pending(self, token: str) -> Optional[str]:
        async with self._lock:
            raw = self._pending.pop(token, None)
        return _pending_user(raw, self._clock)


__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "RedisCredentialStore",
]

try:
    from . import _bootstrap  # noqa: F401
    from ._splitwise_fakes import FakeClock, FakeRedis
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    from _splitwise_fakes import FakeClock, FakeRedis  # type: ignore

import json

import pytest

from app.clients.credential_store import InMemoryCredentialStore, RedisCredentialStore
from app.core.exceptions import StoreUnavailable
from app.models.credentials import CredentialState


def _memory_store(clock: FakeClock) -> InMemoryCredentialStore:
    return InMemoryCredentialStore(clock=clock)


def _redis_store(clock: FakeClock) -> RedisCredentialStore:
    return RedisCredentialStore(FakeRedis(), key_prefix="test", clock=clock)


@pytest.fixture(params=["memory", "redis"])
def store_factory(request):
    return _memory_store if request.param == "memory" else _redis_store


@pytest.mark.anyio
async def test_put_merges_fields_and_none_clears(store_factory) -> None:
    store = store_factory(FakeClock())

    await store.put("u1", {"requestToken": "rt1", "requestTokenSecret": "rts1"})
    await store.put("u1", {"access_token": "at1", "requestToken": None})

    record = await store.get("u1")
    assert record is not None
    assert record.id == "u1"
    assert record.access_token == "at1"
    assert record.request_token is None
    assert record.request_token_secret == "rts1"


@pytest.mark.anyio
async def test_clear_fields_keeps_record(store_factory) -> None:
    store = store_factory(FakeClock())
    await store.put("u1", {"requestToken": "rt1", "requestTokenSecret": "rts1"})

    await store.clear_fields("u1", ["requestToken", "requestTokenSecret", "id"])

    record = await store.get("u1")
    assert record is not None
    assert record.state is CredentialState.EMPTY


@pytest.mark.anyio
async def test_delete_removes_record(store_factory) -> None:
    store = store_factory(FakeClock())
    await store.put("u1", {"access_token": "at1"})

    await store.delete("u1")

    assert await store.get("u1") is None


@pytest.mark.anyio
async def test_pending_entries_expire(store_factory) -> None:
    clock = FakeClock()
    store = store_factory(clock)

    await store.set_pending("rt1", "u1", ttl_seconds=60)
    assert await store.get_pending("rt1") == "u1"

    clock.advance(61)
    assert await store.get_pending("rt1") is None


@pytest.mark.anyio
async def test_delete_pending(store_factory) -> None:
    store = store_factory(FakeClock())
    await store.set_pending("rt1", "u1", ttl_seconds=60)

    await store.delete_pending("rt1")

    assert await store.get_pending("rt1") is None


@pytest.mark.anyio
async def test_take_pending_hands_out_an_entry_once(store_factory) -> None:
    store = store_factory(FakeClock())
    await store.set_pending("rt1", "u1", ttl_seconds=60)

    assert await store.take_pending("rt1") == "u1"
    assert await store.take_pending("rt1") is None
    assert await store.get_pending("rt1") is None


@pytest.mark.anyio
async def test_pending_entry_with_bad_expiry_reads_as_absent() -> None:
    redis = FakeRedis()
    redis.strings["test:pending:rt1"] = json.dumps({"id": "u1", "expires_at": "soon"})
    store = RedisCredentialStore(redis, key_prefix="test")

    assert await store.get_pending("rt1") is None
    assert await store.take_pending("rt1") is None


@pytest.mark.anyio
async def test_redis_layout_and_atomic_update() -> None:
    redis = FakeRedis()
    store = RedisCredentialStore(redis, key_prefix="test", clock=FakeClock())

    await store.put("u1", {"access_token": "at1", "requestToken": None})
    await store.set_pending("rt1", "u1", ttl_seconds=900)

    assert redis.hashes["test:user:u1"] == {"id": "u1", "access_token": "at1"}
    assert redis.transactions == 1
    assert redis.expirations["test:pending:rt1"] == 900
    assert json.loads(redis.strings["test:pending:rt1"])["id"] == "u1"


@pytest.mark.anyio
async def test_malformed_record_reads_as_absent() -> None:
    redis = FakeRedis()
    redis.hashes["test:user:u1"] = {"requestToken": "rt1"}
    store = RedisCredentialStore(redis, key_prefix="test")

    assert await store.get("u1") is None


@pytest.mark.anyio
async def test_redis_failure_raises_store_unavailable() -> None:
    redis = FakeRedis()
    redis.down = True
    store = RedisCredentialStore(redis, key_prefix="test")

    with pytest.raises(StoreUnavailable):
        await store.get("u1")
    with pytest.raises(StoreUnavailable):
        await store.put("u1", {"access_token": "at1"})
    with pytest.raises(StoreUnavailable):
        await store.set_pending("rt1", "u1", ttl_seconds=60)
    with pytest.raises(StoreUnavailable):
        await store.take_pending("rt1")
    with pytest.raises(StoreUnavailable):
        await store.ping()


@pytest.mark.anyio
async def test_close_releases_connection() -> None:
    redis = FakeRedis()
    store = RedisCredentialStore(redis)

    await store.close()

    assert redis.closed

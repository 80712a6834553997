"""In-process stand-ins for Splitwise and Redis shared by the test modules."""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, unquote

import httpx
from redis.exceptions import ConnectionError as RedisConnectionError

from app.clients.credential_store import InMemoryCredentialStore

REQUEST_TOKEN = "rt1"
REQUEST_TOKEN_SECRET = "rts1"
ACCESS_TOKEN = "at1"
ACCESS_TOKEN_SECRET = "ats1"
OAUTH2_ACCESS_TOKEN = "bearer-1"

CURRENT_USER = {
    "id": 42,
    "first_name": "Ada",
    "last_name": "Lovelace",
    "email": "ada@example.com",
}

_HEADER_PARAM = re.compile(r'(\w+)="([^"]*)"')


def oauth_header_params(request: httpx.Request) -> Dict[str, str]:
    """Parse the ``Authorization: OAuth ...`` header into a plain dict."""
    header = request.headers.get("authorization", "")
    if not header.startswith("OAuth "):
        return {}
    return {key: unquote(value) for key, value in _HEADER_PARAM.findall(header)}


class FakeSplitwise:
    """Routes httpx requests the way the Splitwise endpoints answer them."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_request_token = False
        self.fail_access_token = False
        self.fail_code_exchange = False
        self.api_responses: Dict[tuple[str, str], httpx.Response] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls_to(self, suffix: str) -> list[httpx.Request]:
        return [request for request in self.requests if request.url.path.endswith(suffix)]

    def respond(self, method: str, path: str, status_code: int = 200, body: Any = None) -> None:
        if isinstance(body, (dict, list)):
            response = httpx.Response(status_code, json=body)
        else:
            response = httpx.Response(status_code, text=body or "")
        self.api_responses[(method.upper(), path)] = response

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/get_request_token"):
            if self.fail_request_token:
                return httpx.Response(500, text="boom")
            return httpx.Response(
                200, text=f"oauth_token={REQUEST_TOKEN}&oauth_token_secret={REQUEST_TOKEN_SECRET}"
            )

        if path.endswith("/get_access_token"):
            params = oauth_header_params(request)
            if self.fail_access_token or params.get("oauth_token") != REQUEST_TOKEN:
                return httpx.Response(401, text="invalid verifier")
            return httpx.Response(
                200, text=f"oauth_token={ACCESS_TOKEN}&oauth_token_secret={ACCESS_TOKEN_SECRET}"
            )

        if path == "/oauth/token":
            if self.fail_code_exchange:
                return httpx.Response(400, json={"error": "invalid_grant"})
            form = parse_qs(request.content.decode("utf-8"))
            assert form["grant_type"] == ["authorization_code"]
            return httpx.Response(
                200, json={"access_token": OAUTH2_ACCESS_TOKEN, "token_type": "bearer"}
            )

        api_path = path.split("/api/v3.0", 1)[-1]
        configured = self.api_responses.get((request.method, api_path))
        if configured is not None:
            return configured
        if api_path == "/get_current_user":
            return httpx.Response(200, json={"user": CURRENT_USER})
        return httpx.Response(404, json={"error": f"no route for {api_path}"})


def form_body(request: httpx.Request) -> Dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode("utf-8")).items()}


class FakeRedisPipeline:
    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self._ops: list[Callable[[], Any]] = []

    def hset(self, key: str, mapping: Dict[str, str]) -> "FakeRedisPipeline":
        self._ops.append(lambda: self._redis._hset(key, mapping))
        return self

    def hdel(self, key: str, *names: str) -> "FakeRedisPipeline":
        self._ops.append(lambda: self._redis._hdel(key, names))
        return self

    def get(self, key: str) -> "FakeRedisPipeline":
        self._ops.append(lambda: self._redis.strings.get(key))
        return self

    def delete(self, key: str) -> "FakeRedisPipeline":
        self._ops.append(lambda: int(self._redis.strings.pop(key, None) is not None))
        return self

    async def execute(self) -> list[Any]:
        self._redis.check()
        self._redis.transactions += 1
        return [op() for op in self._ops]


class FakeRedis:
    """Just enough of ``redis.asyncio.Redis`` for the credential store."""

    def __init__(self) -> None:
        self.hashes: Dict[str, Dict[str, str]] = {}
        self.strings: Dict[str, str] = {}
        self.expirations: Dict[str, Optional[int]] = {}
        self.transactions = 0
        self.down = False
        self.closed = False

    def check(self) -> None:
        if self.down:
            raise RedisConnectionError("Connection refused")

    def _hset(self, key: str, mapping: Dict[str, str]) -> int:
        self.hashes.setdefault(key, {}).update(mapping)
        return len(mapping)

    def _hdel(self, key: str, names: tuple[str, ...]) -> int:
        record = self.hashes.get(key, {})
        removed = sum(1 for name in names if record.pop(name, None) is not None)
        if key in self.hashes and not record:
            del self.hashes[key]
        return removed

    def pipeline(self, transaction: bool = True) -> FakeRedisPipeline:
        assert transaction
        return FakeRedisPipeline(self)

    async def hgetall(self, key: str) -> Dict[str, str]:
        self.check()
        return dict(self.hashes.get(key, {}))

    async def hdel(self, key: str, *names: str) -> int:
        self.check()
        return self._hdel(key, names)

    async def delete(self, *keys: str) -> int:
        self.check()
        removed = 0
        for key in keys:
            removed += int(self.hashes.pop(key, None) is not None)
            removed += int(self.strings.pop(key, None) is not None)
        return removed

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self.check()
        self.strings[key] = value
        self.expirations[key] = ex
        return True

    async def get(self, key: str) -> Optional[str]:
        self.check()
        return self.strings.get(key)

    async def ping(self) -> bool:
        self.check()
        return True

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InspectableStore(InMemoryCredentialStore):
    """In-memory store that also exposes the raw stored hash."""

    async def raw_record(self, user_id: str) -> Optional[Dict[str, str]]:
        async with self._lock:
            record = self._records.get(user_id)
            return dict(record) if record is not None else None

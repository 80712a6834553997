try:
    from . import _bootstrap  # noqa: F401
    from . import _splitwise_fakes as fakes
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401
    import _splitwise_fakes as fakes  # type: ignore

import json
import re
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from app.api.oauth2 import APPROVED_CLIENTS_COOKIE
from app.clients.splitwise_api import SplitwiseApiClient
from app.clients.splitwise_auth import OAuthStateEncoder, SplitwiseOAuth2Client
from app.core.config import AppSettings, get_settings
from app.core.exceptions import InvalidState, RemoteApiError, TokenExchangeFailed
from app.models.credentials import AuthorizationRequest
from app.services.authorization import GrantIssuer, OAuth2AuthorizationService
from app.services.credentials import CredentialService
from app.services.token_cipher import TokenCipherService
from app.tools import ToolExecutor

CLIENT_REDIRECT = "https://client.example/cb"


class Harness:
    def __init__(self) -> None:
        settings = get_settings()
        self.splitwise = fakes.FakeSplitwise()
        transport = self.splitwise.transport()
        self.store = fakes.InspectableStore()
        self.cipher = TokenCipherService(secret="test-secret")
        self.encoder = OAuthStateEncoder(secret_key="test-cookie-secret")
        self.grants = GrantIssuer(store=self.store, ttl_seconds=600)
        api_client = SplitwiseApiClient(settings.splitwise, transport=transport)
        self.service = OAuth2AuthorizationService(
            store=self.store,
            oauth_client=SplitwiseOAuth2Client(settings.splitwise, transport=transport),
            api_client=api_client,
            state_encoder=self.encoder,
            token_cipher=self.cipher,
            grant_issuer=self.grants,
            state_ttl_seconds=900,
        )
        self.executor = ToolExecutor(
            settings=AppSettings(auth_mode="oauth2", backend_url="https://bridge.example.com"),
            credentials=CredentialService(store=self.store, cipher=self.cipher, auth_mode="oauth2"),
            api_client=api_client,
        )

    def request(self, **overrides) -> AuthorizationRequest:
        fields = {
            "client_id": "client-1",
            "redirect_uri": CLIENT_REDIRECT,
            "state": "xyz",
            "user_id": "u9",
        }
        fields.update(overrides)
        return AuthorizationRequest(**fields)


@pytest.fixture()
def harness() -> Harness:
    return Harness()


def _state_from(url: str) -> str:
    return parse_qs(urlsplit(url).query)["state"][0]


def test_consent_url_carries_client_id_and_signed_state(harness: Harness) -> None:
    start = harness.service.begin_authorization(harness.request())

    url = urlsplit(start.consent_url)
    query = parse_qs(url.query)
    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://secure.splitwise.com/oauth/authorize"
    assert query["client_id"] == ["test-consumer-key"]
    assert query["response_type"] == ["code"]
    assert query["redirect_uri"] == ["https://bridge.example.com/callback"]

    decoded = harness.service.decode_request(query["state"][0])
    assert decoded.client_id == "client-1"
    assert decoded.user_id == "u9"


@pytest.mark.anyio
async def test_tampered_state_is_rejected_without_side_effects(harness: Harness) -> None:
    state = _state_from(harness.service.begin_authorization(harness.request()).consent_url)
    forged = OAuthStateEncoder(secret_key="someone-else").encode(
        {"request": harness.request().model_dump(), "issued_at": datetime.now(timezone.utc).isoformat()}
    )

    for bad_state in (forged, state[:-4] + "AAAA", "not-base64!"):
        with pytest.raises(InvalidState):
            await harness.service.complete_authorization(code="c0de", state=bad_state)

    assert await harness.store.raw_record("u9") is None
    assert not harness.splitwise.calls_to("/oauth/token")


@pytest.mark.anyio
async def test_expired_state_is_rejected(harness: Harness) -> None:
    stale = harness.encoder.encode(
        {
            "request": harness.request().model_dump(),
            "nonce": "n",
            "issued_at": (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat(),
        }
    )

    with pytest.raises(InvalidState):
        await harness.service.complete_authorization(code="c0de", state=stale)


@pytest.mark.anyio
async def test_completion_stores_labelled_credential_and_redirects(harness: Harness) -> None:
    state = _state_from(harness.service.begin_authorization(harness.request()).consent_url)

    result = await harness.service.complete_authorization(code="c0de", state=state)

    assert result.user_id == "u9"
    assert result.credential.token == fakes.OAUTH2_ACCESS_TOKEN
    redirect = urlsplit(result.redirect_to)
    assert f"{redirect.scheme}://{redirect.netloc}{redirect.path}" == CLIENT_REDIRECT
    params = parse_qs(redirect.query)
    assert params["state"] == ["xyz"]
    assert await harness.store.get_pending(f"grant:{params['code'][0]}") == "u9"

    raw = await harness.store.raw_record("u9")
    assert raw["label"] == "Ada Lovelace"
    assert raw["email"] == "ada@example.com"
    assert raw["splitwiseUserId"] == "42"
    assert harness.cipher.decrypt(raw["access_token"]) == fakes.OAUTH2_ACCESS_TOKEN
    assert "requestToken" not in raw

    profile_call = harness.splitwise.calls_to("/get_current_user")[0]
    assert profile_call.headers["authorization"] == f"Bearer {fakes.OAUTH2_ACCESS_TOKEN}"


@pytest.mark.anyio
async def test_rejected_code_leaves_store_untouched(harness: Harness) -> None:
    harness.splitwise.fail_code_exchange = True
    state = _state_from(harness.service.begin_authorization(harness.request()).consent_url)

    with pytest.raises(TokenExchangeFailed):
        await harness.service.complete_authorization(code="bad", state=state)

    assert await harness.store.raw_record("u9") is None


@pytest.mark.anyio
async def test_profile_without_id_is_a_remote_error(harness: Harness) -> None:
    harness.splitwise.respond("GET", "/get_current_user", body={"user": {"first_name": "Ada"}})
    state = _state_from(harness.service.begin_authorization(harness.request()).consent_url)

    with pytest.raises(RemoteApiError):
        await harness.service.complete_authorization(code="c0de", state=state)

    assert await harness.store.raw_record("u9") is None


@pytest.mark.anyio
async def test_grant_codes_redeem_once(harness: Harness) -> None:
    state = _state_from(harness.service.begin_authorization(harness.request()).consent_url)
    result = await harness.service.complete_authorization(code="c0de", state=state)
    code = parse_qs(urlsplit(result.redirect_to).query)["code"][0]

    assert await harness.grants.redeem(code) == "u9"
    assert await harness.grants.redeem(code) is None
    assert await harness.grants.redeem("") is None


@pytest.fixture()
def oauth2_app(harness: Harness):
    from app import dependencies
    from app.main import create_app

    settings = AppSettings(auth_mode="oauth2")
    app = create_app(settings)
    app.dependency_overrides.update(
        {
            dependencies.get_oauth2_service: lambda: harness.service,
            dependencies.get_oauth_state_encoder: lambda: harness.encoder,
            dependencies.get_grant_issuer: lambda: harness.grants,
        }
    )
    return app


def _client(app, **kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver", **kwargs
    )


@pytest.mark.anyio
async def test_browser_flow_through_approval(oauth2_app, harness: Harness) -> None:
    params = {
        "client_id": "client-1",
        "redirect_uri": CLIENT_REDIRECT,
        "state": "xyz",
        "user_id": "u9",
    }
    async with _client(oauth2_app) as client:
        dialog = await client.get("/authorize", params=params)
        assert dialog.status_code == 200
        assert "client-1" in dialog.text
        state = re.search(r'name="state" value="([^"]+)"', dialog.text).group(1)

        approved = await client.post("/authorize", data={"state": state})
        assert approved.status_code == 302
        assert approved.headers["location"].startswith("https://secure.splitwise.com/oauth/authorize?")
        assert APPROVED_CLIENTS_COOKIE in approved.headers["set-cookie"]

        consent_state = _state_from(approved.headers["location"])
        callback = await client.get("/callback", params={"code": "c0de", "state": consent_state})

    assert callback.status_code == 302
    assert callback.headers["location"].startswith(f"{CLIENT_REDIRECT}?code=")
    assert (await harness.store.raw_record("u9"))["label"] == "Ada Lovelace"


@pytest.mark.anyio
async def test_previously_approved_client_skips_dialog(oauth2_app, harness: Harness) -> None:
    cookie = harness.encoder.encode({"clients": ["client-1"]})
    async with _client(oauth2_app, headers={"cookie": f"{APPROVED_CLIENTS_COOKIE}={cookie}"}) as client:
        response = await client.get(
            "/authorize", params={"client_id": "client-1", "redirect_uri": CLIENT_REDIRECT}
        )

    assert response.status_code == 302
    assert "client_id=test-consumer-key" in response.headers["location"]


@pytest.mark.anyio
async def test_invalid_requests_render_error_pages(oauth2_app) -> None:
    async with _client(oauth2_app) as client:
        missing_client = await client.get("/authorize", params={"redirect_uri": CLIENT_REDIRECT})
        bad_approval = await client.post("/authorize", data={"state": "garbage"})
        bad_callback = await client.get("/callback", params={"code": "c0de", "state": "garbage"})

    for response in (missing_client, bad_approval, bad_callback):
        assert response.status_code == 400
        assert "Authorization failed" in response.text


@pytest.mark.anyio
async def test_grant_endpoint_returns_session_once(oauth2_app, harness: Harness) -> None:
    state = _state_from(harness.service.begin_authorization(harness.request()).consent_url)
    result = await harness.service.complete_authorization(code="c0de", state=state)
    code = parse_qs(urlsplit(result.redirect_to).query)["code"][0]

    async with _client(oauth2_app) as client:
        first = await client.post("/grant", data={"code": code})
        second = await client.post("/grant", data={"code": code})

    assert first.json() == {"success": True, "user_id": "u9"}
    assert second.status_code == 400
    assert second.json() == {"error": "Invalid or expired grant code"}


def _local(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


@pytest.mark.anyio
async def test_tool_session_reaches_forwarded_call(oauth2_app, harness: Harness) -> None:
    harness.splitwise.respond("GET", "/get_groups", body={"groups": [{"id": 7, "name": "Trip"}]})

    started = await harness.executor.call("splitwise_authenticate", {})
    session_id = re.search(r"Your session ID is: (\w+)", started).group(1)
    link = re.search(r"(https://bridge\.example\.com/authorize\?\S+)", started).group(1)

    async with _client(oauth2_app) as client:
        dialog = await client.get(_local(link))
        assert dialog.status_code == 200
        assert "splitwise-mcp" in dialog.text
        state = re.search(r'name="state" value="([^"]+)"', dialog.text).group(1)

        approved = await client.post("/authorize", data={"state": state})
        consent_state = _state_from(approved.headers["location"])
        callback = await client.get("/callback", params={"code": "c0de", "state": consent_state})
        assert callback.headers["location"].startswith("https://bridge.example.com/authorized?code=")

        landing = await client.get(_local(callback.headers["location"]))
        replay = await client.get(_local(callback.headers["location"]))

    assert landing.status_code == 200
    assert session_id in landing.text
    assert replay.status_code == 400

    status = await harness.executor.call("splitwise_check_auth", {"session_id": session_id})
    assert status.startswith("Authentication valid as Ada Lovelace")

    groups = await harness.executor.call("splitwise_get_groups", {"session_id": session_id})
    assert json.loads(groups) == [{"id": 7, "name": "Trip"}]
    forwarded = harness.splitwise.calls_to("/get_groups")[0]
    assert forwarded.headers["authorization"] == f"Bearer {fakes.OAUTH2_ACCESS_TOKEN}"

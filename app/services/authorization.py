"""
Authorization flows binding the Splitwise OAuth clients to the credential store.

OAuth1 is a three-state machine (no credential, pending, authorized) correlated
through the pending-exchange index. OAuth2 collapses to two states and carries
the caller's authorization request inside the signed ``state`` value instead.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from pydantic import ValidationError

from app.clients.credential_store import CredentialStore
from app.clients.splitwise_api import SplitwiseApiClient
from app.clients.splitwise_auth import (
    OAuthStateEncoder,
    SplitwiseOAuth1Client,
    SplitwiseOAuth2Client,
)
from app.core.exceptions import (
    InvalidSession,
    InvalidState,
    RemoteApiError,
    TokenExchangeFailed,
)
from app.models.credentials import (
    ACCESS_TOKEN_FIELD,
    ACCESS_TOKEN_SECRET_FIELD,
    REQUEST_CREDENTIAL_FIELDS,
    REQUEST_TOKEN_FIELD,
    REQUEST_TOKEN_SECRET_FIELD,
    AuthorizationRequest,
    OAuth1Credential,
    OAuth2Credential,
    SplitwiseProfile,
)
from app.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationStart:
    """Where to send the user and the value that correlates the callback."""

    consent_url: str
    correlation: str


@dataclass(frozen=True)
class AuthorizationResult:
    user_id: str
    credential: OAuth1Credential | OAuth2Credential
    redirect_to: Optional[str] = None
    profile: Optional[SplitwiseProfile] = None


class OAuth1AuthorizationService:
    """Three-legged OAuth 1.0a handshake with a store-backed pending index."""

    def __init__(
        self,
        *,
        store: CredentialStore,
        oauth_client: SplitwiseOAuth1Client,
        token_cipher: TokenCipherService,
        pending_ttl_seconds: int = 900,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._cipher = token_cipher
        self._pending_ttl = pending_ttl_seconds

    async def begin_authorization(self, user_id: str) -> AuthorizationStart:
        temporary = await self._oauth.get_request_token()

        await self._store.put(
            user_id,
            {
                "id": user_id,
                REQUEST_TOKEN_FIELD: temporary.token,
                REQUEST_TOKEN_SECRET_FIELD: temporary.secret,
                ACCESS_TOKEN_FIELD: None,
                ACCESS_TOKEN_SECRET_FIELD: None,
            },
        )
        await self._store.set_pending(temporary.token, user_id, self._pending_ttl)
        logger.info("Started Splitwise authorization for user %s", user_id)

        return AuthorizationStart(
            consent_url=self._oauth.build_authorization_url(temporary.token),
            correlation=temporary.token,
        )

    async def complete_authorization(
        self, *, oauth_token: str, oauth_verifier: str
    ) -> AuthorizationResult:
        if not oauth_token or not oauth_verifier:
            raise InvalidSession("Missing oauth_token or oauth_verifier.")

        user_id = await self._store.get_pending(oauth_token)
        if not user_id:
            raise InvalidSession("Invalid or expired session")

        record = await self._store.get(user_id)
        if (
            record is None
            or record.request_token != oauth_token
            or not record.request_token_secret
        ):
            raise InvalidSession("Invalid or expired session")

        # a duplicate callback loses the claim and never reaches the exchange
        if await self._store.take_pending(oauth_token) != user_id:
            raise InvalidSession("Invalid or expired session")

        try:
            credential = await self._oauth.get_access_token(
                record.request_token, record.request_token_secret, oauth_verifier
            )
        except TokenExchangeFailed:
            logger.warning("Token exchange failed for user %s; discarding pending state", user_id)
            await self._store.clear_fields(user_id, REQUEST_CREDENTIAL_FIELDS)
            raise

        await self._store.put(
            user_id,
            self._cipher.seal(
                {
                    "id": user_id,
                    ACCESS_TOKEN_FIELD: credential.token,
                    ACCESS_TOKEN_SECRET_FIELD: credential.secret,
                    REQUEST_TOKEN_FIELD: None,
                    REQUEST_TOKEN_SECRET_FIELD: None,
                }
            ),
        )
        logger.info("Completed Splitwise authorization for user %s", user_id)
        return AuthorizationResult(user_id=user_id, credential=credential)


class GrantIssuer:
    """
    Minimal authorization-completion step for OAuth2 deployments.

    Mints a short-lived grant code for the caller-facing client, builds the
    final redirect back to it and later trades the code for the session id.
    """

    GRANT_PREFIX = "grant:"

    def __init__(self, *, store: CredentialStore, ttl_seconds: int = 600) -> None:
        self._store = store
        self._ttl = ttl_seconds

    async def complete(
        self, *, request: AuthorizationRequest, user_id: str, profile: SplitwiseProfile
    ) -> str:
        code = secrets.token_urlsafe(32)
        await self._store.set_pending(f"{self.GRANT_PREFIX}{code}", user_id, self._ttl)
        logger.info("Issued grant for client %s (%s)", request.client_id, profile.display_name)

        params = {"code": code}
        if request.state:
            params["state"] = request.state
        separator = "&" if "?" in request.redirect_uri else "?"
        return f"{request.redirect_uri}{separator}{urlencode(params)}"

    async def redeem(self, code: str) -> Optional[str]:
        """Return the user id bound to ``code``; each code works once."""
        if not code:
            return None
        return await self._store.take_pending(f"{self.GRANT_PREFIX}{code}")


class OAuth2AuthorizationService:
    """Authorization-code flow where ``state`` round-trips the caller's request."""

    def __init__(
        self,
        *,
        store: CredentialStore,
        oauth_client: SplitwiseOAuth2Client,
        api_client: SplitwiseApiClient,
        state_encoder: OAuthStateEncoder,
        token_cipher: TokenCipherService,
        grant_issuer: GrantIssuer,
        state_ttl_seconds: int = 900,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._api = api_client
        self._encoder = state_encoder
        self._cipher = token_cipher
        self._grants = grant_issuer
        self._state_ttl = timedelta(seconds=state_ttl_seconds)

    def encode_request(self, request: AuthorizationRequest) -> str:
        return self._encoder.encode(
            {
                "request": request.model_dump(),
                "nonce": uuid.uuid4().hex,
                "issued_at": datetime.now(timezone.utc).isoformat(),
            }
        )

    def decode_request(self, state: str | None) -> AuthorizationRequest:
        if not state:
            raise InvalidState("Missing OAuth state.")
        payload = self._encoder.decode(state)

        issued_at_raw = payload.get("issued_at")
        if not issued_at_raw:
            raise InvalidState("Missing issued_at in state token.")
        try:
            issued_at = datetime.fromisoformat(issued_at_raw)
        except (TypeError, ValueError) as exc:
            raise InvalidState("Invalid issued_at in state token.") from exc
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        if datetime.now(timezone.utc) - issued_at > self._state_ttl:
            raise InvalidState("OAuth state token has expired.")

        try:
            return AuthorizationRequest.model_validate(payload.get("request"))
        except ValidationError as exc:
            raise InvalidState("OAuth state is missing authorization request fields.") from exc

    def begin_authorization(self, request: AuthorizationRequest) -> AuthorizationStart:
        state = self.encode_request(request)
        return AuthorizationStart(
            consent_url=self._oauth.build_authorization_url(state),
            correlation=state,
        )

    async def complete_authorization(self, *, code: str, state: str) -> AuthorizationResult:
        request = self.decode_request(state)
        if not code:
            raise InvalidState("Missing authorization code.")

        access_token = await self._oauth.exchange_authorization_code(code)
        credential = OAuth2Credential(token=access_token)
        user = await self._api.get_current_user(credential)
        try:
            profile = SplitwiseProfile.model_validate(user)
        except ValidationError as exc:
            raise RemoteApiError(200, "Splitwise returned an unexpected profile.") from exc

        await self._store.put(
            request.user_id,
            self._cipher.seal(
                {
                    "id": request.user_id,
                    ACCESS_TOKEN_FIELD: access_token,
                    ACCESS_TOKEN_SECRET_FIELD: None,
                    REQUEST_TOKEN_FIELD: None,
                    REQUEST_TOKEN_SECRET_FIELD: None,
                    "label": profile.display_name,
                    "splitwiseUserId": str(profile.id),
                    "email": profile.email,
                }
            ),
        )
        redirect_to = await self._grants.complete(
            request=request, user_id=request.user_id, profile=profile
        )
        logger.info("Completed Splitwise OAuth2 authorization for user %s", request.user_id)
        return AuthorizationResult(
            user_id=request.user_id,
            credential=credential,
            redirect_to=redirect_to,
            profile=profile,
        )


__all__ = [
    "AuthorizationResult",
    "AuthorizationStart",
    "GrantIssuer",
    "OAuth1AuthorizationService",
    "OAuth2AuthorizationService",
]

"""
Splitwise OAuth utilities.

These helpers talk to the Splitwise token endpoints for both deployment
variants: the OAuth 1.0a three-legged handshake and the OAuth 2.0
authorization-code grant.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, urlencode

import httpx
from authlib.integrations.httpx_client import OAuth1Auth

from app.core.config import SplitwiseSettings
from app.core.exceptions import (
    InvalidState,
    NotConfigured,
    TokenExchangeFailed,
    TokenRequestFailed,
)
from app.models.credentials import OAuth1Credential, TemporaryCredential

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = (
    "Splitwise not configured. Please set SPLITWISE_CONSUMER_KEY and "
    "SPLITWISE_CONSUMER_SECRET environment variables."
)


class OAuthStateEncoder:
    """Encode and decode opaque values guarded by an HMAC signature."""

    _SIGNATURE_SIZE = 32

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise NotConfigured("A signing secret is required for OAuth state values.")
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise InvalidState("OAuth state is not valid base64.") from exc
        signature, serialized = decoded[: self._SIGNATURE_SIZE], decoded[self._SIGNATURE_SIZE :]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise InvalidState("Invalid OAuth state signature.")
        try:
            payload = json.loads(serialized)
        except ValueError as exc:
            raise InvalidState("OAuth state payload is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise InvalidState("OAuth state payload must be an object.")
        return payload


def build_oauth1_auth(
    consumer_key: str,
    consumer_secret: str,
    *,
    token: Optional[str] = None,
    token_secret: Optional[str] = None,
    verifier: Optional[str] = None,
    callback_url: Optional[str] = None,
) -> httpx.Auth:
    """HMAC-SHA1 signer usable as an ``httpx`` auth flow."""
    return OAuth1Auth(
        client_id=consumer_key,
        client_secret=consumer_secret,
        token=token,
        token_secret=token_secret,
        redirect_uri=callback_url,
        verifier=verifier,
    )


def _parse_token_response(body: str) -> tuple[Optional[str], Optional[str]]:
    params = parse_qs(body or "")
    token = params.get("oauth_token", [None])[0]
    secret = params.get("oauth_token_secret", [None])[0]
    return token or None, secret or None


class SplitwiseOAuth1Client:
    """Request temporary credentials and exchange verifiers for access tokens."""

    def __init__(
        self,
        settings: SplitwiseSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    @property
    def request_token_url(self) -> str:
        return f"{self._settings.api_base_url}/get_request_token"

    @property
    def access_token_url(self) -> str:
        return f"{self._settings.api_base_url}/get_access_token"

    def _consumer(self) -> tuple[str, str]:
        if not self._settings.is_configured:
            raise NotConfigured(NOT_CONFIGURED_MESSAGE)
        return self._settings.consumer_key, self._settings.consumer_secret  # type: ignore[return-value]

    async def _signed_post(self, url: str, auth: httpx.Auth) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds, transport=self._transport
        ) as client:
            return await client.post(url, auth=auth)

    async def get_request_token(self) -> TemporaryCredential:
        """Step one: obtain a temporary credential pair."""
        key, secret = self._consumer()
        auth = build_oauth1_auth(key, secret, callback_url=self._settings.callback_url)
        try:
            response = await self._signed_post(self.request_token_url, auth)
        except httpx.HTTPError as exc:
            logger.warning("Request token call failed: %s", exc)
            raise TokenRequestFailed("Failed to get request token") from exc

        if not response.is_success:
            logger.warning("Request token call returned HTTP %s", response.status_code)
            raise TokenRequestFailed("Failed to get request token")

        token, token_secret = _parse_token_response(response.text)
        if not token or not token_secret:
            raise TokenRequestFailed("Splitwise did not return a request token pair.")
        return TemporaryCredential(token=token, secret=token_secret)

    def build_authorization_url(self, request_token: str) -> str:
        """Step two: the consent page for a temporary token."""
        return f"{self._settings.authorize_url}?{urlencode({'oauth_token': request_token})}"

    async def get_access_token(
        self, request_token: str, request_token_secret: str, verifier: str
    ) -> OAuth1Credential:
        """Step three: exchange the verified temporary credential."""
        key, secret = self._consumer()
        auth = build_oauth1_auth(
            key,
            secret,
            token=request_token,
            token_secret=request_token_secret,
            verifier=verifier,
        )
        try:
            response = await self._signed_post(self.access_token_url, auth)
        except httpx.HTTPError as exc:
            logger.warning("Access token call failed: %s", exc)
            raise TokenExchangeFailed("Failed to get access token") from exc

        if not response.is_success:
            logger.warning("Access token call returned HTTP %s", response.status_code)
            raise TokenExchangeFailed("Failed to get access token")

        token, token_secret = _parse_token_response(response.text)
        if not token or not token_secret:
            raise TokenExchangeFailed("Splitwise did not return an access token pair.")
        return OAuth1Credential(token=token, secret=token_secret)


class SplitwiseOAuth2Client:
    """Build Splitwise authorization URLs and exchange authorization codes."""

    def __init__(
        self,
        settings: SplitwiseSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client_credentials(self) -> tuple[str, str]:
        if not self._settings.is_configured:
            raise NotConfigured(NOT_CONFIGURED_MESSAGE)
        return self._settings.consumer_key, self._settings.consumer_secret  # type: ignore[return-value]

    def build_authorization_url(self, state: str) -> str:
        """Construct the Splitwise OAuth consent URL."""
        client_id, _ = self._client_credentials()
        params = {
            "client_id": client_id,
            "redirect_uri": self._settings.callback_url or "",
            "response_type": "code",
        }
        if self._settings.oauth2_scope:
            params["scope"] = self._settings.oauth2_scope
        params["state"] = state
        return f"{self._settings.oauth2_authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> str:
        """Exchange an authorization code for a bearer access token."""
        client_id, client_secret = self._client_credentials()
        payload = {
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": self._settings.callback_url or "",
            "grant_type": "authorization_code",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(self._settings.oauth2_token_url, data=payload)
        except httpx.HTTPError as exc:
            raise TokenExchangeFailed("Failed to reach the Splitwise token endpoint.") from exc

        if not response.is_success:
            raise TokenExchangeFailed(response.text or f"HTTP {response.status_code}")

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise TokenExchangeFailed("Token endpoint returned a non-JSON body.") from exc

        access_token = token_payload.get("access_token") if isinstance(token_payload, dict) else None
        if not access_token:
            raise TokenExchangeFailed("Incomplete token payload returned from Splitwise.")
        return access_token


__all__ = [
    "NOT_CONFIGURED_MESSAGE",
    "OAuthStateEncoder",
    "SplitwiseOAuth1Client",
    "SplitwiseOAuth2Client",
    "build_oauth1_auth",
]

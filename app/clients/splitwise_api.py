"""Authorized calls against the Splitwise REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx
from app.core.config import SplitwiseSettings
from app.core.exceptions import NotConfigured, RemoteApiError
from app.clients.splitwise_auth import NOT_CONFIGURED_MESSAGE, build_oauth1_auth
from app.models.credentials import AccessCredential, OAuth1Credential, OAuth2Credential

logger = logging.getLogger(__name__)


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten_params(data: Optional[Mapping[str, Any]], prefix: str = "") -> Dict[str, str]:
    """Flatten nested payloads into Splitwise's ``users__0__user_id`` form fields."""
    flat: Dict[str, str] = {}
    if not data:
        return flat
    for key, value in data.items():
        name = f"{prefix}__{key}" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            flat.update(flatten_params(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                item_name = f"{name}__{index}"
                if isinstance(item, Mapping):
                    flat.update(flatten_params(item, item_name))
                elif item is not None:
                    flat[item_name] = _scalar(item)
        else:
            flat[name] = _scalar(value)
    return flat


class SplitwiseApiClient:
    """Sign or authorize requests for a stored credential and forward them."""

    def __init__(
        self,
        settings: SplitwiseSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def resolve_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self._settings.api_base_url}{path}"

    def _auth_for(self, credential: AccessCredential) -> tuple[Optional[httpx.Auth], Dict[str, str]]:
        if isinstance(credential, OAuth1Credential):
            if not self._settings.is_configured:
                raise NotConfigured(NOT_CONFIGURED_MESSAGE)
            auth = build_oauth1_auth(
                self._settings.consumer_key,
                self._settings.consumer_secret,
                token=credential.token,
                token_secret=credential.secret,
            )
            return auth, {}
        if isinstance(credential, OAuth2Credential):
            return None, {"Authorization": f"Bearer {credential.token}"}
        raise TypeError(f"Unsupported credential type: {type(credential)!r}")

    async def authorized_request(
        self,
        credential: AccessCredential,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Perform an authorized call and return the decoded response body.

        GET parameters travel in the query string; every other method sends a
        form-encoded body. Errors are raised as ``RemoteApiError`` without retries.
        """
        method = method.upper()
        url = self.resolve_url(path)
        auth, headers = self._auth_for(credential)
        flat = flatten_params(params)

        request_kwargs: Dict[str, Any] = {"headers": headers}
        if auth is not None:
            request_kwargs["auth"] = auth
        if method == "GET":
            if flat:
                request_kwargs["params"] = flat
        elif flat:
            request_kwargs["data"] = flat

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.request(method, url, **request_kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Splitwise %s %s failed: %s", method, path, exc)
            raise RemoteApiError(None, str(exc) or exc.__class__.__name__) from exc

        if not response.is_success:
            logger.info("Splitwise %s %s returned HTTP %s", method, path, response.status_code)
            raise RemoteApiError(response.status_code, response.text)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    async def get_current_user(self, credential: AccessCredential) -> Dict[str, Any]:
        payload = await self.authorized_request(credential, "GET", "/get_current_user")
        user = payload.get("user") if isinstance(payload, dict) else None
        if not isinstance(user, dict):
            raise RemoteApiError(200, "Splitwise returned no current user.")
        return user


__all__ = ["SplitwiseApiClient", "flatten_params"]

"""Run tool calls against Splitwise and render their results as text."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Mapping, Optional
from urllib.parse import quote, urlencode

from app.clients.splitwise_api import SplitwiseApiClient
from app.clients.splitwise_auth import NOT_CONFIGURED_MESSAGE
from app.core.config import AppSettings
from app.core.exceptions import (
    NotConfigured,
    RemoteApiError,
    SplitwiseBridgeError,
    StoreUnavailable,
    TokenRequestFailed,
)
from app.models.credentials import CredentialState
from app.services.authorization import OAuth1AuthorizationService
from app.services.credentials import CredentialService
from app.tools.endpoints import (
    ENDPOINTS_BY_NAME,
    LOCAL_TOOL_NAMES,
    TOOL_DEFINITIONS,
    EndpointDescriptor,
)

logger = logging.getLogger(__name__)

STORE_UNAVAILABLE_MESSAGE = (
    "Error: the credential store is temporarily unavailable. Please try again."
)


class ToolExecutor:
    """Executes any declared tool; failures come back as text, never as exceptions."""

    def __init__(
        self,
        *,
        settings: AppSettings,
        credentials: CredentialService,
        api_client: SplitwiseApiClient,
        oauth1_service: Optional[OAuth1AuthorizationService] = None,
    ) -> None:
        self._settings = settings
        self._credentials = credentials
        self._api = api_client
        self._oauth1 = oauth1_service

    @staticmethod
    def list_tools() -> list[Dict[str, Any]]:
        return list(TOOL_DEFINITIONS)

    async def call(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> str:
        args = dict(arguments or {})
        try:
            if name in LOCAL_TOOL_NAMES:
                return await self._call_local(name, args)
            endpoint = ENDPOINTS_BY_NAME.get(name)
            if endpoint is None:
                return f"Error: unknown tool {name}"
            return await self._forward(endpoint, args)
        except NotConfigured:
            return f"Error: {NOT_CONFIGURED_MESSAGE}"
        except StoreUnavailable:
            return STORE_UNAVAILABLE_MESSAGE
        except SplitwiseBridgeError as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return f"Error: {exc}"

    def authorize_link(self, session_id: str) -> str:
        """Where a user goes to connect Splitwise for ``session_id``."""
        backend = self._settings.backend_url
        if self._settings.auth_mode == "oauth1":
            return f"{backend}/authorize/{quote(session_id, safe='')}"
        params = {
            "client_id": self._settings.oauth.tool_client_id,
            "redirect_uri": f"{backend}/authorized",
            "user_id": session_id,
        }
        return f"{backend}/authorize?{urlencode(params)}"

    def reauthorize_message(self, session_id: str) -> str:
        link = self.authorize_link(session_id)
        return (
            "Error: Invalid or expired session. "
            f"Please visit {link} or run splitwise_authenticate to authorize Splitwise access."
        )

    async def _forward(self, endpoint: EndpointDescriptor, args: Dict[str, Any]) -> str:
        session_id = args.pop("session_id", None)
        if not session_id:
            return "Error: session_id is required. Run splitwise_authenticate to get one."

        credential = await self._credentials.load_credential(str(session_id))
        if credential is None:
            return self.reauthorize_message(str(session_id))

        try:
            path_values: Dict[str, Any] = {}
            for argument in endpoint.path_arguments:
                value = args.pop(argument, None)
                if value is None and argument == endpoint.current_user_default:
                    value = (await self._api.get_current_user(credential)).get("id")
                if value is None:
                    return f"Error: {argument} is required."
                path_values[argument] = quote(str(value), safe="")
            path = endpoint.path.format(**path_values)

            if endpoint.payload_argument:
                payload = dict(args.get(endpoint.payload_argument) or {})
            else:
                payload = args
            for source, target in endpoint.field_map.items():
                if source in payload:
                    payload[target] = payload.pop(source)

            result = await self._api.authorized_request(
                credential, endpoint.method, path, payload or None
            )
        except RemoteApiError as exc:
            if exc.is_auth_failure:
                return f"{self.reauthorize_message(str(session_id))} ({exc.upstream_message()})"
            return f"Error {endpoint.action or endpoint.name}: {exc.upstream_message() or exc}"

        return self._render(endpoint, result)

    @staticmethod
    def _render(endpoint: EndpointDescriptor, result: Any) -> str:
        if endpoint.success_message:
            return f"{endpoint.success_message}: {json.dumps(result)}"
        if (
            endpoint.result_key
            and isinstance(result, dict)
            and endpoint.result_key in result
            and not result.get("errors")
        ):
            result = result[endpoint.result_key]
        if isinstance(result, str):
            return result
        return json.dumps(result, indent=2)

    async def _call_local(self, name: str, args: Dict[str, Any]) -> str:
        session_id = str(args.get("session_id") or "")

        if name == "splitwise_authenticate":
            return await self._authenticate(session_id or uuid.uuid4().hex)

        if name == "splitwise_whoami":
            lines = [
                f"Phone number: {self._settings.phone_number or 'not configured'}",
                f"Authorization mode: {self._settings.auth_mode}",
            ]
            if session_id:
                record = await self._credentials.load_record(session_id)
                state = record.state if record else CredentialState.EMPTY
                lines.append(f"Session: {session_id} ({state.value})")
            return "\n".join(lines)

        if not session_id:
            return "Error: session_id is required."

        if name == "splitwise_check_auth":
            record = await self._credentials.load_record(session_id)
            state = record.state if record else CredentialState.EMPTY
            if state is CredentialState.AUTHORIZED:
                label = f" as {record.label}" if record and record.label else ""
                return (
                    f"Authentication valid{label}. "
                    "You can use other Splitwise tools with this session ID."
                )
            if state is CredentialState.PENDING:
                return (
                    "Authorization pending. Finish approving access in your browser, "
                    "or run splitwise_authenticate again."
                )
            return (
                "Session expired or invalid. "
                "Please authenticate again using splitwise_authenticate."
            )

        if await self._credentials.revoke(session_id):
            return "Splitwise authorization removed for this session."
        return "No Splitwise authorization was stored for this session."

    async def _authenticate(self, session_id: str) -> str:
        if self._settings.auth_mode == "oauth2" or self._oauth1 is None:
            return (
                "Please visit this URL to authorize Splitwise access: "
                f"{self.authorize_link(session_id)}\n\n"
                f"Your session ID is: {session_id}\n"
                "Use this session ID with the other Splitwise tools once you have approved access."
            )
        try:
            start = await self._oauth1.begin_authorization(session_id)
        except TokenRequestFailed as exc:
            return f"Error starting authentication: {exc}"
        return (
            f"Please visit this URL to authorize Splitwise access: {start.consent_url}\n\n"
            f"Your session ID is: {session_id}\n"
            "Use this session ID with the other Splitwise tools once you have approved access."
        )


__all__ = ["STORE_UNAVAILABLE_MESSAGE", "ToolExecutor"]

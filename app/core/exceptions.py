"""Error taxonomy shared by the OAuth services, the store and the tool layer."""

from __future__ import annotations

import json
from typing import Any


class SplitwiseBridgeError(Exception):
    """Base class for every failure surfaced by the bridge."""


class NotConfigured(SplitwiseBridgeError):
    """Raised when Splitwise client credentials are missing."""


class TokenRequestFailed(SplitwiseBridgeError):
    """Raised when Splitwise does not issue a temporary credential."""


class TokenExchangeFailed(SplitwiseBridgeError):
    """Raised when a verifier or authorization code cannot be exchanged."""


class InvalidSession(SplitwiseBridgeError):
    """Raised when an OAuth1 callback cannot be correlated with a pending handshake."""


class InvalidState(SplitwiseBridgeError):
    """Raised when an OAuth2 state value is missing, tampered or expired."""


class StoreUnavailable(SplitwiseBridgeError):
    """Raised when the credential store cannot be reached."""


class RemoteApiError(SplitwiseBridgeError):
    """Raised when Splitwise answers an authorized call with an error."""

    def __init__(self, status: int | None, body: Any = None) -> None:
        self.status = status
        self.body = body
        super().__init__(self.describe())

    @property
    def is_auth_failure(self) -> bool:
        return self.status in (401, 403)

    def upstream_message(self) -> str:
        """Best-effort extraction of the human readable upstream message."""
        body = self.body
        if isinstance(body, (bytes, bytearray)):
            body = body.decode("utf-8", errors="replace")
        if isinstance(body, str):
            try:
                body = json.loads(body)
            except ValueError:
                return body.strip()
        if isinstance(body, dict):
            for key in ("error", "errors", "message"):
                if body.get(key):
                    value = body[key]
                    return value if isinstance(value, str) else json.dumps(value)
            return json.dumps(body)
        return "" if body is None else str(body)

    def describe(self) -> str:
        message = self.upstream_message()
        if self.status is None:
            return f"Splitwise request failed: {message or 'no response'}"
        if message:
            return f"Splitwise API error {self.status}: {message}"
        return f"Splitwise API error {self.status}"


__all__ = [
    "InvalidSession",
    "InvalidState",
    "NotConfigured",
    "RemoteApiError",
    "SplitwiseBridgeError",
    "StoreUnavailable",
    "TokenExchangeFailed",
    "TokenRequestFailed",
]

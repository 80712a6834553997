"""
Domain models for OAuth credential persistence.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

REQUEST_TOKEN_FIELD = "requestToken"
REQUEST_TOKEN_SECRET_FIELD = "requestTokenSecret"
ACCESS_TOKEN_FIELD = "access_token"
ACCESS_TOKEN_SECRET_FIELD = "accessTokenSecret"

REQUEST_CREDENTIAL_FIELDS = (REQUEST_TOKEN_FIELD, REQUEST_TOKEN_SECRET_FIELD)
ACCESS_CREDENTIAL_FIELDS = (ACCESS_TOKEN_FIELD, ACCESS_TOKEN_SECRET_FIELD)


class CredentialState(str, Enum):
    EMPTY = "empty"
    PENDING = "pending"
    AUTHORIZED = "authorized"


class CredentialRecord(BaseModel):
    """Credential material stored per user id, keyed by the original field names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    request_token: Optional[str] = Field(None, alias=REQUEST_TOKEN_FIELD)
    request_token_secret: Optional[str] = Field(None, alias=REQUEST_TOKEN_SECRET_FIELD)
    access_token: Optional[str] = Field(None, alias=ACCESS_TOKEN_FIELD)
    access_token_secret: Optional[str] = Field(None, alias=ACCESS_TOKEN_SECRET_FIELD)
    label: Optional[str] = None
    splitwise_user_id: Optional[str] = Field(None, alias="splitwiseUserId")
    email: Optional[str] = None

    @property
    def state(self) -> CredentialState:
        if self.access_token:
            return CredentialState.AUTHORIZED
        if self.request_token:
            return CredentialState.PENDING
        return CredentialState.EMPTY

    def to_store(self) -> dict[str, str]:
        return self.model_dump(by_alias=True, exclude_none=True)


class OAuth1Credential(BaseModel):
    """OAuth 1.0a access credential (token pair)."""

    kind: Literal["oauth1"] = "oauth1"
    token: str
    secret: str


class OAuth2Credential(BaseModel):
    """OAuth 2.0 bearer credential."""

    kind: Literal["oauth2"] = "oauth2"
    token: str


AccessCredential = Union[OAuth1Credential, OAuth2Credential]


class TemporaryCredential(BaseModel):
    """OAuth1 request token pair issued during step one of the handshake."""

    token: str
    secret: str


class AuthorizationRequest(BaseModel):
    """Inbound OAuth2 authorization request carried through the ``state`` round trip."""

    client_id: str
    redirect_uri: str
    state: Optional[str] = Field(None, description="Client state echoed on completion.")
    scope: Optional[str] = None
    user_id: str = Field(default_factory=lambda: uuid4().hex)


class SplitwiseProfile(BaseModel):
    """Subset of the Splitwise current-user payload used to label credentials."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None

    @property
    def display_name(self) -> str:
        parts = [part for part in (self.first_name, self.last_name) if part]
        return " ".join(parts) or self.email or str(self.id)


__all__ = [
    "ACCESS_CREDENTIAL_FIELDS",
    "ACCESS_TOKEN_FIELD",
    "ACCESS_TOKEN_SECRET_FIELD",
    "AccessCredential",
    "AuthorizationRequest",
    "CredentialRecord",
    "CredentialState",
    "OAuth1Credential",
    "OAuth2Credential",
    "REQUEST_CREDENTIAL_FIELDS",
    "REQUEST_TOKEN_FIELD",
    "REQUEST_TOKEN_SECRET_FIELD",
    "SplitwiseProfile",
    "TemporaryCredential",
]

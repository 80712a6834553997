"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the MCP tool server and
the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()

_SETTINGS_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class SplitwiseSettings(BaseSettings):
    """Configuration required for talking to Splitwise."""

    model_config = _SETTINGS_CONFIG

    consumer_key: Optional[str] = Field(None, alias="SPLITWISE_CONSUMER_KEY")
    consumer_secret: Optional[str] = Field(None, alias="SPLITWISE_CONSUMER_SECRET")
    callback_url: Optional[str] = Field(
        None,
        alias="SPLITWISE_CALLBACK_URL",
        description="OAuth1 callback URL, also used as the OAuth2 redirect URI.",
    )
    api_base_url: str = Field(
        "https://secure.splitwise.com/api/v3.0", alias="SPLITWISE_API_BASE_URL"
    )
    authorize_url: str = Field(
        "https://secure.splitwise.com/authorize", alias="SPLITWISE_AUTHORIZE_URL"
    )
    oauth2_authorize_url: str = Field(
        "https://secure.splitwise.com/oauth/authorize",
        alias="SPLITWISE_OAUTH2_AUTHORIZE_URL",
    )
    oauth2_token_url: str = Field(
        "https://secure.splitwise.com/oauth/token", alias="SPLITWISE_OAUTH2_TOKEN_URL"
    )
    oauth2_scope: str = Field("", alias="SPLITWISE_OAUTH2_SCOPE")
    timeout_seconds: float = Field(10.0, alias="SPLITWISE_HTTP_TIMEOUT")

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return bool(self.consumer_key and self.consumer_secret)


class StoreSettings(BaseSettings):
    """Credential store connection settings."""

    model_config = _SETTINGS_CONFIG

    backend: Literal["redis", "memory"] = Field(
        "redis",
        alias="STORE_BACKEND",
        description="The memory backend is process-local and meant for development.",
    )
    redis_url: str = Field("redis://localhost:6379/0", alias="REDIS_URL")
    redis_token: Optional[str] = Field(None, alias="REDIS_TOKEN")
    key_prefix: str = Field("splitwise", alias="STORE_KEY_PREFIX")


class OAuthSettings(BaseSettings):
    """OAuth flow lifetimes and the tool surface client identity."""

    model_config = _SETTINGS_CONFIG

    pending_ttl_seconds: int = Field(900, alias="OAUTH_PENDING_TTL")
    state_ttl_seconds: int = Field(900, alias="OAUTH_STATE_TTL")
    grant_ttl_seconds: int = Field(600, alias="OAUTH_GRANT_TTL")
    tool_client_id: str = Field(
        "splitwise-mcp",
        alias="OAUTH_TOOL_CLIENT_ID",
        description="Client id the tool surface uses when it sends users to /authorize.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _SETTINGS_CONFIG

    token_encryption_secret: Optional[str] = Field(
        None,
        alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    cookie_secret: Optional[str] = Field(
        None,
        alias="COOKIE_SECRET",
        description="Secret used to sign OAuth2 state values and approval cookies.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    auth_mode: Literal["oauth1", "oauth2"] = Field("oauth1", alias="AUTH_MODE")
    backend_url: str = Field(
        "http://localhost:3000",
        alias="BACKEND_URL",
        description="Public URL of this service, used in re-authorization hints.",
    )
    phone_number: Optional[str] = Field(None, alias="PHONE_NUMBER")
    splitwise: SplitwiseSettings = Field(default_factory=SplitwiseSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("backend_url")
    @classmethod
    def _strip_backend_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "SecuritySettings",
    "SplitwiseSettings",
    "StoreSettings",
    "get_settings",
]

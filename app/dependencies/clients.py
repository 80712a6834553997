"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import (
    CredentialStore,
    InMemoryCredentialStore,
    OAuthStateEncoder,
    RedisCredentialStore,
    SplitwiseApiClient,
    SplitwiseOAuth1Client,
    SplitwiseOAuth2Client,
)
from app.core.config import get_settings
from app.core.exceptions import NotConfigured
from app.services import (
    CredentialService,
    GrantIssuer,
    OAuth1AuthorizationService,
    OAuth2AuthorizationService,
    TokenCipherService,
)
from app.tools.executor import ToolExecutor


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_credential_store() -> CredentialStore:
    """Provide the shared credential store selected by ``STORE_BACKEND``."""
    settings = _settings()
    if settings.store.backend == "memory":
        return InMemoryCredentialStore()
    return RedisCredentialStore.from_url(
        settings.store.redis_url,
        token=settings.store.redis_token,
        key_prefix=settings.store.key_prefix,
    )


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.splitwise.consumer_secret
    if not secret:
        raise NotConfigured(
            "Set TOKEN_ENCRYPTION_SECRET or SPLITWISE_CONSUMER_SECRET to store credentials."
        )
    return TokenCipherService(secret=secret)


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide the signer used for OAuth2 state values and approval cookies."""
    settings = _settings()
    secret = settings.security.cookie_secret or settings.splitwise.consumer_secret
    if not secret:
        raise NotConfigured("Set COOKIE_SECRET or SPLITWISE_CONSUMER_SECRET.")
    return OAuthStateEncoder(secret_key=secret)


@lru_cache()
def get_splitwise_oauth1_client() -> SplitwiseOAuth1Client:
    return SplitwiseOAuth1Client(_settings().splitwise)


@lru_cache()
def get_splitwise_oauth2_client() -> SplitwiseOAuth2Client:
    return SplitwiseOAuth2Client(_settings().splitwise)


@lru_cache()
def get_splitwise_api_client() -> SplitwiseApiClient:
    return SplitwiseApiClient(_settings().splitwise)


def get_credential_service() -> CredentialService:
    """Build the credential reader for the configured authorization mode."""
    return CredentialService(
        store=get_credential_store(),
        cipher=get_token_cipher_service(),
        auth_mode=_settings().auth_mode,
    )


def get_oauth1_service() -> OAuth1AuthorizationService:
    """Build the OAuth1 handshake service."""
    settings = _settings()
    return OAuth1AuthorizationService(
        store=get_credential_store(),
        oauth_client=get_splitwise_oauth1_client(),
        token_cipher=get_token_cipher_service(),
        pending_ttl_seconds=settings.oauth.pending_ttl_seconds,
    )


def get_grant_issuer() -> GrantIssuer:
    """Build the issuer that mints and redeems OAuth2 grant codes."""
    return GrantIssuer(
        store=get_credential_store(), ttl_seconds=_settings().oauth.grant_ttl_seconds
    )


def get_oauth2_service() -> OAuth2AuthorizationService:
    """Build the OAuth2 authorization-code service."""
    settings = _settings()
    return OAuth2AuthorizationService(
        store=get_credential_store(),
        oauth_client=get_splitwise_oauth2_client(),
        api_client=get_splitwise_api_client(),
        state_encoder=get_oauth_state_encoder(),
        token_cipher=get_token_cipher_service(),
        grant_issuer=get_grant_issuer(),
        state_ttl_seconds=settings.oauth.state_ttl_seconds,
    )


def get_tool_executor() -> ToolExecutor:
    """Build the tool executor used by the MCP server and the HTTP tool routes."""
    settings = _settings()
    return ToolExecutor(
        settings=settings,
        credentials=get_credential_service(),
        api_client=get_splitwise_api_client(),
        oauth1_service=get_oauth1_service() if settings.auth_mode == "oauth1" else None,
    )


__all__ = [
    "get_credential_service",
    "get_credential_store",
    "get_grant_issuer",
    "get_oauth1_service",
    "get_oauth2_service",
    "get_oauth_state_encoder",
    "get_splitwise_api_client",
    "get_splitwise_oauth1_client",
    "get_splitwise_oauth2_client",
    "get_token_cipher_service",
    "get_tool_executor",
]

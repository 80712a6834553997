"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_credential_service,
    get_credential_store,
    get_grant_issuer,
    get_oauth1_service,
    get_oauth2_service,
    get_oauth_state_encoder,
    get_splitwise_api_client,
    get_splitwise_oauth1_client,
    get_splitwise_oauth2_client,
    get_token_cipher_service,
    get_tool_executor,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
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

"""Expose constructed client wrappers."""

from .credential_store import CredentialStore, InMemoryCredentialStore, RedisCredentialStore
from .splitwise_api import SplitwiseApiClient
from .splitwise_auth import OAuthStateEncoder, SplitwiseOAuth1Client, SplitwiseOAuth2Client

__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "OAuthStateEncoder",
    "RedisCredentialStore",
    "SplitwiseApiClient",
    "SplitwiseOAuth1Client",
    "SplitwiseOAuth2Client",
]

"""Service layer exports."""

from .authorization import (
    AuthorizationResult,
    AuthorizationStart,
    GrantIssuer,
    OAuth1AuthorizationService,
    OAuth2AuthorizationService,
)
from .credentials import CredentialService
from .token_cipher import TokenCipherService

__all__ = [
    "AuthorizationResult",
    "AuthorizationStart",
    "CredentialService",
    "GrantIssuer",
    "OAuth1AuthorizationService",
    "OAuth2AuthorizationService",
    "TokenCipherService",
]

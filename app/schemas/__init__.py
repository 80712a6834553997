"""Public schema exports."""

from .auth import (
    ErrorResponse,
    GrantRedemptionResponse,
    OAuth1CallbackResponse,
    TokenLookupData,
    TokenLookupResponse,
)

__all__ = [
    "ErrorResponse",
    "GrantRedemptionResponse",
    "OAuth1CallbackResponse",
    "TokenLookupData",
    "TokenLookupResponse",
]

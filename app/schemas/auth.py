"""Schemas related to OAuth flows and credential lookups."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    error: str


class OAuth1CallbackResponse(BaseModel):
    """Body returned to API clients once the verifier has been exchanged."""

    success: bool = True
    access_token: str
    access_token_secret: str


class GrantRedemptionResponse(BaseModel):
    """Session id bound to a redeemed grant code."""

    success: bool = True
    user_id: str


class TokenLookupData(BaseModel):
    user: Dict[str, Any]


class TokenLookupResponse(BaseModel):
    success: bool
    message: str
    data: Optional[TokenLookupData] = Field(
        None, description="Present only when a record exists for the user."
    )


__all__ = [
    "ErrorResponse",
    "GrantRedemptionResponse",
    "OAuth1CallbackResponse",
    "TokenLookupData",
    "TokenLookupResponse",
]

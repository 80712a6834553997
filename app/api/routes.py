"""
Shared FastAPI routes: health and per-user credential lookup.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from app.dependencies import SettingsDependency, get_credential_service
from app.schemas import TokenLookupData, TokenLookupResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: Any = SettingsDependency) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "auth_mode": settings.auth_mode}


@router.get("/token/{user_id}", response_model=TokenLookupResponse)
async def lookup_token(
    user_id: str,
    credentials: Annotated[Any, Depends(get_credential_service)],
) -> TokenLookupResponse:
    """Return the stored record for ``user_id`` with access fields decrypted."""
    record = await credentials.describe(user_id)
    if record is None:
        return TokenLookupResponse(success=False, message="user not found")
    return TokenLookupResponse(
        success=True,
        message="user found",
        data=TokenLookupData(user=record),
    )


@router.delete("/token/{user_id}", response_model=TokenLookupResponse)
async def revoke_token(
    user_id: str,
    credentials: Annotated[Any, Depends(get_credential_service)],
) -> TokenLookupResponse:
    existed = await credentials.revoke(user_id)
    message = "credential revoked" if existed else "user not found"
    return TokenLookupResponse(success=True, message=message)


__all__ = ["router"]

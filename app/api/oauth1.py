"""
OAuth 1.0a endpoints: start the handshake for a user id and receive the
Splitwise callback.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.pages import error_page, success_page
from app.core.exceptions import (
    InvalidSession,
    NotConfigured,
    SplitwiseBridgeError,
    TokenExchangeFailed,
    TokenRequestFailed,
)
from app.dependencies import get_oauth1_service
from app.schemas import ErrorResponse, OAuth1CallbackResponse

router = APIRouter(
    tags=["oauth1"],
    responses={
        HTTPStatus.BAD_REQUEST: {"model": ErrorResponse},
        HTTPStatus.INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)
logger = logging.getLogger(__name__)


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


@router.get("/authorize/{user_id}", status_code=HTTPStatus.FOUND)
async def start_authorization(
    user_id: str,
    service: Annotated[Any, Depends(get_oauth1_service)],
) -> Response:
    """Step 1: obtain a request token, remember it for ``user_id`` and redirect to consent."""
    try:
        start = await service.begin_authorization(user_id)
    except TokenRequestFailed:
        return JSONResponse(
            {"error": "Failed to get request token"},
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        )
    except NotConfigured as exc:
        return JSONResponse({"error": str(exc)}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)
    except SplitwiseBridgeError:
        logger.exception("Error in authorize for user %s", user_id)
        return JSONResponse(
            {"error": "Failed to get authorization URL"},
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        )

    return RedirectResponse(url=start.consent_url, status_code=HTTPStatus.FOUND)


@router.get("/callback")
async def handle_callback(
    request: Request,
    service: Annotated[Any, Depends(get_oauth1_service)],
    oauth_token: str | None = Query(default=None, description="Temporary token echoed by Splitwise."),
    oauth_verifier: str | None = Query(default=None, description="Verifier issued on consent."),
) -> Response:
    """Step 2: exchange the verified request token for an access token pair."""
    wants_html = _wants_html(request)

    def fail(message: str, status_code: int) -> Response:
        if wants_html:
            return error_page(message, status_code)
        return JSONResponse({"error": message}, status_code=status_code)

    if not oauth_token or not oauth_verifier:
        return fail("Missing required parameters", HTTPStatus.BAD_REQUEST)

    try:
        result = await service.complete_authorization(
            oauth_token=oauth_token, oauth_verifier=oauth_verifier
        )
    except InvalidSession:
        return fail("Invalid or expired session", HTTPStatus.BAD_REQUEST)
    except TokenExchangeFailed:
        return fail("Failed to get access token", HTTPStatus.INTERNAL_SERVER_ERROR)
    except SplitwiseBridgeError:
        logger.exception("Error in callback")
        return fail("Failed to exchange tokens", HTTPStatus.INTERNAL_SERVER_ERROR)

    if wants_html:
        return success_page("Your Splitwise account is now connected.")

    body = OAuth1CallbackResponse(
        access_token=result.credential.token,
        access_token_secret=result.credential.secret,
    )
    return JSONResponse(content=body.model_dump())


__all__ = ["router"]

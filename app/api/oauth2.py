"""
OAuth 2.0 endpoints.

``/authorize`` fronts the Splitwise consent screen with an approval dialog for
the calling client; the caller's request travels to Splitwise and back inside
the signed ``state`` value, so no server-side pending entry is needed.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Form, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.pages import approval_page, error_page, success_page
from app.core.exceptions import (
    InvalidState,
    NotConfigured,
    RemoteApiError,
    SplitwiseBridgeError,
    TokenExchangeFailed,
)
from app.dependencies import get_grant_issuer, get_oauth2_service, get_oauth_state_encoder
from app.models.credentials import AuthorizationRequest
from app.schemas import ErrorResponse, GrantRedemptionResponse

router = APIRouter(tags=["oauth2"])
logger = logging.getLogger(__name__)

APPROVED_CLIENTS_COOKIE = "splitwise_approved_clients"
APPROVED_CLIENTS_MAX_AGE = 30 * 24 * 3600


def approved_clients(request: Request, encoder: Any) -> set[str]:
    """Client ids the browser already approved, read from the signed cookie."""
    raw = request.cookies.get(APPROVED_CLIENTS_COOKIE)
    if not raw:
        return set()
    try:
        payload = encoder.decode(raw)
    except InvalidState:
        return set()
    return {str(client) for client in payload.get("clients") or []}


@router.get("/authorize")
async def authorize(
    request: Request,
    service: Annotated[Any, Depends(get_oauth2_service)],
    encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    client_id: str | None = Query(default=None),
    redirect_uri: str | None = Query(default=None),
    state: str | None = Query(default=None, description="Client state echoed on completion."),
    scope: str | None = Query(default=None),
    user_id: str | None = Query(default=None),
) -> Response:
    if not client_id or not redirect_uri:
        return error_page("Invalid authorization request: client_id and redirect_uri are required.")

    fields: dict[str, Any] = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "state": state,
        "scope": scope,
    }
    if user_id:
        fields["user_id"] = user_id
    auth_request = AuthorizationRequest(**fields)

    try:
        if client_id in approved_clients(request, encoder):
            start = service.begin_authorization(auth_request)
            return RedirectResponse(url=start.consent_url, status_code=HTTPStatus.FOUND)
        return approval_page(client_id=client_id, state=service.encode_request(auth_request))
    except NotConfigured as exc:
        return error_page(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)


@router.post("/authorize")
async def approve(
    request: Request,
    service: Annotated[Any, Depends(get_oauth2_service)],
    encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    state: Annotated[str | None, Form()] = None,
) -> Response:
    try:
        auth_request = service.decode_request(state)
        start = service.begin_authorization(auth_request)
    except InvalidState as exc:
        return error_page(str(exc))
    except NotConfigured as exc:
        return error_page(str(exc), HTTPStatus.INTERNAL_SERVER_ERROR)

    response = RedirectResponse(url=start.consent_url, status_code=HTTPStatus.FOUND)
    approved = approved_clients(request, encoder) | {auth_request.client_id}
    response.set_cookie(
        APPROVED_CLIENTS_COOKIE,
        encoder.encode({"clients": sorted(approved)}),
        max_age=APPROVED_CLIENTS_MAX_AGE,
        httponly=True,
        secure=request.url.scheme == "https",
        samesite="lax",
    )
    return response


@router.get("/callback")
async def handle_callback(
    service: Annotated[Any, Depends(get_oauth2_service)],
    code: str | None = Query(default=None, description="Authorization code from Splitwise."),
    state: str | None = Query(default=None, description="State issued by /authorize."),
) -> Response:
    if not code or not state:
        return error_page("Missing code or state in the Splitwise callback.")

    try:
        result = await service.complete_authorization(code=code, state=state)
    except InvalidState as exc:
        return error_page(str(exc))
    except TokenExchangeFailed:
        logger.warning("Splitwise rejected the authorization code")
        return error_page(
            "Failed to exchange the authorization code with Splitwise.",
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )
    except RemoteApiError as exc:
        return error_page(
            f"Failed to fetch your Splitwise profile: {exc.upstream_message() or exc.status}",
            HTTPStatus.INTERNAL_SERVER_ERROR,
        )
    except SplitwiseBridgeError:
        logger.exception("Error completing OAuth2 authorization")
        return error_page("Authorization could not be completed.", HTTPStatus.INTERNAL_SERVER_ERROR)

    return RedirectResponse(url=result.redirect_to, status_code=HTTPStatus.FOUND)


@router.get("/authorized")
async def authorized(
    grants: Annotated[Any, Depends(get_grant_issuer)],
    code: str | None = Query(default=None, description="Grant code minted after consent."),
) -> Response:
    """Landing page for the tool surface's own client: shows the connected session."""
    user_id = await grants.redeem(code or "")
    if not user_id:
        return error_page("This authorization code is invalid or has already been used.")
    return success_page(
        f"Your Splitwise account is now connected to session {user_id}. "
        "Return to your assistant to continue."
    )


@router.post(
    "/grant",
    response_model=GrantRedemptionResponse,
    responses={HTTPStatus.BAD_REQUEST: {"model": ErrorResponse}},
)
async def redeem_grant(
    grants: Annotated[Any, Depends(get_grant_issuer)],
    code: Annotated[str | None, Form()] = None,
) -> Response:
    """Trade a grant code for the session id its credential is stored under."""
    user_id = await grants.redeem(code or "")
    if not user_id:
        return JSONResponse(
            {"error": "Invalid or expired grant code"}, status_code=HTTPStatus.BAD_REQUEST
        )
    return JSONResponse(GrantRedemptionResponse(user_id=user_id).model_dump())


__all__ = ["APPROVED_CLIENTS_COOKIE", "approved_clients", "router"]

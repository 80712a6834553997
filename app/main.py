"""
FastAPI application entrypoint for the Splitwise bridge.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.core.config import AppSettings, get_settings
from app.core.exceptions import NotConfigured, SplitwiseBridgeError
from app.core.logging import configure_logging
from app.tools.http import (
    MCP_STREAM_PATH,
    create_session_manager,
    streamable_http_app,
)
from app.tools.http import router as mcp_router
from app.tools.server import ExecutorProvider, create_mcp_server

logger = logging.getLogger(__name__)


async def _bridge_error_handler(request: Request, exc: SplitwiseBridgeError) -> JSONResponse:
    if not isinstance(exc, NotConfigured):
        logger.error("Unhandled bridge error on %s: %s", request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)


def create_app(
    settings: Optional[AppSettings] = None,
    *,
    executor_provider: Optional[ExecutorProvider] = None,
) -> FastAPI:
    """Factory for the FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    session_manager = create_session_manager(create_mcp_server(executor_provider))

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        async with session_manager.run():
            logger.info("MCP streamable HTTP endpoint ready at %s", MCP_STREAM_PATH)
            yield

    app = FastAPI(
        title="Splitwise MCP Bridge",
        version="0.1.0",
        description="OAuth token exchange and tool adapter for the Splitwise API.",
        lifespan=lifespan,
    )
    app.add_exception_handler(SplitwiseBridgeError, _bridge_error_handler)
    app.include_router(api_router)
    app.include_router(mcp_router)
    app.mount(MCP_STREAM_PATH, streamable_http_app(session_manager))

    if settings.auth_mode == "oauth2":
        from app.api.oauth2 import router as oauth_router
    else:
        from app.api.oauth1 import router as oauth_router
    app.include_router(oauth_router)

    if not settings.splitwise.is_configured:
        logger.warning(
            "Splitwise consumer credentials are not set; authorization requests will fail"
        )
    return app


app = create_app()

__all__ = ["app", "create_app"]

"""
HTTP access to the MCP tools.

MCP clients connect to the streamable HTTP endpoint at ``MCP_STREAM_PATH``; the
plain JSON routes under ``/mcp/tools`` serve callers that do not speak MCP.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from pydantic import BaseModel, Field
from starlette.types import ASGIApp, Receive, Scope, Send

from app.dependencies import get_tool_executor
from app.tools.endpoints import TOOL_DEFINITIONS, get_tool_by_name
from app.tools.server import SplitwiseMCPServer, execute_tool

router = APIRouter(prefix="/mcp", tags=["MCP"])

MCP_STREAM_PATH = "/mcp/stream"


class ToolCallRequest(BaseModel):
    arguments: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")


class ToolDefinition(BaseModel):
    name: str
    description: str
    inputSchema: dict[str, Any]


class TextContentItem(BaseModel):
    type: str = "text"
    text: str


class ToolCallResponse(BaseModel):
    tool: str
    content: list[TextContentItem]


class ListToolsResponse(BaseModel):
    tools: list[ToolDefinition]
    count: int


@router.get("/tools", response_model=ListToolsResponse)
async def list_tools() -> ListToolsResponse:
    """List the available tools with their input schemas."""
    return ListToolsResponse(
        tools=[ToolDefinition(**tool) for tool in TOOL_DEFINITIONS],
        count=len(TOOL_DEFINITIONS),
    )


@router.post("/tools/{tool_name}/call", response_model=ToolCallResponse)
async def call_tool(
    tool_name: str,
    request: ToolCallRequest,
    executor: Annotated[Any, Depends(get_tool_executor)],
) -> ToolCallResponse:
    if get_tool_by_name(tool_name) is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=f"Tool not found: {tool_name}")

    text = await execute_tool(executor, tool_name, request.arguments)
    return ToolCallResponse(tool=tool_name, content=[TextContentItem(text=text)])


def create_session_manager(server: SplitwiseMCPServer) -> StreamableHTTPSessionManager:
    """Stateless JSON sessions, so any worker can answer any request."""
    return StreamableHTTPSessionManager(app=server.server, json_response=True, stateless=True)


def streamable_http_app(session_manager: StreamableHTTPSessionManager) -> ASGIApp:
    async def handle(scope: Scope, receive: Receive, send: Send) -> None:
        await session_manager.handle_request(scope, receive, send)

    return handle


__all__ = [
    "MCP_STREAM_PATH",
    "create_session_manager",
    "router",
    "streamable_http_app",
]

"""
MCP Server Implementation

Exposes the Splitwise tools to MCP clients. The same low-level server backs the
stdio process and the streamable HTTP endpoint mounted on the web app.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Callable, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from app.core.exceptions import SplitwiseBridgeError
from app.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

ExecutorProvider = Callable[[], ToolExecutor]


async def execute_tool(executor: ToolExecutor, name: str, arguments: dict[str, Any] | None) -> str:
    """Run a tool; nothing raised by the tool crosses the protocol boundary."""
    logger.info("MCP tool called: %s", name)
    try:
        return await executor.call(name, arguments or {})
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("MCP tool execution failed: %s", name)
        return f"Error: {exc}"


class SplitwiseMCPServer:
    """Splitwise MCP server; the executor is resolved for every tool call."""

    def __init__(self, executor_provider: ExecutorProvider, *, name: str = "splitwise-mcp") -> None:
        self._executor_provider = executor_provider
        self.server = Server(name)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            return [
                Tool(
                    name=tool["name"],
                    description=tool["description"],
                    inputSchema=tool["inputSchema"],
                )
                for tool in ToolExecutor.list_tools()
            ]

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
            try:
                executor = self._executor_provider()
            except SplitwiseBridgeError as exc:
                logger.warning("MCP tool %s unavailable: %s", name, exc)
                text = f"Error: {exc}"
            else:
                text = await execute_tool(executor, name, arguments)
            return [TextContent(type="text", text=text)]

    async def run_stdio(self) -> None:
        logger.info("Starting Splitwise MCP server (stdio)")
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )


def create_mcp_server(executor_provider: Optional[ExecutorProvider] = None) -> SplitwiseMCPServer:
    """Build the MCP server, by default from the shared dependency factories."""
    if executor_provider is None:
        from app.dependencies import get_tool_executor

        executor_provider = get_tool_executor
    return SplitwiseMCPServer(executor_provider)


async def main() -> None:
    from app.core.config import get_settings
    from app.core.logging import configure_logging
    from app.dependencies import get_credential_store

    configure_logging(get_settings().log_level, stream=sys.stderr)
    server = create_mcp_server()
    try:
        await server.run_stdio()
    finally:
        await get_credential_store().close()


def run() -> None:
    """Console entry point."""
    asyncio.run(main())


if __name__ == "__main__":  # pragma: no cover - script entry point
    run()

"""
MCP transport adapter: presents the registry's tools over stdio, SSE or
streamable HTTP, and pushes tools/list_changed whenever the registry changes.
"""

from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import Any, Optional

import mcp.types as types
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.routing import Route
from starlette.types import Receive, Scope, Send
from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.session import ServerSession
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

from ig_mcp_server.errors import ConfigurationError
from ig_mcp_server.tools.handlers import RegisteredTool
from ig_mcp_server.tools.tool_registry import GadgetToolRegistry
from ig_mcp_server.utils.logger import get_logger

logger = get_logger(__name__)

SERVER_NAME = "ig-mcp-server"


class ToolCallError(Exception):
    """Raised to hand an error result back through the MCP server.

    The low-level server turns handler exceptions into results with
    isError set, which is how tool-level failures reach the agent.
    """


def to_mcp_tool(tool: RegisteredTool) -> types.Tool:
    definition = tool.definition
    return types.Tool(
        name=definition.name,
        description=definition.description,
        inputSchema=definition.input_schema,
        annotations=types.ToolAnnotations(readOnlyHint=definition.read_only),
    )


class _StreamableHTTPEndpoint:
    """ASGI app so Starlette routes /mcp to the session manager as-is."""

    def __init__(self, manager: StreamableHTTPSessionManager):
        self._manager = manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._manager.handle_request(scope, receive, send)


class McpServer:
    def __init__(self, registry: GadgetToolRegistry, version: str):
        self._registry = registry
        self._server: Server = Server(SERVER_NAME, version=version)
        self._sessions: "weakref.WeakSet[ServerSession]" = weakref.WeakSet()
        self._tools: list[types.Tool] = []
        self._http: Optional[uvicorn.Server] = None
        self._notify_tasks: set[asyncio.Task] = set()

        self._server.list_tools()(self.list_tools)
        self._server.call_tool(validate_input=False)(self.call_tool)
        registry.subscribe(self._on_tools_changed)

    @property
    def mcp_server(self) -> Server:
        return self._server

    def _track_session(self) -> None:
        try:
            self._sessions.add(self._server.request_context.session)
        except LookupError:
            # Called outside a request (tests, direct use)
            pass

    async def list_tools(self) -> list[types.Tool]:
        self._track_session()
        return list(self._tools)

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]]) -> list[types.TextContent]:
        self._track_session()
        tool = self._registry.get(name)
        if tool is None:
            raise ToolCallError(f"unknown tool: {name}")

        try:
            result = await tool.handler(arguments or {})
        except Exception:
            logger.exception("Tool handler failed", extra={"tool": name})
            raise
        if result.is_error:
            logger.debug("Tool returned an error", extra={"tool": name, "error": result.text})
            raise ToolCallError(result.text)
        return [types.TextContent(type="text", text=result.text)]

    def _on_tools_changed(self, tools: list[RegisteredTool]) -> None:
        self._tools = [to_mcp_tool(t) for t in tools]
        logger.info("Tool set updated", extra={"tools_count": len(self._tools)})
        sessions = list(self._sessions)
        if not sessions:
            return
        loop = asyncio.get_running_loop()
        for session in sessions:
            task = loop.create_task(self._send_list_changed(session))
            self._notify_tasks.add(task)
            task.add_done_callback(self._notify_tasks.discard)

    async def _send_list_changed(self, session: ServerSession) -> None:
        try:
            await session.send_tool_list_changed()
        except Exception as exc:
            logger.warning("Failed to send tool list change notification", extra={"error": str(exc)})

    def initialization_options(self):
        return self._server.create_initialization_options(
            notification_options=NotificationOptions(tools_changed=True),
        )

    # ------------------------------------------------------------------
    # Transports
    # ------------------------------------------------------------------

    async def start(self, transport: str, host: str, port: int) -> None:
        if transport == "stdio":
            logger.info("Starting MCP server", extra={"extra": {"transport": transport}})
            async with stdio_server() as (read_stream, write_stream):
                await self._server.run(read_stream, write_stream, self.initialization_options())
            return

        if transport == "sse":
            app = self.sse_app()
        elif transport == "streamable-http":
            app = self.streamable_http_app()
        else:
            raise ConfigurationError(f"unsupported transport: {transport}")

        logger.info("Starting MCP server", extra={"extra": {"transport": transport, "host": host, "port": port}})
        self._http = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
        await self._http.serve()

    def sse_app(self) -> FastAPI:
        sse = SseServerTransport("/messages/")

        async def handle_sse(request: Request) -> Response:
            async with sse.connect_sse(request.scope, request.receive, request._send) as (read_stream, write_stream):
                await self._server.run(read_stream, write_stream, self.initialization_options())
            return Response()

        app = FastAPI(title=SERVER_NAME)
        app.add_route("/sse", handle_sse, methods=["GET"])
        app.mount("/messages/", app=sse.handle_post_message)
        return app

    def streamable_http_app(self) -> FastAPI:
        manager = StreamableHTTPSessionManager(app=self._server)

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with manager.run():
                yield

        app = FastAPI(title=SERVER_NAME, lifespan=lifespan)
        # Exact match: a mount would redirect POST /mcp to /mcp/
        app.router.routes.append(Route("/mcp", endpoint=_StreamableHTTPEndpoint(manager)))
        return app

    async def shutdown(self) -> None:
        logger.info("Shutting down MCP server")
        if self._http is not None:
            self._http.should_exit = True

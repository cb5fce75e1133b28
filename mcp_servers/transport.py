"""
MCP Transport Adapter

Each MCP session owns one ``SessionTransport``: a Streamable HTTP transport
from the MCP SDK plus the MCP server task reading from it. The adapter only
terminates HTTP requests for its own session; routing between sessions is
done by ``mcp_servers.session_manager``.
"""

import logging
from typing import Any, Callable, List

import anyio
import mcp.types as types
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from mcp.shared.exceptions import McpError
from pydantic import ValidationError as PydanticValidationError
from starlette.types import Receive, Scope, Send

from error_handling import MCPServerError
from .base import ToolRegistry

logger = logging.getLogger("mcp_servers.transport")


def is_initialize_request(payload: Any) -> bool:
    """True when ``payload`` is a single, well-formed ``initialize`` request."""
    if not isinstance(payload, dict) or payload.get("method") != "initialize":
        return False
    try:
        types.JSONRPCRequest.model_validate(payload)
        types.InitializeRequestParams.model_validate(payload.get("params") or {})
    except PydanticValidationError:
        return False
    return True


def create_mcp_server(name: str, version: str, registry: ToolRegistry) -> Server:
    """
    Create the low-level MCP server answering tools/list and tools/call.

    Registry errors are raised as ``McpError`` so the SDK replies with a
    JSON-RPC error object carrying the registry's code and message.
    """
    server = Server(name, version=version)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return registry.list_tools()

    async def call_tool(request: types.CallToolRequest) -> types.ServerResult:
        try:
            content = registry.call(request.params.name, request.params.arguments or {})
        except MCPServerError as e:
            logger.warning("Tool call %s rejected: %s", request.params.name, e.message)
            raise McpError(
                types.ErrorData(code=int(e.code), message=e.message, data=e.details or None)
            ) from e
        return types.ServerResult(types.CallToolResult(content=content, isError=False))

    server.request_handlers[types.CallToolRequest] = call_tool
    return server


class SessionTransport:
    """
    Transport handle for a single MCP session.

    Lifecycle: ``start()`` connects the SDK transport and launches the MCP
    server for the session; ``handle_request()`` feeds it HTTP requests;
    ``close()`` terminates it. Close callbacks fire exactly once, whether the
    close was requested or the server task ended on its own.
    """

    def __init__(self, session_id: str, server: Server, json_response: bool = True):
        self._session_id = session_id
        self._server = server
        self._transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=json_response,
        )
        self._close_callbacks: List[Callable[[str], None]] = []
        self._closed = False

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def is_closed(self) -> bool:
        return self._closed

    def on_close(self, callback: Callable[[str], None]) -> None:
        self._close_callbacks.append(callback)

    async def start(self, task_group: TaskGroup) -> None:
        """Run the MCP server for this session; returns once streams are connected."""
        await task_group.start(self._run_server)

    async def _run_server(self, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
        async with self._transport.connect() as streams:
            read_stream, write_stream = streams
            task_status.started()
            try:
                await self._server.run(
                    read_stream,
                    write_stream,
                    self._server.create_initialization_options(),
                    stateless=False,
                )
            except Exception:
                logger.exception("Session %s crashed", self._session_id)
            finally:
                self._mark_closed()

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self._transport.handle_request(scope, receive, send)

    async def close(self) -> None:
        if not self._transport.is_terminated:
            await self._transport.terminate()
        self._mark_closed()

    def _mark_closed(self) -> None:
        if self._closed:
            return
        self._closed = True
        logger.debug("Session %s transport closed", self._session_id)
        for callback in self._close_callbacks:
            callback(self._session_id)

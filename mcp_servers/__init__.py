"""
MCP Servers Module

This module contains the Model Context Protocol (MCP) building blocks shared by
the HTTP servers:

- Tool registry: canned-response tools with validated input models
- Session store: in-memory map of session id to transport handle
- Transport adapter: one MCP SDK streamable HTTP transport per session
- Session router: the /mcp endpoint enforcing initialize-before-use
"""

from mcp_servers.base import ToolDescriptor, ToolRegistry
from mcp_servers.config import ServerSettings
from mcp_servers.session_store import Session, SessionState, SessionStore
from mcp_servers.transport import SessionTransport, create_mcp_server, is_initialize_request
from mcp_servers.session_manager import StreamableHTTPSessionRouter
from mcp_servers.http_app import create_mcp_http_app

__all__ = [
    "ToolDescriptor",
    "ToolRegistry",
    "ServerSettings",
    "Session",
    "SessionState",
    "SessionStore",
    "SessionTransport",
    "create_mcp_server",
    "is_initialize_request",
    "StreamableHTTPSessionRouter",
    "create_mcp_http_app",
]

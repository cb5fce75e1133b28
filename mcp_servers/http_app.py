"""
MCP HTTP Application Factory

Creates ASGI applications that implement the MCP Streamable HTTP protocol with
explicit per-session transports, plus a health check endpoint for monitoring.

Architecture:
- A low-level MCP server answers tools/list and tools/call from a ToolRegistry
- A SessionStore maps session ids to SessionTransport handles
- A StreamableHTTPSessionRouter serves /mcp and owns the session task group
- FastAPI serves /health and carries logging, error handling, tracing and CORS
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from error_handling import ErrorHandlingConfig, setup_app, handle_errors, trace_span
from .base import ToolRegistry
from .config import ServerSettings
from .session_manager import MCP_SESSION_ID_HEADER, StreamableHTTPSessionRouter
from .session_store import SessionStore
from .transport import SessionTransport, create_mcp_server

logger = logging.getLogger("mcp_servers.http_app")


def create_mcp_http_app(registry: ToolRegistry, settings: ServerSettings) -> FastAPI:
    """
    Creates an MCP-compliant ASGI application for a tool registry.

    Args:
        registry: Tools exposed by this server
        settings: Server name, version, session and observability settings

    Returns:
        FastAPI application that implements:
        - POST/GET/DELETE /mcp -> MCP Streamable HTTP protocol with sessions
        - GET /health -> {"status": "ok", "service": "<server name>", ...}
    """
    mcp_server = create_mcp_server(settings.name, settings.version, registry)
    store = SessionStore()

    def transport_factory(session_id: str) -> SessionTransport:
        return SessionTransport(session_id, mcp_server, json_response=settings.json_response)

    router = StreamableHTTPSessionRouter(
        store,
        transport_factory,
        idle_timeout=settings.session_idle_timeout,
        sweep_interval=settings.session_sweep_interval,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: run the session router for the app's lifetime."""
        logger.info(
            "%s MCP server listening on http://%s:%d/mcp",
            settings.name, settings.host, settings.port,
        )
        async with router.run():
            yield
        logger.info("%s MCP server stopped", settings.name)

    app = FastAPI(
        title=settings.name,
        version=settings.version,
        description=f"MCP server for {settings.name}",
        lifespan=lifespan,
    )
    app.state.session_store = store
    app.state.session_router = router
    app.state.tool_registry = registry

    config = ErrorHandlingConfig(
        service_name=settings.name,
        service_version=settings.version,
        environment=settings.environment,
        otlp_endpoint=settings.otlp_endpoint,
        log_level=settings.log_level,
        enable_tracing=settings.enable_tracing,
        enable_error_handling=True,
    )
    app = setup_app(app, config)

    # Browser clients must be able to read the Mcp-Session-Id response header
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", MCP_SESSION_ID_HEADER, "mcp-protocol-version", "last-event-id"],
        expose_headers=["Mcp-Session-Id"],
    )

    app.add_route("/mcp", router, methods=["GET", "POST", "DELETE"], include_in_schema=False)

    @app.get("/health")
    @handle_errors()
    @trace_span()
    async def health():
        """Health check endpoint for monitoring."""
        return {
            "status": "ok",
            "service": settings.name,
            "version": settings.version,
            "active_sessions": len(store),
            "tools": registry.names(),
        }

    logger.info("Created MCP HTTP app for %s with %d tools", settings.name, len(registry))
    return app

"""
Error handling middleware for FastAPI applications.

This module provides middleware to catch and process exceptions in a consistent way.
"""
import logging
import uuid
from typing import Callable
from fastapi import Request
from fastapi.responses import JSONResponse
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest

logger = logging.getLogger("mcp.error_handling")


def _current_trace_id() -> str:
    span = trace.get_current_span()
    context = span.get_span_context() if span else None
    return format(context.trace_id, "032x") if context and context.is_valid else ""


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for handling exceptions and formatting error responses."""

    def __init__(self, app, service_name: str = "mcp-server"):
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request: StarletteRequest, call_next: Callable):
        """Process the request and handle any exceptions."""
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        trace_id = _current_trace_id()

        try:
            response = await call_next(request)

            response.headers["X-Request-ID"] = request_id
            if trace_id:
                response.headers["X-Trace-ID"] = trace_id

            return response

        except Exception as exc:
            return await self._handle_exception(exc, request_id, trace_id, request)

    async def _handle_exception(
        self,
        exc: Exception,
        request_id: str,
        trace_id: str,
        request: StarletteRequest
    ) -> JSONResponse:
        """Handle an exception and return an appropriate response."""
        # Import here to avoid circular dependency
        from error_handling import MCPServerError, log_error

        if not isinstance(exc, MCPServerError):
            exc = MCPServerError.from_exception(exc)

        log_error(
            exc,
            logger,
            request_id=request_id,
            level=logging.ERROR if exc.status_code >= 500 else logging.WARNING,
            extra={
                "path": request.url.path,
                "method": request.method,
                "trace_id": trace_id,
                "service": self.service_name,
            }
        )

        return exc.to_response(request_id=request_id, trace_id=trace_id)


def setup_error_handling(app, service_name: str = "mcp-server") -> None:
    """Set up error handling middleware for a FastAPI application."""
    from error_handling import MCPServerError, log_error

    app.add_middleware(ErrorHandlingMiddleware, service_name=service_name)

    @app.exception_handler(MCPServerError)
    async def mcp_server_error_handler(request: Request, exc: MCPServerError) -> JSONResponse:
        """Handle MCPServerError exceptions raised by route handlers."""
        request_id = getattr(request.state, "request_id", "") or request.headers.get("x-request-id", "")
        trace_id = _current_trace_id()

        log_error(
            exc,
            logger,
            request_id=request_id,
            level=logging.WARNING if exc.status_code < 500 else logging.ERROR,
            extra={
                "path": request.url.path,
                "method": request.method,
                "trace_id": trace_id,
            }
        )

        return exc.to_response(request_id=request_id, trace_id=trace_id)


__all__ = [
    'ErrorHandlingMiddleware',
    'setup_error_handling',
]

"""
Wiring of logging, error handling and tracing into a FastAPI application.
"""
import uuid
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from fastapi import Request


@dataclass
class ErrorHandlingConfig:
    """Observability settings for one MCP server application."""
    service_name: str = "mcp-server"
    service_version: str = "1.0.0"
    environment: str = "development"
    otlp_endpoint: Optional[str] = None
    enable_tracing: bool = True
    enable_error_handling: bool = True
    log_level: str = "INFO"


def setup_app(app, config: Optional[ErrorHandlingConfig] = None):
    """
    Configure logging, tracing and error handling for an application.

    Every response carries ``X-Request-ID``: either the ErrorHandlingMiddleware
    sets it or, with error handling disabled, a small request-id middleware.

    Returns:
        The configured FastAPI application
    """
    config = config or ErrorHandlingConfig()

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger(config.service_name).setLevel(config.log_level)

    # Import here to avoid circular dependency
    from .tracing import setup_tracing, instrument_fastapi
    from .middleware import setup_error_handling

    if config.enable_tracing:
        setup_tracing(
            service_name=config.service_name,
            environment=config.environment,
            otlp_endpoint=config.otlp_endpoint,
            service_version=config.service_version,
        )
        instrument_fastapi(app)

    if config.enable_error_handling:
        setup_error_handling(app, service_name=config.service_name)
        return app

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    return app


def handle_errors(log_level: int = logging.ERROR):
    """
    Route handler decorator: unexpected exceptions become a generic
    ``MCPServerError`` (-32603, HTTP 500) so no internal detail reaches the
    client. ``MCPServerError`` passes through unchanged.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            # Import here to avoid circular dependency
            from error_handling import MCPServerError

            try:
                return await func(*args, **kwargs)
            except MCPServerError:
                raise
            except Exception as e:
                logging.getLogger("mcp.error_handling").log(
                    log_level,
                    "Unhandled error in %s: %s", func.__name__, e,
                    exc_info=log_level >= logging.ERROR,
                )
                raise MCPServerError.from_exception(e) from e

        return wrapper
    return decorator


__all__ = [
    'ErrorHandlingConfig',
    'setup_app',
    'handle_errors',
]

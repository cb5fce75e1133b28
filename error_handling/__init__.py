"""
Error handling module for the MCP session servers.

This module provides a structured way to raise, log and report errors as
JSON-RPC error objects across the application.
"""
from enum import IntEnum
from typing import Optional, Dict, Any, Union
import logging
from fastapi import status
from pydantic import BaseModel
from starlette.responses import JSONResponse

# Import all from submodules to make them available at the package level
from .tracing import *
from .middleware import *
from .utils import *

# Re-export all error-related classes and functions
__all__ = [
    # Error codes and base classes
    'ErrorCode',
    'ErrorObject',
    'ErrorResponse',
    'MCPServerError',

    # Common error types
    'BadRequestError',
    'UnknownToolError',
    'ToolInputError',
    'SessionConflictError',

    # Utility functions
    'log_error',
    'jsonrpc_error_response',
    'setup_error_handling',
    'ErrorHandlingMiddleware',

    # Tracing
    'setup_tracing',
    'get_tracer',
    'trace_span',
    'instrument_fastapi',

    # Utils
    'ErrorHandlingConfig',
    'setup_app',
    'handle_errors',
]

JSONRPC_VERSION = "2.0"


class ErrorCode(IntEnum):
    """JSON-RPC error codes used by the servers."""
    # Standard JSON-RPC errors
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Implementation-defined server errors
    SERVER_ERROR = -32000


class ErrorObject(BaseModel):
    """The ``error`` member of a JSON-RPC error response."""
    code: int
    message: str
    data: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Standard JSON-RPC error envelope for HTTP responses."""
    jsonrpc: str = JSONRPC_VERSION
    error: ErrorObject
    id: Optional[Union[str, int]] = None

    class Config:
        json_schema_extra = {
            "example": {
                "jsonrpc": "2.0",
                "error": {
                    "code": -32000,
                    "message": "Bad Request: No valid session ID provided",
                },
                "id": None
            }
        }

    def to_content(self) -> Dict[str, Any]:
        """Serialize for a response body; ``id`` stays present as null."""
        content = self.model_dump()
        if self.error.data is None:
            content["error"].pop("data")
        return content


class MCPServerError(Exception):
    """Base exception class for all MCP server errors."""

    def __init__(
        self,
        code: Union[ErrorCode, int],
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.code = ErrorCode(code)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a JSON-RPC error object."""
        error = {
            "code": int(self.code),
            "message": self.message,
        }
        if self.details:
            error["data"] = self.details
        return error

    def to_response(self, request_id: str = "", trace_id: str = "") -> JSONResponse:
        """Render the error as an HTTP response with a JSON-RPC body."""
        headers = {"Cache-Control": "no-store"}
        if request_id:
            headers["X-Request-ID"] = request_id
        if trace_id:
            headers["X-Trace-ID"] = trace_id
        return JSONResponse(
            status_code=self.status_code,
            content=ErrorResponse(error=ErrorObject(**self.to_dict())).to_content(),
            headers=headers
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> 'MCPServerError':
        """Create an MCPServerError from a generic exception."""
        if isinstance(exc, MCPServerError):
            return exc
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message="Internal server error",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"exception_type": exc.__class__.__name__},
            cause=exc
        )


# Common error types for easy reuse
class BadRequestError(MCPServerError):
    def __init__(self, message: str = "Bad Request: No valid session ID provided"):
        super().__init__(
            code=ErrorCode.SERVER_ERROR,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST
        )


class UnknownToolError(MCPServerError):
    def __init__(self, tool_name: str):
        super().__init__(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Unknown tool: {tool_name}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"tool": tool_name}
        )


class ToolInputError(MCPServerError):
    def __init__(self, tool_name: str, errors: list):
        super().__init__(
            code=ErrorCode.INVALID_PARAMS,
            message=f"Invalid arguments for tool {tool_name}",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"tool": tool_name, "errors": errors}
        )


class SessionConflictError(MCPServerError):
    def __init__(self, session_id: str):
        super().__init__(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Session '{session_id}' is already active",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"session_id": session_id}
        )


def jsonrpc_error_response(
    code: Union[ErrorCode, int],
    message: str,
    status_code: int,
    data: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    """Build a JSON-RPC error response with a null correlation id."""
    body = ErrorResponse(error=ErrorObject(code=int(code), message=message, data=data))
    return JSONResponse(status_code=status_code, content=body.to_content(), headers=headers)


def log_error(
    error: Exception,
    logger: logging.Logger,
    request_id: str = "",
    level: int = logging.ERROR,
    extra: Optional[Dict[str, Any]] = None
) -> None:
    """
    Helper function to log errors with structured context.

    Args:
        error: The exception to log
        logger: Logger instance to use
        request_id: Optional request ID for correlation
        level: Log level (default: ERROR)
        extra: Additional context to include in the log
    """
    extra = extra or {}
    if request_id:
        extra["request_id"] = request_id

    if isinstance(error, MCPServerError):
        extra.update({
            "error_code": int(error.code),
            "status_code": error.status_code,
        })
        if error.cause:
            extra["cause"] = str(error.cause)
    else:
        extra.update({
            "error_type": error.__class__.__name__,
            "error_message": str(error)
        })

    logger.log(level, str(error), extra=extra, exc_info=level >= logging.ERROR)

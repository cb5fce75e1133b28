"""
Base MCP Server Utilities

Provides shared functionality for all MCP servers including:
- Tool descriptors and the immutable tool registry
- Environment helpers used by the configuration layer
"""

import json
import os
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Type, Union

import mcp.types as types
from pydantic import BaseModel, ValidationError as PydanticValidationError

from error_handling import UnknownToolError, ToolInputError, get_tracer

logger = logging.getLogger("mcp_servers")

ToolOutput = Union[str, Sequence[types.TextContent]]


@dataclass(frozen=True)
class ToolDescriptor:
    """A named, schema-described operation exposed to MCP clients."""
    name: str
    title: str
    description: str
    input_model: Type[BaseModel]
    handler: Callable[[Any], ToolOutput]

    @property
    def input_schema(self) -> Dict[str, Any]:
        return self.input_model.model_json_schema()

    def to_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            title=self.title,
            description=self.description,
            inputSchema=self.input_schema,
        )


class ToolRegistry:
    """
    Immutable mapping from tool name to descriptor.

    Populated once at server start. Arguments are validated against the
    tool's input model before the handler runs.
    """

    def __init__(self, descriptors: Iterable[ToolDescriptor]):
        tools: Dict[str, ToolDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in tools:
                raise ValueError(f"Duplicate tool name: {descriptor.name}")
            tools[descriptor.name] = descriptor
        self._tools = MappingProxyType(tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def list_tools(self) -> List[types.Tool]:
        """Return the MCP tool listing in registration order."""
        return [descriptor.to_tool() for descriptor in self._tools.values()]

    def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> List[types.TextContent]:
        """
        Validate arguments and invoke a tool.

        Args:
            name: The tool to execute
            arguments: Raw tool arguments from the client

        Returns:
            Ordered content blocks produced by the handler

        Raises:
            UnknownToolError: no tool is registered under ``name``
            ToolInputError: the arguments do not satisfy the input model
        """
        descriptor = self._tools.get(name)
        if descriptor is None:
            raise UnknownToolError(name)

        tracer = get_tracer("mcp_servers.tools")
        with tracer.start_as_current_span(f"mcp.tool.{name}") as span:
            span.set_attribute("mcp.tool.name", name)
            span.set_attribute("mcp.tool.arguments", json.dumps(arguments or {}, default=str))
            try:
                params = descriptor.input_model.model_validate(arguments or {})
            except PydanticValidationError as e:
                span.set_attribute("mcp.tool.status", "invalid_input")
                errors = [
                    {"loc": [str(part) for part in err["loc"]], "msg": err["msg"], "type": err["type"]}
                    for err in e.errors()
                ]
                raise ToolInputError(name, errors) from e

            try:
                output = descriptor.handler(params)
            except Exception:
                span.set_attribute("mcp.tool.status", "error")
                raise
            span.set_attribute("mcp.tool.status", "success")

        logger.debug("Tool %s returned for arguments %s", name, arguments)
        if isinstance(output, str):
            return [types.TextContent(type="text", text=output)]
        return list(output)


def get_env_or_default(key: str, default: str) -> str:
    """Get environment variable or return default."""
    return os.environ.get(key, default)

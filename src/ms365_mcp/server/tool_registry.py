"""Registry of MCP tools and their handlers.

Tools are registered with a ParameterSpec (validation + JSON schema) and an
async handler. The registry binds itself to a low-level MCP server's
``list_tools`` and ``call_tool`` hooks.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from mcp.server import Server
from mcp.types import CallToolResult, Tool, ToolAnnotations
from pydantic import ValidationError

from ms365_mcp.openapi.schema_builder import ParameterSpec, format_validation_error
from ms365_mcp.server.results import error_result

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[CallToolResult]]


@dataclass
class RegisteredTool:
    name: str
    description: str
    spec: ParameterSpec
    handler: ToolHandler
    read_only: bool = False

    def to_tool(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.spec.json_schema(),
            annotations=ToolAnnotations(title=self.name, readOnlyHint=self.read_only),
        )


class ToolRegistry:
    """Ordered collection of tools exposed by the server."""

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> RegisteredTool | None:
        return self._tools.get(name)

    def tool(
        self,
        name: str,
        spec: ParameterSpec,
        handler: ToolHandler,
        description: str = "",
        read_only: bool = False,
    ) -> None:
        """Register a tool.

        Args:
            name: Tool name; must be unique.
            spec: Argument schema.
            handler: Coroutine receiving validated arguments.
            description: Shown to the client.
            read_only: Advertised as the readOnlyHint annotation.

        Raises:
            ValueError: If a tool with this name is already registered.
        """
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        self._tools[name] = RegisteredTool(name, description, spec, handler, read_only)
        logger.debug(f"Registered tool {name}")

    def list_tools(self) -> list[Tool]:
        return [registered.to_tool() for registered in self._tools.values()]

    async def call(self, name: str, arguments: dict[str, Any] | None) -> CallToolResult:
        """Validate arguments and run a tool.

        Returns:
            The handler's result, or an error result. Never raises.
        """
        registered = self._tools.get(name)
        if registered is None:
            return error_result(f"Unknown tool: {name}")

        try:
            validated = registered.spec.validate(arguments)
        except ValidationError as e:
            return error_result(format_validation_error(e))

        try:
            return await registered.handler(validated)
        except Exception as e:
            logger.exception(f"Error calling tool {name}")
            return error_result(str(e))

    def attach(self, server: Server) -> None:
        """Register MCP tool handlers on a low-level server."""

        @server.list_tools()
        async def list_tools() -> list[Tool]:
            """Return list of available tools."""
            return self.list_tools()

        @server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any]) -> CallToolResult:
            """Handle tool calls."""
            return await self.call(name, arguments)

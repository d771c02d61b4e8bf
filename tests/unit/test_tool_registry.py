"""Unit tests for ToolRegistry."""

import json

import pytest
from mcp.server import Server
from mcp.types import CallToolResult

from ms365_mcp.openapi.schema_builder import ParameterSpec, ParamField
from ms365_mcp.server.results import text_result
from ms365_mcp.server.tool_registry import ToolRegistry


def payload(result) -> dict:
    return json.loads(result.content[0].text)


async def echo(params: dict) -> CallToolResult:
    return text_result(params)


async def explode(params: dict) -> CallToolResult:
    raise RuntimeError("boom")


@pytest.fixture
def registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.tool(
        "echo",
        ParameterSpec("echo", {"count": ParamField(int, required=True)}),
        echo,
        description="Echo arguments",
        read_only=True,
    )
    registry.tool("explode", ParameterSpec("explode", {}), explode)
    return registry


@pytest.mark.unit
class TestToolRegistry:
    """Tests for tool registration and dispatch."""

    def test_should_reject_duplicate_names(self, registry: ToolRegistry) -> None:
        """Verify tool names are unique."""
        with pytest.raises(ValueError, match="already registered"):
            registry.tool("echo", ParameterSpec("echo", {}), echo)

    def test_should_list_tools_with_schema_and_annotations(self, registry: ToolRegistry) -> None:
        """Verify listed tools carry schema and readOnlyHint."""
        tools = {tool.name: tool for tool in registry.list_tools()}

        assert tools["echo"].inputSchema["required"] == ["count"]
        assert tools["echo"].annotations.readOnlyHint is True
        assert tools["explode"].annotations.readOnlyHint is False

    @pytest.mark.asyncio
    async def test_should_pass_validated_arguments(self, registry: ToolRegistry) -> None:
        """Verify handlers receive coerced arguments."""
        result = await registry.call("echo", {"count": "3"})

        assert payload(result) == {"count": 3}

    @pytest.mark.asyncio
    async def test_should_report_validation_errors(self, registry: ToolRegistry) -> None:
        """Verify invalid arguments become an error result."""
        result = await registry.call("echo", {"count": "many"})

        assert result.isError is True
        assert payload(result)["error"].startswith("Invalid arguments: count")

    @pytest.mark.asyncio
    async def test_should_convert_handler_exceptions(self, registry: ToolRegistry) -> None:
        """Verify handler exceptions never escape."""
        result = await registry.call("explode", {})

        assert result.isError is True
        assert payload(result) == {"error": "boom"}

    @pytest.mark.asyncio
    async def test_should_report_unknown_tool(self, registry: ToolRegistry) -> None:
        """Verify unknown names are an error result."""
        result = await registry.call("missing", {})

        assert payload(result) == {"error": "Unknown tool: missing"}

    def test_should_attach_to_server(self, registry: ToolRegistry) -> None:
        """Verify MCP handlers are installed on the server."""
        from mcp.types import CallToolRequest, ListToolsRequest

        server = Server("test")
        registry.attach(server)

        assert ListToolsRequest in server.request_handlers
        assert CallToolRequest in server.request_handlers

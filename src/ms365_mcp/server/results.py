"""Helpers for building MCP tool results."""

import json
from typing import Any

from mcp.types import CallToolResult, TextContent


def text_result(payload: Any, is_error: bool = False) -> CallToolResult:
    """Wrap a payload in a single-text-item tool result.

    Strings are passed through untouched; anything else is JSON-encoded.
    """
    text = payload if isinstance(payload, str) else json.dumps(payload, indent=2)
    return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


def error_result(message: str) -> CallToolResult:
    """Tool result carrying ``{"error": message}`` with isError set."""
    return text_result({"error": message}, is_error=True)


def result_payload(result: CallToolResult) -> Any:
    """Decode the JSON payload of a single-text-item result."""
    return json.loads(result.content[0].text)

"""MCP server for Microsoft 365."""

from ms365_mcp.server.graph_server import MS365Server

__all__ = ["MS365Server"]

"""Command-line interface for ms365-mcp."""

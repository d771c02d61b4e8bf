"""Microsoft 365 MCP Server.

Expose Microsoft Graph operations (mail, calendar, OneDrive, Excel workbooks)
as MCP tools generated from the Graph OpenAPI description.
"""

from ms365_mcp.__version__ import __version__

__all__ = ["__version__"]

"""Microsoft 365 MCP server.

This MCP server exposes Microsoft Graph operations (mail, calendar, OneDrive,
Excel workbooks, To Do, contacts) as tools generated from the packaged Graph
OpenAPI description, plus login/logout tools for the device-code flow.

Tokens are acquired silently from the persisted MSAL cache; a 401 from Graph
forces one refresh and retry.
"""

import contextlib
import logging
from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import uvicorn
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.routing import Mount
from starlette.types import Receive, Scope, Send

from ms365_mcp.auth.token_manager import TokenManager
from ms365_mcp.endpoints import OPENAPI_PATH, TARGET_ENDPOINTS, OperationDescriptor
from ms365_mcp.exceptions import SpecLoadError
from ms365_mcp.openapi.loader import load_spec
from ms365_mcp.server.auth_tools import AuthTools, register_workbook_tools
from ms365_mcp.server.dynamic_tools import register_dynamic_tools, validate_endpoints
from ms365_mcp.server.graph_client import GraphClient
from ms365_mcp.server.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

SERVER_NAME = "ms365-mcp"
DEFAULT_HTTP_HOST = "127.0.0.1"
MCP_HTTP_PATH = "/mcp"


class MS365Server:
    """MCP server for Microsoft Graph.

    Attributes:
        server: MCP Server instance.
        registry: Tools exposed to clients.
        token_manager: TokenManager supplying Graph access tokens.
        graph_client: GraphClient the generated tools delegate to.
    """

    def __init__(
        self,
        token_manager: TokenManager | None = None,
        read_only: bool = False,
        endpoints: list[OperationDescriptor] | None = None,
        openapi_path: Path | None = None,
        max_missing_endpoints: int = 0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Microsoft 365 MCP server.

        Args:
            token_manager: Token source. Creates the default manager if not provided.
            read_only: Only expose GET operations.
            endpoints: Allow-list to expose. Defaults to the packaged list.
            openapi_path: OpenAPI description. Defaults to the packaged one.
            max_missing_endpoints: Allow-list entries that may be absent from the
                description before start-up is refused.
            http_client: Shared HTTP client for Graph calls.
        """
        self.server = Server(SERVER_NAME)
        self.registry = ToolRegistry()
        self.token_manager = token_manager or TokenManager()
        self.graph_client = GraphClient(self.token_manager, http_client=http_client)
        self.read_only = read_only
        self.endpoints = endpoints if endpoints is not None else TARGET_ENDPOINTS
        self.openapi_path = openapi_path or OPENAPI_PATH
        self.max_missing_endpoints = max_missing_endpoints
        self.registry.attach(self.server)

    def initialize(self) -> None:
        """Load the OpenAPI description and register every tool.

        Raises:
            SpecLoadError: If the description cannot be loaded, or more
                allow-listed endpoints are missing than tolerated.
        """
        table = load_spec(self.openapi_path)

        missing = validate_endpoints(self.endpoints, table)
        if len(missing) > self.max_missing_endpoints:
            names = ", ".join(str(record) for record in missing)
            raise SpecLoadError(
                f"{len(missing)} endpoints missing from OpenAPI description "
                f"(tolerated: {self.max_missing_endpoints}): {names}"
            )

        AuthTools(self.token_manager).register(self.registry)
        register_dynamic_tools(
            self.endpoints,
            table,
            self.registry,
            self.graph_client,
            read_only=self.read_only,
        )
        register_workbook_tools(self.registry, self.graph_client)
        logger.info(f"Server initialized with {len(self.registry)} tools")

    async def close(self) -> None:
        """Close workbook sessions and the shared HTTP client."""
        if self.graph_client.sessions:
            await self.graph_client.close_all_sessions()
        await self.graph_client.close()

    async def run(self) -> None:
        """Run the MCP server using stdio transport."""
        logger.info("Microsoft 365 MCP server starting on stdio...")
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.close()

    def http_app(self) -> Starlette:
        """Build the ASGI app serving streamable HTTP at /mcp."""
        session_manager = StreamableHTTPSessionManager(app=self.server, stateless=True)

        async def handle_streamable_http(scope: Scope, receive: Receive, send: Send) -> None:
            await session_manager.handle_request(scope, receive, send)

        @contextlib.asynccontextmanager
        async def lifespan(app: Starlette) -> AsyncIterator[None]:
            async with session_manager.run():
                try:
                    yield
                finally:
                    await self.close()

        return Starlette(
            routes=[Mount(MCP_HTTP_PATH, app=handle_streamable_http)],
            lifespan=lifespan,
        )

    async def run_http(self, port: int, host: str = DEFAULT_HTTP_HOST) -> None:
        """Run the MCP server over streamable HTTP."""
        logger.info(f"Microsoft 365 MCP server starting on http://{host}:{port}{MCP_HTTP_PATH}")
        config = uvicorn.Config(self.http_app(), host=host, port=port, log_config=None)
        await uvicorn.Server(config).serve()

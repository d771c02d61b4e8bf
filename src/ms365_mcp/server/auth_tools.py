"""Authentication and workbook-session tools.

``login`` starts the device-code flow in the background and returns the
sign-in instructions as soon as MSAL produces them; the flow then completes
on its own once the user has entered the code.
"""

import asyncio
import logging
from typing import Any

from mcp.types import CallToolResult

from ms365_mcp.auth.token_manager import TokenManager
from ms365_mcp.openapi.schema_builder import ParameterSpec, ParamField
from ms365_mcp.server.graph_client import GraphClient
from ms365_mcp.server.results import error_result, text_result
from ms365_mcp.server.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

LOGIN_SPEC_FIELDS = {
    "force": ParamField(
        bool, default=False, description="Force a new login even if already logged in"
    ),
}
FILE_PATH_FIELDS = {
    "filePath": ParamField(
        str, required=True, description="Path to the Excel file whose session should be closed"
    ),
}


class AuthTools:
    """Tool handlers for login, logout and login verification.

    Attributes:
        token_manager: Manager performing the actual auth operations.
    """

    def __init__(self, token_manager: TokenManager) -> None:
        self.token_manager = token_manager
        self._pending: set[asyncio.Task] = set()

    async def login(self, params: dict[str, Any]) -> CallToolResult:
        """Return device-code instructions, or the current identity if already signed in."""
        try:
            if not params.get("force"):
                status = await self.token_manager.test_login()
                if status.success:
                    return text_result({"status": "Already logged in", **status.to_json_dict()})

            instructions = await self._start_device_code_login()
            return text_result(instructions)
        except Exception as e:
            logger.error(f"Login failed: {e}")
            return error_result(f"Authentication failed: {e}")

    async def _start_device_code_login(self) -> str:
        loop = asyncio.get_event_loop()
        instructions: asyncio.Future[str] = loop.create_future()

        def on_user_code(message: str) -> None:
            # Called from the flow's own task; resolve at most once
            if not instructions.done():
                instructions.set_result(message)

        task = asyncio.create_task(self.token_manager.acquire_token_by_device_code(on_user_code))
        self._pending.add(task)

        def on_done(finished: asyncio.Task) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.error(f"Device code login did not complete: {error}")
                if not instructions.done():
                    instructions.set_exception(error)

        task.add_done_callback(on_done)
        return await instructions

    async def logout(self, params: dict[str, Any]) -> CallToolResult:
        try:
            await self.token_manager.logout()
        except Exception as e:
            logger.error(f"Logout failed: {e}")
            return error_result("Logout failed")
        return text_result({"message": "Logged out successfully"})

    async def verify_login(self, params: dict[str, Any]) -> CallToolResult:
        result = await self.token_manager.test_login()
        return text_result(result.to_json_dict())

    def register(self, registry: ToolRegistry) -> None:
        registry.tool(
            "login",
            ParameterSpec("login", LOGIN_SPEC_FIELDS),
            self.login,
            description="Authenticate with Microsoft using the device code flow",
        )
        registry.tool(
            "logout",
            ParameterSpec("logout", {}),
            self.logout,
            description="Log out from Microsoft account",
        )
        registry.tool(
            "verify-login",
            ParameterSpec("verify-login", {}),
            self.verify_login,
            description="Check current Microsoft authentication status",
            read_only=True,
        )


def register_workbook_tools(registry: ToolRegistry, graph_client: GraphClient) -> None:
    """Register the tools that close Excel workbook sessions."""

    async def close_session(params: dict[str, Any]) -> CallToolResult:
        return await graph_client.close_session(params["filePath"])

    async def close_all_sessions(params: dict[str, Any]) -> CallToolResult:
        return await graph_client.close_all_sessions()

    registry.tool(
        "close-workbook-session",
        ParameterSpec("close-workbook-session", FILE_PATH_FIELDS),
        close_session,
        description="Close the workbook session held for an Excel file",
    )
    registry.tool(
        "close-all-workbook-sessions",
        ParameterSpec("close-all-workbook-sessions", {}),
        close_all_sessions,
        description="Close every open workbook session",
    )

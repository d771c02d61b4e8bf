"""MSAL-backed token manager for Microsoft Graph.

Tokens come from an MSAL public client application. The MSAL token cache is
persisted through FallbackTokenStorage (OS keyring first, project-level file
second), so a device-code login survives restarts and later tokens are
acquired silently from the cached refresh material.

Environment Variables:
    MS365_MCP_CLIENT_ID: Azure AD application (client) ID
        (default: the public ms-365-mcp-server registration).
    MS365_MCP_TENANT_ID: Tenant to sign in against (default: common).
"""

import asyncio
import logging
import os
import sys
from collections.abc import Callable
from typing import Any

import httpx
import msal
from pydantic import ValidationError

from ms365_mcp.auth.models import AccessToken, LoginTestResult, UserData
from ms365_mcp.auth.scopes import build_scopes
from ms365_mcp.auth.token_storage import FallbackTokenStorage
from ms365_mcp.endpoints import TARGET_ENDPOINTS
from ms365_mcp.exceptions import DeviceCodeFlowError, LogoutError, NoValidTokenError

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_ID = "084a3e9f-a9f4-43f7-89f9-d229cf97853e"
DEFAULT_TENANT_ID = "common"
AUTHORITY_HOST = "https://login.microsoftonline.com"
GRAPH_ME_URL = "https://graph.microsoft.com/v1.0/me"

DeviceCodeCallback = Callable[[str], None]


def default_authority() -> str:
    """Build the authority URL from MS365_MCP_TENANT_ID."""
    tenant_id = os.environ.get("MS365_MCP_TENANT_ID", DEFAULT_TENANT_ID)
    return f"{AUTHORITY_HOST}/{tenant_id}"


def _print_device_code(message: str) -> None:
    # stdout carries the MCP protocol on stdio
    print(message, file=sys.stderr)


class TokenManager:
    """Access token lifecycle for Microsoft Graph.

    Handles the cache load/save round trip, silent acquisition, the
    interactive device-code flow, login verification, and logout.

    Attributes:
        storage: Storage composite holding the serialized MSAL cache.
        scopes: Permission scopes requested for every token.

    Example:
        ```python
        manager = TokenManager()
        await manager.load_cache()

        try:
            token = await manager.get_token()
        except NoValidTokenError:
            token = await manager.acquire_token_by_device_code()
        ```
    """

    def __init__(
        self,
        storage: FallbackTokenStorage | None = None,
        client_id: str | None = None,
        authority: str | None = None,
        scopes: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        app: Any = None,
    ) -> None:
        """Initialize the token manager.

        Args:
            storage: Credential storage. Creates the keyring/file default if not provided.
            client_id: Application ID. Falls back to MS365_MCP_CLIENT_ID, then the public default.
            authority: Authority URL. Built from MS365_MCP_TENANT_ID if not provided.
            scopes: Scopes to request. Derived from the endpoint allow-list if not provided.
            http_client: Client used for the /me login check.
            app: Pre-built MSAL application sharing ``self.cache``.
        """
        self.storage = storage or FallbackTokenStorage()
        self.client_id = client_id or os.environ.get("MS365_MCP_CLIENT_ID", DEFAULT_CLIENT_ID)
        self.authority = authority or default_authority()
        self.scopes = scopes if scopes is not None else build_scopes(TARGET_ENDPOINTS)
        self.cache = msal.SerializableTokenCache()
        self.app = app or msal.PublicClientApplication(
            self.client_id,
            authority=self.authority,
            token_cache=self.cache,
        )
        self._http_client = http_client
        self._token: AccessToken | None = None

    @property
    def has_token(self) -> bool:
        """Whether a non-expired token is held in memory."""
        return self._token is not None and not self._token.is_expired()

    async def load_cache(self) -> None:
        """Load the persisted MSAL cache, if any.

        Never raises: a missing or unreadable cache just means no credential.
        """
        loop = asyncio.get_event_loop()
        try:
            blob = await loop.run_in_executor(None, self.storage.load)
            if blob:
                self.cache.deserialize(blob)
                logger.debug("Token cache loaded")
        except Exception as e:
            logger.error(f"Error loading token cache: {e}")

    async def save_cache(self) -> None:
        """Persist the MSAL cache. Never raises."""
        loop = asyncio.get_event_loop()
        try:
            blob = self.cache.serialize()
            await loop.run_in_executor(None, self.storage.save, blob)
        except Exception as e:
            logger.error(f"Error saving token cache: {e}")

    def _remember(self, result: dict[str, Any]) -> str:
        self._token = AccessToken.from_msal_result(result)
        return self._token.value

    async def get_token(self, force_refresh: bool = False) -> str:
        """Get a valid access token without user interaction.

        Args:
            force_refresh: Skip the in-memory token and ask MSAL for a fresh one.

        Returns:
            Bearer access token.

        Raises:
            NoValidTokenError: If no account is cached or silent acquisition fails.
        """
        if self._token is not None and not force_refresh and not self._token.is_expired():
            return self._token.value

        loop = asyncio.get_event_loop()
        accounts = await loop.run_in_executor(None, self.app.get_accounts)
        if not accounts:
            raise NoValidTokenError("No valid token found. Please log in first.")

        logger.debug(f"Acquiring token silently (force_refresh={force_refresh})")
        result = await loop.run_in_executor(
            None,
            lambda: self.app.acquire_token_silent(
                self.scopes, account=accounts[0], force_refresh=force_refresh
            ),
        )
        if not result or "access_token" not in result:
            detail = (result or {}).get("error_description", "silent acquisition failed")
            logger.warning(f"Silent token acquisition failed: {detail}")
            raise NoValidTokenError("No valid token found. Please log in again.")

        token = self._remember(result)
        if self.cache.has_state_changed:
            await self.save_cache()
        return token

    async def acquire_token_by_device_code(
        self, on_user_code: DeviceCodeCallback | None = None
    ) -> str:
        """Run the interactive device-code login.

        Args:
            on_user_code: Receives the sign-in instructions exactly once.
                Defaults to printing them on stderr.

        Returns:
            Bearer access token.

        Raises:
            DeviceCodeFlowError: If the flow cannot start or does not complete.
        """
        notify = on_user_code or _print_device_code
        loop = asyncio.get_event_loop()

        try:
            flow = await loop.run_in_executor(
                None, lambda: self.app.initiate_device_flow(scopes=self.scopes)
            )
        except Exception as e:
            raise DeviceCodeFlowError(f"Could not start device code flow: {e}") from e

        if "user_code" not in flow:
            raise DeviceCodeFlowError(
                f"Could not start device code flow: {flow.get('error_description', flow)}"
            )

        notify(flow["message"])

        try:
            result = await loop.run_in_executor(None, self.app.acquire_token_by_device_flow, flow)
        except Exception as e:
            raise DeviceCodeFlowError(f"Device code login failed: {e}") from e

        if not result or "access_token" not in result:
            detail = (result or {}).get("error_description", "no token returned")
            raise DeviceCodeFlowError(f"Device code login failed: {detail}")

        token = self._remember(result)
        await self.save_cache()
        logger.info("Device code login completed")
        return token

    async def test_login(self) -> LoginTestResult:
        """Check that a token can be obtained and is accepted by Graph.

        Returns:
            Structured result; never raises.
        """
        try:
            token = await self.get_token()
        except Exception as e:
            return LoginTestResult(success=False, message=f"Login failed: {e}")

        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    GRAPH_ME_URL, headers={"Authorization": f"Bearer {token}"}
                )
            else:
                async with httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0)) as client:
                    response = await client.get(
                        GRAPH_ME_URL, headers={"Authorization": f"Bearer {token}"}
                    )
        except httpx.HTTPError as e:
            logger.error(f"Login test request failed: {e}")
            return LoginTestResult(success=False, message=f"Login failed: {e}")

        if not response.is_success:
            return LoginTestResult(
                success=False,
                message=f"Login failed: Graph API returned {response.status_code}",
            )

        try:
            user_data = UserData.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Unexpected /me response: {e}")
            return LoginTestResult(
                success=False, message="Login failed: unexpected response from Graph API"
            )
        return LoginTestResult(success=True, message="Login successful", user_data=user_data)

    async def logout(self) -> bool:
        """Sign out every cached account and delete the persisted cache.

        Returns:
            True once the accounts are removed.

        Raises:
            LogoutError: If MSAL fails to enumerate or remove accounts.
        """
        loop = asyncio.get_event_loop()
        try:
            accounts = await loop.run_in_executor(None, self.app.get_accounts)
            for account in accounts:
                await loop.run_in_executor(None, self.app.remove_account, account)
        except Exception as e:
            raise LogoutError(f"Error during logout: {e}") from e

        self._token = None
        await loop.run_in_executor(None, self.storage.delete)
        logger.info("Logged out")
        return True

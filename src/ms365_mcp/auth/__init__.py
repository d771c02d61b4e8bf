"""Authentication for Microsoft 365 MCP.

This package wraps MSAL's public client flow for Microsoft Graph and
persists its token cache in the OS keyring (with a file fallback).

Quick Start:
    ```python
    from ms365_mcp.auth import TokenManager

    manager = TokenManager()
    await manager.load_cache()

    # Interactive sign-in
    await manager.acquire_token_by_device_code()

    # Later calls are silent
    token = await manager.get_token()
    ```
"""

from ms365_mcp.auth.models import AccessToken, LoginTestResult, UserData
from ms365_mcp.auth.scopes import SCOPE_HIERARCHY, build_scopes, collapse_scopes
from ms365_mcp.auth.token_manager import TokenManager
from ms365_mcp.auth.token_storage import (
    FallbackTokenStorage,
    FileBackend,
    KeyringBackend,
    SecretBackend,
)

__all__ = [
    "TokenManager",
    "FallbackTokenStorage",
    "SecretBackend",
    "KeyringBackend",
    "FileBackend",
    "AccessToken",
    "LoginTestResult",
    "UserData",
    "SCOPE_HIERARCHY",
    "build_scopes",
    "collapse_scopes",
]

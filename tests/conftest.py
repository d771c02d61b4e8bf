"""Shared pytest fixtures for ms365-mcp tests.

This module provides reusable fixtures for token storage, a TokenManager
wired to a mocked MSAL application, the packaged OpenAPI operation table, and
Graph transports built on httpx.MockTransport.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from ms365_mcp.auth.token_manager import TokenManager
from ms365_mcp.auth.token_storage import FallbackTokenStorage, FileBackend, SecretBackend
from ms365_mcp.endpoints import OPENAPI_PATH
from ms365_mcp.openapi.loader import OperationTable, load_spec
from ms365_mcp.server.graph_client import GraphClient

# =============================================================================
# Storage Fixtures
# =============================================================================


class MemoryBackend(SecretBackend):
    """In-memory backend standing in for the OS keyring."""

    name = "memory"

    def __init__(self, fail: bool = False) -> None:
        self.blob: str | None = None
        self.fail = fail

    def save(self, blob: str) -> None:
        if self.fail:
            raise RuntimeError("keyring unavailable")
        self.blob = blob

    def load(self) -> str | None:
        if self.fail:
            raise RuntimeError("keyring unavailable")
        return self.blob

    def delete(self) -> bool:
        if self.fail:
            raise RuntimeError("keyring unavailable")
        removed = self.blob is not None
        self.blob = None
        return removed


@pytest.fixture
def temp_token_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for token storage tests."""
    token_dir = tmp_path / ".ms365-mcp"
    token_dir.mkdir(parents=True, mode=0o700)
    return token_dir


@pytest.fixture
def temp_token_path(temp_token_dir: Path) -> Path:
    """Get the path for a temporary token-cache.json file."""
    return temp_token_dir / "token-cache.json"


@pytest.fixture
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def failing_backend() -> MemoryBackend:
    """Backend that raises on every call, like a locked or missing keyring."""
    return MemoryBackend(fail=True)


@pytest.fixture
def token_storage(memory_backend: MemoryBackend, temp_token_path: Path) -> FallbackTokenStorage:
    """Storage composite with an in-memory keyring and a temporary file."""
    return FallbackTokenStorage([memory_backend, FileBackend(temp_token_path)])


# =============================================================================
# MSAL / Token Manager Fixtures
# =============================================================================


@pytest.fixture
def account() -> dict[str, Any]:
    return {"home_account_id": "uid.tid", "username": "user@contoso.com"}


@pytest.fixture
def msal_app(account: dict[str, Any]) -> MagicMock:
    """Create a mock MSAL PublicClientApplication with one cached account."""
    app = MagicMock()
    app.get_accounts.return_value = [account]
    app.acquire_token_silent.return_value = {
        "access_token": "silent_access_token",
        "expires_in": 3600,
    }
    app.initiate_device_flow.return_value = {
        "user_code": "ABCD-EFGH",
        "device_code": "device-code",
        "verification_uri": "https://microsoft.com/devicelogin",
        "message": "To sign in, use a web browser to open https://microsoft.com/devicelogin "
        "and enter the code ABCD-EFGH to authenticate.",
    }
    app.acquire_token_by_device_flow.return_value = {
        "access_token": "device_access_token",
        "expires_in": 3600,
    }
    return app


@pytest.fixture
def token_manager(token_storage: FallbackTokenStorage, msal_app: MagicMock) -> TokenManager:
    """Create a TokenManager backed by the mock MSAL app and temporary storage."""
    return TokenManager(
        storage=token_storage,
        client_id="test-client-id",
        authority="https://login.microsoftonline.com/common",
        scopes=["User.Read", "Mail.Read"],
        app=msal_app,
    )


# =============================================================================
# OpenAPI Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def operation_table() -> OperationTable:
    """The packaged Graph OpenAPI description, loaded once."""
    return load_spec(OPENAPI_PATH)


# =============================================================================
# Graph Transport Fixtures
# =============================================================================


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


@pytest.fixture
def make_graph_client(token_manager: TokenManager):
    """Factory building a GraphClient whose HTTP traffic goes to a handler.

    Returns:
        Callable taking a request handler and returning (client, transport).
    """

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
    ) -> tuple[GraphClient, RecordingTransport]:
        transport = RecordingTransport(handler)
        http_client = httpx.AsyncClient(transport=transport)
        return GraphClient(token_manager, http_client=http_client), transport

    return factory


# =============================================================================
# CLI Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()

"""Command-line interface for ms365-mcp."""

import asyncio
import json
import logging
import sys
from typing import Any

import click

from ms365_mcp.__version__ import __version__
from ms365_mcp.auth.token_manager import TokenManager
from ms365_mcp.exceptions import MS365MCPError
from ms365_mcp.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _emit(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload))


async def _login(manager: TokenManager) -> dict[str, Any]:
    await manager.load_cache()
    await manager.acquire_token_by_device_code()
    logger.info("Login completed, testing connection with Graph API...")
    result = await manager.test_login()
    return result.to_json_dict()


async def _verify_login(manager: TokenManager) -> dict[str, Any]:
    await manager.load_cache()
    result = await manager.test_login()
    return result.to_json_dict()


async def _logout(manager: TokenManager) -> dict[str, Any]:
    await manager.load_cache()
    await manager.logout()
    return {"message": "Logged out successfully"}


async def _serve(read_only: bool, http_port: int | None) -> None:
    from ms365_mcp.server.graph_server import MS365Server

    server = MS365Server(read_only=read_only)
    await server.token_manager.load_cache()
    server.initialize()
    if http_port is not None:
        await server.run_http(http_port)
    else:
        await server.run()


@click.command(name="ms365-mcp")
@click.version_option(version=__version__)
@click.option("--login", "login", is_flag=True, help="Login using device code flow")
@click.option("--logout", "logout", is_flag=True, help="Log out and clear saved credentials")
@click.option(
    "--verify-login", "verify_login", is_flag=True, help="Verify login without starting the server"
)
@click.option(
    "--read-only",
    is_flag=True,
    envvar="READ_ONLY",
    help="Only expose read (GET) operations",
)
@click.option(
    "--http",
    "http_port",
    type=int,
    default=None,
    metavar="PORT",
    help="Serve streamable HTTP on PORT at /mcp instead of stdio",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
def main(
    login: bool,
    logout: bool,
    verify_login: bool,
    read_only: bool,
    http_port: int | None,
    verbose: bool,
) -> None:
    """Microsoft 365 MCP Server - Connect MCP clients to Microsoft Graph.

    Without options, starts the stdio MCP server exposing mail, calendar,
    OneDrive, Excel, To Do and contacts tools.

    Authenticate first with --login; credentials are kept in the OS keyring
    (falling back to ./.ms365-mcp/token-cache.json).
    """
    configure_logging(verbose=verbose)

    if login or verify_login or logout:
        if login:
            action, label = _login, "Login"
        elif verify_login:
            action, label = _verify_login, "Verify login"
        else:
            action, label = _logout, "Logout"

        try:
            payload = asyncio.run(action(TokenManager()))
        except MS365MCPError as e:
            logger.error(f"{label} failed: {e}")
            _emit({"error": f"{label} failed: {e}"})
            sys.exit(1)
        except Exception as e:
            logger.exception(f"{label} failed")
            _emit({"error": f"{label} failed: {e}"})
            sys.exit(1)

        _emit(payload)
        if payload.get("success") is False:
            sys.exit(1)
        return

    try:
        asyncio.run(_serve(read_only, http_port))
    except KeyboardInterrupt:
        click.echo("\nServer stopped.", err=True)
    except Exception as e:
        logger.exception("Startup error")
        click.echo(f"❌ Server error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

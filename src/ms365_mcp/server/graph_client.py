"""Authenticated Microsoft Graph client with Excel workbook sessions.

Every request carries a bearer token from the TokenManager. A 401 response
triggers one forced token refresh (and a fresh workbook session, if one was
in use) followed by exactly one retry. Responses are normalised into MCP
tool results: OData annotations are stripped, empty responses get a status
message, and raw downloads are returned as text or summarised.
"""

import logging
from typing import Any

import httpx
from mcp.types import CallToolResult

from ms365_mcp.auth.token_manager import TokenManager
from ms365_mcp.exceptions import RequestError, SessionUnavailable
from ms365_mcp.server.results import error_result, result_payload, text_result

logger = logging.getLogger(__name__)

GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"
WORKBOOK_SESSION_HEADER = "workbook-session-id"
ODATA_PREFIX = "@odata"


def strip_odata(value: Any) -> Any:
    """Recursively drop every key starting with ``@odata``."""
    if isinstance(value, dict):
        return {k: strip_odata(v) for k, v in value.items() if not k.startswith(ODATA_PREFIX)}
    if isinstance(value, list):
        return [strip_odata(item) for item in value]
    return value


def workbook_item_url(file_path: str) -> str:
    """URL of a OneDrive item addressed by path, e.g. ``/Documents/Budget.xlsx``."""
    return f"{GRAPH_API_BASE}/me/drive/root:{file_path}:"


class GraphClient:
    """Graph API client holding one workbook session per file path.

    Attributes:
        token_manager: Source of bearer tokens.
        sessions: Workbook session id per file path.
    """

    def __init__(
        self, token_manager: TokenManager, http_client: httpx.AsyncClient | None = None
    ) -> None:
        self.token_manager = token_manager
        self.sessions: dict[str, str] = {}
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create shared HTTP client with connection pooling.

        Returns:
            Shared httpx.AsyncClient instance.
        """
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _build_url(self, path: str, workbook_file: str | None) -> str:
        if workbook_file and path.startswith("/workbook"):
            return f"{workbook_item_url(workbook_file)}{path}"
        return f"{GRAPH_API_BASE}{path}"

    async def create_session(self, file_path: str) -> str | None:
        """Open a persistent workbook session for a file.

        Args:
            file_path: OneDrive path of the workbook.

        Returns:
            Session id, or None if the session could not be created.
        """
        if not file_path:
            logger.error("No file path provided for workbook session")
            return None

        if file_path in self.sessions:
            return self.sessions[file_path]

        try:
            session_id = await self._open_session(file_path)
        except Exception as e:
            logger.error(f"Error creating workbook session for {file_path}: {e}")
            return None

        self.sessions[file_path] = session_id
        logger.info(f"Workbook session created for {file_path}")
        return session_id

    async def _open_session(self, file_path: str) -> str:
        logger.info(f"Creating new workbook session for {file_path}")
        token = await self.token_manager.get_token()
        client = await self._get_http_client()
        response = await client.post(
            f"{workbook_item_url(file_path)}/workbook/createSession",
            json={"persistChanges": True},
            headers={"Authorization": f"Bearer {token}"},
        )
        if not response.is_success:
            raise SessionUnavailable(
                f"Failed to create session: {response.status_code} {response.text}"
            )
        return str(response.json()["id"])

    async def request(
        self,
        path: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: str | bytes | None = None,
        workbook_file: str | None = None,
        raw_response: bool = False,
    ) -> CallToolResult:
        """Send an authenticated Graph request.

        Args:
            path: Graph path (``/me/messages?...``) or, with ``workbook_file``,
                a workbook-relative path (``/workbook/...``).
            method: HTTP method.
            headers: Extra headers; override the defaults.
            body: Already-encoded request body.
            workbook_file: Route through the workbook session for this file.
            raw_response: Return the body as-is instead of parsing JSON.

        Returns:
            Tool result. Failures are returned with isError set, never raised.
        """
        try:
            token = await self.token_manager.get_token()
            session_id = None
            if workbook_file:
                session_id = await self.create_session(workbook_file)
                if session_id is None:
                    logger.warning(f"Continuing without a workbook session for {workbook_file}")

            url = self._build_url(path, workbook_file)
            response = await self._send(url, method, token, session_id, headers, body)

            if response.status_code == 401:
                logger.info("Access token expired, refreshing...")
                token = await self.token_manager.get_token(force_refresh=True)
                if workbook_file and session_id:
                    self.sessions.pop(workbook_file, None)
                    session_id = await self.create_session(workbook_file)
                response = await self._send(url, method, token, session_id, headers, body)
                if response.status_code == 401 and workbook_file:
                    self.sessions.pop(workbook_file, None)

            if not response.is_success:
                raise RequestError(response.status_code, response.text)

            return self._format_response(response, raw_response)
        except Exception as e:
            logger.error(f"Error in Graph API request {method} {path}: {e}")
            return error_result(str(e))

    async def _send(
        self,
        url: str,
        method: str,
        token: str,
        session_id: str | None,
        headers: dict[str, str] | None,
        body: str | bytes | None,
    ) -> httpx.Response:
        request_headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        if session_id:
            request_headers[WORKBOOK_SESSION_HEADER] = session_id
        request_headers.update(headers or {})

        client = await self._get_http_client()
        return await client.request(method.upper(), url, headers=request_headers, content=body)

    def _format_response(
        self, response: httpx.Response, raw_response: bool = False
    ) -> CallToolResult:
        if response.status_code == 204:
            return text_result({"message": "Operation completed successfully"})

        if raw_response:
            content_type = response.headers.get("content-type")
            if content_type and content_type.startswith("text/"):
                return text_result(response.text)
            return text_result(
                {
                    "message": "Binary file content received",
                    "contentType": content_type,
                    "contentLength": response.headers.get("content-length"),
                }
            )

        try:
            return text_result(strip_odata(response.json()))
        except ValueError as e:
            logger.error(f"Error formatting response: {e}")
            return text_result({"message": "Success"})

    async def close_session(self, file_path: str) -> CallToolResult:
        """Close the workbook session held for a file.

        Returns:
            Status result; failures are reported, never raised.
        """
        session_id = self.sessions.get(file_path) if file_path else None
        if session_id is None:
            return text_result({"message": "No active session for the specified file"})

        try:
            token = await self.token_manager.get_token()
            client = await self._get_http_client()
            response = await client.post(
                f"{workbook_item_url(file_path)}/workbook/closeSession",
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                    WORKBOOK_SESSION_HEADER: session_id,
                },
            )
            if not response.is_success:
                raise RequestError(response.status_code, response.text)
        except Exception as e:
            logger.error(f"Error closing session for {file_path}: {e}")
            return error_result(f"Failed to close session for {file_path}")

        self.sessions.pop(file_path, None)
        return text_result({"message": f"Session for {file_path} closed successfully"})

    async def close_all_sessions(self) -> CallToolResult:
        """Close every held workbook session (best effort)."""
        results = []
        for file_path in list(self.sessions):
            closed = await self.close_session(file_path)
            results.append(result_payload(closed))
        return text_result({"message": "All sessions closed", "results": results})

"""Exception types for ms365-mcp.

Storage and session-close failures are logged rather than raised, and tool
handlers turn everything else into error results, so most of these only
escape at start-up or from the CLI.
"""


class MS365MCPError(Exception):
    """Base class for all ms365-mcp errors."""


class NoValidTokenError(MS365MCPError):
    """No usable cached credential; an interactive login is required."""


class DeviceCodeFlowError(MS365MCPError):
    """The interactive device-code login failed."""


class LogoutError(MS365MCPError):
    """Removing cached accounts failed during logout."""


class SpecLoadError(MS365MCPError):
    """The OpenAPI description could not be read or parsed."""


class SessionUnavailable(MS365MCPError):
    """A workbook session could not be created."""


class RequestError(MS365MCPError):
    """A Graph API request returned a non-2xx status.

    Attributes:
        status_code: HTTP status code of the failed response.
        body: Response body text, if any.
    """

    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"Graph API error: {status_code} {body}".rstrip())
        self.status_code = status_code
        self.body = body

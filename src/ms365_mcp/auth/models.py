"""Data models for Microsoft 365 authentication."""

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field


class AccessToken(BaseModel):
    """An access token held in memory by the token manager.

    Attributes:
        value: The bearer token string.
        expires_at: When the token stops being accepted (UTC).
    """

    value: str = Field(..., description="Bearer access token")
    expires_at: datetime = Field(..., description="Token expiration time (UTC)")

    @classmethod
    def from_msal_result(cls, result: dict[str, Any]) -> "AccessToken":
        """Build a token from an MSAL acquisition result.

        MSAL reports lifetime as ``expires_in`` seconds; a missing value is
        treated as already expired so the token is never trusted blindly.
        """
        expires_in = int(result.get("expires_in") or 0)
        return cls(
            value=result["access_token"],
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        )

    def is_expired(self, buffer_seconds: int = 60) -> bool:
        """Check if the token is expired or about to expire.

        Args:
            buffer_seconds: Consider the token expired this many seconds early.

        Returns:
            True if the token is expired or expires within the buffer.
        """
        return datetime.now(timezone.utc) + timedelta(seconds=buffer_seconds) >= self.expires_at


class UserData(BaseModel):
    """Identity details returned by the /me endpoint."""

    display_name: str | None = Field(default=None, alias="displayName")
    user_principal_name: str | None = Field(default=None, alias="userPrincipalName")

    model_config = {"populate_by_name": True}


class LoginTestResult(BaseModel):
    """Structured outcome of a login check.

    Attributes:
        success: Whether a token was obtained and accepted by Graph.
        message: Human-readable outcome.
        user_data: Identity of the signed-in user on success.
    """

    success: bool
    message: str
    user_data: UserData | None = Field(default=None, alias="userData")

    model_config = {"populate_by_name": True}

    def to_json_dict(self) -> dict[str, Any]:
        """Render with the camelCase keys used on the wire."""
        return self.model_dump(by_alias=True, exclude_none=True)

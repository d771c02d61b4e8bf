"""Unit tests for authentication data models."""

from datetime import datetime, timedelta, timezone

import pytest

from ms365_mcp.auth.models import AccessToken, LoginTestResult, UserData


@pytest.mark.unit
class TestAccessToken:
    """Tests for AccessToken."""

    def test_should_compute_expiry_from_expires_in(self) -> None:
        """Verify expires_in seconds become an absolute expiry."""
        before = datetime.now(timezone.utc)
        token = AccessToken.from_msal_result({"access_token": "abc", "expires_in": 3600})

        assert token.value == "abc"
        assert token.expires_at >= before + timedelta(seconds=3600)
        assert not token.is_expired()

    def test_should_treat_missing_lifetime_as_expired(self) -> None:
        """Verify a result without expires_in is never trusted."""
        token = AccessToken.from_msal_result({"access_token": "abc"})

        assert token.is_expired()

    def test_should_apply_expiry_buffer(self) -> None:
        """Verify a token expiring inside the buffer counts as expired."""
        token = AccessToken(
            value="abc", expires_at=datetime.now(timezone.utc) + timedelta(seconds=30)
        )

        assert token.is_expired(buffer_seconds=60)
        assert not token.is_expired(buffer_seconds=0)


@pytest.mark.unit
class TestLoginTestResult:
    """Tests for LoginTestResult serialization."""

    def test_should_render_camel_case_keys(self) -> None:
        """Verify user data is emitted with Graph field names."""
        result = LoginTestResult(
            success=True,
            message="Login successful",
            user_data=UserData.model_validate(
                {"displayName": "Ada Lovelace", "userPrincipalName": "ada@contoso.com"}
            ),
        )

        assert result.to_json_dict() == {
            "success": True,
            "message": "Login successful",
            "userData": {"displayName": "Ada Lovelace", "userPrincipalName": "ada@contoso.com"},
        }

    def test_should_omit_missing_user_data(self) -> None:
        """Verify failures carry no userData key."""
        result = LoginTestResult(success=False, message="Login failed: no token")

        assert "userData" not in result.to_json_dict()

"""Tests for the shared Pydantic models."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from pkcesession.models import ApiResponse, AuthConfig, OutputConfig, Profile, TokenResponse, TokenSet


def _auth(**overrides: str) -> AuthConfig:
    values = {
        "client_id": "c",
        "redirect_uri": "http://127.0.0.1:8765/callback",
        "authorization_endpoint": "https://auth.example.com/authorize",
        "token_endpoint": "https://auth.example.com/token",
    }
    values.update(overrides)
    return AuthConfig(**values)


class TestAuthConfig:
    def test_absolute_endpoints_unchanged(self) -> None:
        config = _auth()
        assert config.authorization_url == "https://auth.example.com/authorize"
        assert config.token_url == "https://auth.example.com/token"

    def test_relative_endpoints_resolved(self) -> None:
        config = _auth(
            base_url="http://localhost:8080",
            authorization_endpoint="/api/v1/oauth2/authorize",
            token_endpoint="/api/v1/oauth2/token",
        )
        assert config.authorization_url == "http://localhost:8080/api/v1/oauth2/authorize"
        assert config.token_url == "http://localhost:8080/api/v1/oauth2/token"

    def test_relative_endpoint_without_base_rejected(self) -> None:
        with pytest.raises(ValidationError, match="relative"):
            _auth(token_endpoint="/token")

    def test_relative_redirect_rejected(self) -> None:
        with pytest.raises(ValidationError, match="redirect_uri"):
            _auth(redirect_uri="/callback")

    def test_relative_base_url_rejected(self) -> None:
        with pytest.raises(ValidationError, match="base_url"):
            _auth(base_url="localhost")

    def test_empty_client_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _auth(client_id="")

    def test_frozen(self) -> None:
        config = _auth()
        with pytest.raises(ValidationError):
            config.client_id = "other"  # type: ignore[misc]

    def test_requested_scope_default(self) -> None:
        assert _auth().requested_scope == "read"
        assert _auth(scope="read write").requested_scope == "read write"


class TestOutputConfig:
    def test_format_normalised(self) -> None:
        assert OutputConfig(format="JSON").format == "json"

    def test_unknown_format_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OutputConfig(format="yaml")


class TestProfile:
    def test_resource_base_url_falls_back_to_auth_base(self) -> None:
        profile = Profile(
            name="p",
            auth=_auth(base_url="http://localhost:8080"),
        )
        assert profile.resource_base_url == "http://localhost:8080"

    def test_api_base_url_wins(self) -> None:
        profile = Profile(name="p", auth=_auth(base_url="http://a"), api_base_url="http://b")
        assert profile.resource_base_url == "http://b"

    def test_no_base_url(self) -> None:
        assert Profile(name="p", auth=_auth()).resource_base_url is None


class TestTokenModels:
    def test_token_response_keeps_extra_members(self) -> None:
        response = TokenResponse.model_validate({"access_token": "a", "id_token": "x"})
        assert response.token_type == "Bearer"
        assert response.model_extra == {"id_token": "x"}

    def test_is_expired(self) -> None:
        now = datetime(2030, 1, 1, tzinfo=timezone.utc)
        tokens = TokenSet(access_token="a", expires_at=now + timedelta(seconds=1))
        assert not tokens.is_expired(now)
        assert tokens.is_expired(now + timedelta(seconds=1))

    def test_no_expiry_never_expires(self) -> None:
        assert not TokenSet(access_token="a").is_expired(datetime.now(timezone.utc))

    def test_naive_expiry_treated_as_utc(self) -> None:
        tokens = TokenSet(access_token="a", expires_at=datetime(2030, 1, 1))
        assert tokens.is_expired(datetime(2030, 1, 1, tzinfo=timezone.utc))


class TestApiResponse:
    @pytest.mark.parametrize(("status", "ok"), [(200, True), (204, True), (401, False), (503, False)])
    def test_ok(self, status: int, ok: bool) -> None:
        assert ApiResponse(status=status).ok is ok

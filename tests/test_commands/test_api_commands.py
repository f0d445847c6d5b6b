"""CLI tests for ``pkcesession api``.

The resource server is simulated with :class:`httpx.MockTransport` injected
into :class:`~pkcesession.client.ApiClient` by patching the command module.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest
from typer.testing import CliRunner

from pkcesession.app import app
from pkcesession.auth.storage import ACCESS_TOKEN_KEY, Storage
from pkcesession.client import ApiClient
from pkcesession.config import save_profile
from pkcesession.models import AuthConfig, Profile


class _ResourceServer:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.unreachable = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        auth = request.headers.get("authorization")
        if request.url.path != "/api/v1/public" and auth != "Bearer tok":
            return httpx.Response(401, json={"detail": "invalid token"})
        if request.url.path == "/api/v1/admin":
            return httpx.Response(403, json={"detail": "admin role required"})
        body = json.loads(request.content) if request.content else None
        return httpx.Response(200, json={"path": request.url.path, "body": body})


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> _ResourceServer:
    resource_server = _ResourceServer()

    def _client(*args: Any, **kwargs: Any) -> ApiClient:
        kwargs["http_client"] = httpx.AsyncClient(transport=httpx.MockTransport(resource_server))
        return ApiClient(*args, **kwargs)

    monkeypatch.setattr("pkcesession.commands.api.ApiClient", _client)
    return resource_server


@pytest.fixture
def saved_profile(isolated_config: Path, sample_profile: Profile) -> Profile:
    save_profile(sample_profile)
    return sample_profile


@pytest.fixture
def logged_in(saved_profile: Profile) -> None:
    Storage.for_profile(saved_profile.name).durable.set(ACCESS_TOKEN_KEY, "tok")


def _invoke(runner: CliRunner, *args: str):
    return runner.invoke(app, ["--no-color", "--json", *args])


class TestFixedEndpoints:
    def test_public(self, cli_runner: CliRunner, saved_profile: Profile, server: _ResourceServer) -> None:
        result = _invoke(cli_runner, "--quiet", "api", "public")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["status"] == 200
        assert data["data"]["path"] == "/api/v1/public"
        assert str(server.requests[0].url) == "http://api.test/api/v1/public"

    def test_protected_without_login(
        self, cli_runner: CliRunner, saved_profile: Profile, server: _ResourceServer
    ) -> None:
        result = _invoke(cli_runner, "api", "protected")

        assert result.exit_code == 3
        assert "HTTP 401 Authentication required" in result.output
        assert "No access token available" in result.output
        assert server.requests == []

    def test_protected_with_login(
        self, cli_runner: CliRunner, logged_in: None, server: _ResourceServer
    ) -> None:
        result = _invoke(cli_runner, "api", "protected")

        assert result.exit_code == 0, result.output
        assert server.requests[0].headers["authorization"] == "Bearer tok"

    def test_admin_forbidden(self, cli_runner: CliRunner, logged_in: None, server: _ResourceServer) -> None:
        result = _invoke(cli_runner, "api", "admin")

        assert result.exit_code == 3
        assert "HTTP 403 Forbidden" in result.output

    def test_unreachable(self, cli_runner: CliRunner, logged_in: None, server: _ResourceServer) -> None:
        server.unreachable = True

        result = _invoke(cli_runner, "api", "protected")

        assert result.exit_code == 6
        assert "Service unavailable (network error)" in result.output


class TestCall:
    def test_post_with_body(self, cli_runner: CliRunner, logged_in: None, server: _ResourceServer) -> None:
        result = _invoke(
            cli_runner, "--quiet", "api", "call", "/api/v1/items", "-X", "POST", "-d", '{"name": "x"}', "--auth"
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["data"]["body"] == {"name": "x"}
        assert server.requests[0].method == "POST"

    def test_invalid_json_body(self, cli_runner: CliRunner, saved_profile: Profile, server: _ResourceServer) -> None:
        result = _invoke(cli_runner, "api", "call", "/x", "-d", "{not json")

        assert result.exit_code == 2
        assert "not valid JSON" in result.output
        assert server.requests == []

    def test_missing_resource_url(self, cli_runner: CliRunner, isolated_config: Path) -> None:
        auth = AuthConfig(
            client_id="c",
            redirect_uri="http://127.0.0.1:8765/callback",
            authorization_endpoint="https://auth.example/authorize",
            token_endpoint="https://auth.example/token",
        )
        save_profile(Profile(name="bare", auth=auth))

        result = _invoke(cli_runner, "--profile", "bare", "api", "public")

        assert result.exit_code == 1
        assert "has no api_base_url" in result.output

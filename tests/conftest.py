"""Shared test fixtures for pkcesession.

Provides reusable fixtures for client configurations, in-memory storage,
isolated config environments, output state, and running CLI commands.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from pkcesession.auth.storage import Storage
from pkcesession.models import AuthConfig, Profile, RequestConfig
from pkcesession.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Client configuration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_config() -> AuthConfig:
    """A client registration with relative endpoints under a base URL."""
    return AuthConfig(
        client_id="demo-client-id",
        redirect_uri="http://127.0.0.1:8765/callback",
        base_url="http://auth.test",
        authorization_endpoint="/api/v1/oauth2/authorize",
        token_endpoint="/api/v1/oauth2/token",
        scope="read write admin",
    )


@pytest.fixture
def sample_profile(auth_config: AuthConfig) -> Profile:
    """A profile for the demo client with relaxed request settings."""
    return Profile(
        name="demo",
        auth=auth_config,
        api_base_url="http://api.test",
        request=RequestConfig(timeout=5, verify_ssl=False),
    )


@pytest.fixture
def storage() -> Storage:
    """Fresh in-memory session and durable stores."""
    return Storage.in_memory()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    and forces XDG path resolution so that tests never touch real user
    config. Clears PKCESESSION_PROFILE and changes the working directory
    to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("pkcesession.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("PKCESESSION_PROFILE", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Set up a quiet output manager for tests that don't care about output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()

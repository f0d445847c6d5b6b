"""Canonical Pydantic models shared across all pkcesession modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`AuthConfig`, :class:`RequestConfig`, :class:`OutputConfig`,
    :class:`GlobalConfig`, and :class:`Profile`.

**Protocol models** -- produced while running the authorization flow and
calling the resource server:
    :class:`TokenResponse`, :class:`TokenSet`, :class:`TokenInfo`,
    :class:`SessionState`, and :class:`ApiResponse`.

All models use Pydantic v2 with ``model_config`` where needed.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_SCOPE = "read"
"""Scope requested when the configuration does not name one."""

OUTPUT_FORMATS = ("auto", "json", "plain", "rich")


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


# --- Auth Config ---


class AuthConfig(BaseModel):
    """Client registration with a single authorization server.

    Immutable once constructed. ``redirect_uri`` must match what the
    authorization server has registered byte-for-byte, otherwise the code
    exchange is rejected server-side. Endpoints may be relative paths when
    ``base_url`` is set; they are resolved against it.

    Example::

        AuthConfig(
            client_id="demo-client-id",
            redirect_uri="http://127.0.0.1:8765/callback",
            base_url="http://localhost:8080",
            authorization_endpoint="/api/v1/oauth2/authorize",
            token_endpoint="/api/v1/oauth2/token",
            scope="read write admin",
        )
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1, description="OAuth2 client identifier")
    redirect_uri: str = Field(
        description="Absolute URL the authorization server redirects back to"
    )
    authorization_endpoint: str = Field(description="Authorization endpoint URL or path")
    token_endpoint: str = Field(description="Token endpoint URL or path")
    scope: Optional[str] = Field(
        default=None, description="Space-delimited scopes to request"
    )
    base_url: Optional[str] = Field(
        default=None, description="Base URL for relative endpoint paths"
    )

    @field_validator("redirect_uri")
    @classmethod
    def _redirect_uri_absolute(cls, value: str) -> str:
        if not _is_absolute_url(value):
            raise ValueError(f"redirect_uri must be an absolute URL, got {value!r}")
        return value

    @model_validator(mode="after")
    def _endpoints_resolvable(self) -> AuthConfig:
        if self.base_url is not None and not _is_absolute_url(self.base_url):
            raise ValueError(f"base_url must be an absolute URL, got {self.base_url!r}")
        for name in ("authorization_endpoint", "token_endpoint"):
            value = getattr(self, name)
            if not _is_absolute_url(value) and self.base_url is None:
                raise ValueError(
                    f"{name} {value!r} is relative; set base_url or use an absolute URL"
                )
        return self

    def _resolve(self, endpoint: str) -> str:
        if _is_absolute_url(endpoint) or self.base_url is None:
            return endpoint
        return urljoin(self.base_url, endpoint)

    @property
    def authorization_url(self) -> str:
        """The absolute authorization endpoint URL."""
        return self._resolve(self.authorization_endpoint)

    @property
    def token_url(self) -> str:
        """The absolute token endpoint URL."""
        return self._resolve(self.token_endpoint)

    @property
    def requested_scope(self) -> str:
        """The configured scope, or :data:`DEFAULT_SCOPE` when none is set."""
        return self.scope or DEFAULT_SCOPE


class RequestConfig(BaseModel):
    """HTTP request settings for the token endpoint and the resource server."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Output formatting preferences.

    ``format`` is the default used when neither ``--json`` nor ``--plain``
    is given on the command line.
    """

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )

    @field_validator("format")
    @classmethod
    def _known_format(cls, v: str) -> str:
        value = v.lower()
        if value not in OUTPUT_FORMATS:
            raise ValueError(f"format must be one of {', '.join(OUTPUT_FORMATS)}, got {v!r}")
        return value


class GlobalConfig(BaseModel):
    """Global settings stored in ``config.json`` under the config directory.

    Loaded by :func:`~pkcesession.config.load_global_config` and saved by
    :func:`~pkcesession.config.save_global_config`.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)


class Profile(BaseModel):
    """A named client registration stored under ``profiles/`` in the config directory.

    Each profile owns its own token and handshake storage, so several
    authorization servers (or several clients of one server) can be logged
    in side by side.

    See Also:
        :func:`~pkcesession.config.load_profile`: Deserialise a profile by name.
        :func:`~pkcesession.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    auth: AuthConfig
    api_base_url: Optional[str] = Field(
        default=None,
        description="Resource server base URL (defaults to auth.base_url)",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)

    @property
    def resource_base_url(self) -> Optional[str]:
        """Base URL used by :class:`~pkcesession.client.ApiClient`."""
        return self.api_base_url or self.auth.base_url


# --- Protocol Models ---


class TokenResponse(BaseModel):
    """JSON body returned by the token endpoint on success (RFC 6749 section 5.1).

    Extra members such as ``id_token`` are kept in ``model_extra``.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: Optional[float] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None


class TokenSet(BaseModel):
    """The tokens of the current session.

    ``expires_at`` is an aware UTC datetime, or ``None`` when the server
    did not report a lifetime.
    """

    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scope: Optional[str] = None

    def is_expired(self, now: datetime) -> bool:
        """Return ``True`` if the recorded expiry is not in the future of *now*."""
        if self.expires_at is None:
            return False
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now >= expires


class TokenInfo(BaseModel):
    """Display-only description of an access token.

    When the token decodes as a JWT, ``expires``, ``scope``, ``user`` and
    ``claims`` are filled in. Otherwise only ``token`` (a short prefix) and
    ``type`` are set.
    """

    token: str
    type: str = "Bearer"
    expires: Optional[str] = None
    scope: Optional[str] = None
    user: Optional[str] = None
    claims: Optional[dict[str, Any]] = None


class SessionState(str, enum.Enum):
    """States of the :class:`~pkcesession.auth.session.SessionManager`."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class ApiResponse(BaseModel):
    """Outcome of a resource-server call made by :class:`~pkcesession.client.ApiClient`.

    Network failures are reported here (status 503) rather than raised.
    """

    status: int
    message: Optional[str] = None
    data: Any = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Whether the status is in the 2xx range."""
        return 200 <= self.status < 300

"""Bearer-token client for the demo resource server.

:class:`ApiClient` wraps :class:`httpx.AsyncClient` and reports every outcome
as an :class:`~pkcesession.models.ApiResponse` instead of raising: HTTP error
statuses are returned as-is, a protected call without a token is answered
locally with 401, and a transport failure becomes a synthetic 503. Callers
decide what to show and whether to retry.

Example::

    async with ApiClient("http://localhost:8080", session.get_access_token()) as api:
        response = await api.call_protected()
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from pkcesession.models import ApiResponse

logger = logging.getLogger(__name__)

PUBLIC_ENDPOINT = "/api/v1/public"
PROTECTED_ENDPOINT = "/api/v1/protected"
ADMIN_ENDPOINT = "/api/v1/admin"


class ApiClient:
    """Asynchronous client that attaches ``Authorization: Bearer`` when asked.

    Must be used as an async context manager unless an *http_client* is
    supplied, in which case the caller owns its lifetime.

    Args:
        base_url: Resource server base URL.
        access_token: Initial bearer token, or ``None``.
        timeout: Request timeout in seconds.
        verify: Verify TLS certificates.
        http_client: Optional pre-built :class:`httpx.AsyncClient`.
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        verify: bool = True,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._timeout = timeout
        self._verify = verify
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> ApiClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, verify=self._verify)
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def set_access_token(self, token: Optional[str]) -> None:
        """Replace the bearer token used for authenticated calls."""
        self._access_token = token

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def call_public(self) -> ApiResponse:
        """``GET /api/v1/public`` without credentials."""
        return await self.call(PUBLIC_ENDPOINT)

    async def call_protected(self) -> ApiResponse:
        """``GET /api/v1/protected`` with the bearer token."""
        return await self._call_authenticated(PROTECTED_ENDPOINT)

    async def call_admin(self) -> ApiResponse:
        """``GET /api/v1/admin`` with the bearer token (requires the admin role server-side)."""
        return await self._call_authenticated(ADMIN_ENDPOINT)

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        requires_auth: bool = False,
    ) -> ApiResponse:
        """Make an arbitrary request against the resource server.

        Args:
            endpoint: Path appended to the base URL.
            method: HTTP method.
            body: JSON-serialisable request body, or ``None``.
            requires_auth: Attach the bearer token when one is held.

        Returns:
            The :class:`~pkcesession.models.ApiResponse`. Never raises for
            HTTP or network failures.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        headers = {"Content-Type": "application/json"}
        if requires_auth and self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"

        url = f"{self._base_url}{endpoint}"
        content = json.dumps(body) if body is not None else None

        try:
            response = await self._client.request(
                method.upper(), url, headers=headers, content=content
            )
        except httpx.TransportError as exc:
            logger.debug("Request to %s failed: %s", url, exc)
            return ApiResponse(
                status=503,
                message="Service unavailable (network error)",
                error=str(exc) or type(exc).__name__,
            )

        return ApiResponse(
            status=response.status_code,
            message=response.reason_phrase,
            data=_extract_data(response),
        )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _call_authenticated(self, endpoint: str) -> ApiResponse:
        if not self._access_token:
            return ApiResponse(
                status=401,
                message="Authentication required",
                error="No access token available",
            )
        return await self.call(endpoint, requires_auth=True)


def _extract_data(response: httpx.Response) -> Any:
    """Decode a JSON body, fall back to text, ``None`` for an empty body."""
    if not response.content:
        return None
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            pass
    return response.text

"""API commands -- call the resource server with the session's token.

Provides the ``pkcesession api`` sub-command group. The response (status,
message, body or error) is printed to stdout; the exit code reflects the
outcome so scripts can branch on it: ``0`` for 2xx, ``3`` for 401/403,
``6`` when the server could not be reached, ``1`` otherwise.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional

import typer

from pkcesession.client import ApiClient
from pkcesession.commands import build_session, fail, profile_from_context
from pkcesession.exceptions import ConfigError, PkceSessionError
from pkcesession.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
)
from pkcesession.models import ApiResponse
from pkcesession.output import debug, error, format_response, info, suggest


api_app = typer.Typer(no_args_is_help=True)


def _run(ctx: typer.Context, call: Callable[[ApiClient], Awaitable[ApiResponse]]) -> None:
    try:
        profile = profile_from_context(ctx)
        base_url = profile.resource_base_url
        if base_url is None:
            raise ConfigError(
                f'Profile "{profile.name}" has no api_base_url or auth.base_url'
            )
        session = build_session(profile)
    except PkceSessionError as exc:
        fail(exc)

    debug(f"Resource server: {base_url} (token held: {session.is_authenticated()})")

    async def _call() -> ApiResponse:
        async with ApiClient(
            base_url,
            session.get_access_token(),
            timeout=profile.request.timeout,
            verify=profile.request.verify_ssl,
        ) as client:
            return await call(client)

    response = asyncio.run(_call())
    _report(response)


def _report(response: ApiResponse) -> None:
    info(f"HTTP {response.status} {response.message or ''}".rstrip())
    format_response(response.model_dump(exclude_none=True))
    if response.ok:
        return
    if response.status in (401, 403):
        suggest("Log in: pkcesession auth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    if response.status == 503 and response.error is not None:
        raise typer.Exit(code=EXIT_CONNECTION_ERROR)
    raise typer.Exit(code=EXIT_GENERIC_FAILURE)


@api_app.command("public")
def api_public(ctx: typer.Context) -> None:
    """Call ``GET /api/v1/public`` (no token needed)."""
    _run(ctx, lambda client: client.call_public())


@api_app.command("protected")
def api_protected(ctx: typer.Context) -> None:
    """Call ``GET /api/v1/protected`` with the access token."""
    _run(ctx, lambda client: client.call_protected())


@api_app.command("admin")
def api_admin(ctx: typer.Context) -> None:
    """Call ``GET /api/v1/admin`` with the access token."""
    _run(ctx, lambda client: client.call_admin())


@api_app.command("call")
def api_call(
    ctx: typer.Context,
    endpoint: str = typer.Argument(help="Path on the resource server, e.g. /api/v1/items."),
    method: str = typer.Option("GET", "--method", "-X", help="HTTP method."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="JSON request body."),
    with_auth: bool = typer.Option(
        False, "--auth", help="Send the access token as a bearer token."
    ),
) -> None:
    """Make an arbitrary request against the resource server.

    Example::

        pkcesession api call /api/v1/items -X POST -d '{"name": "x"}' --auth
    """
    body: Any = None
    if data is not None:
        try:
            body = json.loads(data)
        except json.JSONDecodeError as exc:
            error(f"--data is not valid JSON: {exc}")
            raise typer.Exit(code=2) from None

    _run(
        ctx,
        lambda client: client.call(endpoint, method=method, body=body, requires_auth=with_auth),
    )

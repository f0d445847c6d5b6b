"""Auth commands -- run the authorization code flow and manage the session.

Provides the ``pkcesession auth`` sub-command group. A login is split in
two halves, mirroring the browser redirect:

* ``auth login`` stores a fresh handshake and opens the authorization URL.
  When the redirect URI is a loopback address it also waits for the
  redirect and finishes the login in the same invocation.
* ``auth callback URL`` finishes a login from a pasted redirect URL,
  possibly in a later invocation.

Typical workflow::

    pkcesession auth login          # browser opens, redirect is captured
    pkcesession auth status         # who am I, when does it expire
    pkcesession auth token          # raw access token on stdout
    pkcesession auth logout
"""

from __future__ import annotations

import asyncio
import webbrowser
from typing import Optional

import typer

from pkcesession.auth.callback import DEFAULT_TIMEOUT, CallbackListener, is_loopback_uri
from pkcesession.commands import build_session, fail, profile_from_context
from pkcesession.exceptions import (
    AuthError,
    MissingVerifierError,
    PkceSessionError,
    StateMismatchError,
)
from pkcesession.output import format_response, info, print_data, success, suggest, warning


auth_app = typer.Typer(no_args_is_help=True)


def _hint_for(exc: PkceSessionError) -> Optional[str]:
    if isinstance(exc, StateMismatchError):
        return (
            "The redirect does not belong to the login started here. "
            "Do not retry with this URL; start a new login."
        )
    if isinstance(exc, MissingVerifierError):
        return "Retry: pkcesession auth login"
    return None


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    listen: Optional[bool] = typer.Option(
        None,
        "--listen/--no-listen",
        help="Wait for the redirect on the loopback redirect URI "
        "(default: when the redirect URI is loopback).",
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the authorization URL instead of opening it."
    ),
    timeout: float = typer.Option(
        DEFAULT_TIMEOUT, "--timeout", help="Seconds to wait for the redirect."
    ),
) -> None:
    """Start the OAuth2 authorization code flow with PKCE.

    Any login already in progress for the profile is replaced.

    Example::

        pkcesession auth login
        pkcesession auth login --no-listen --no-browser
    """
    try:
        profile = profile_from_context(ctx)
        redirect_uri = profile.auth.redirect_uri
        if listen is None:
            listen = is_loopback_uri(redirect_uri)

        navigator = _print_url if no_browser else webbrowser.open
        session = build_session(profile, navigator=navigator)

        if not listen:
            session.authorize()
            info("Authorization started. After approving, copy the URL you are redirected to.")
            suggest("Finish with: pkcesession auth callback '<redirect URL>'")
            return

        with CallbackListener(redirect_uri) as listener:
            session.authorize()
            info(f"Waiting for the redirect on {redirect_uri} ...")
            callback_url = listener.wait(timeout=timeout)

        asyncio.run(session.handle_callback(callback_url))
    except PkceSessionError as exc:
        fail(exc, _hint_for(exc))

    success(f'Logged in to "{profile.name}".')


def _print_url(url: str) -> bool:
    info("Open this URL in your browser to continue:")
    print_data(url)
    return True


@auth_app.command("callback")
def auth_callback(
    ctx: typer.Context,
    callback_url: str = typer.Argument(
        help="The full URL the authorization server redirected to."
    ),
) -> None:
    """Finish a login from the redirect URL.

    Example::

        pkcesession auth callback "http://127.0.0.1:8765/callback?code=...&state=..."
    """
    try:
        profile = profile_from_context(ctx)
        session = build_session(profile)
        if not session.is_callback(callback_url):
            warning(
                f"URL does not look like a redirect to {profile.auth.redirect_uri}"
            )
        asyncio.run(session.handle_callback(callback_url))
    except PkceSessionError as exc:
        fail(exc, _hint_for(exc))

    success(f'Logged in to "{profile.name}".')


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show whether the profile is logged in, with the decoded token details.

    The details come from the token's claims and are not verified.
    """
    try:
        profile = profile_from_context(ctx)
        session = build_session(profile)
    except PkceSessionError as exc:
        fail(exc)

    token_info = session.get_token_info()
    tokens = session.get_token_set()
    if token_info is None or tokens is None:
        info(f'Profile "{profile.name}": not authenticated.')
        suggest("Log in: pkcesession auth login")
        return

    data = token_info.model_dump(exclude_none=True)
    data["state"] = session.state.value
    data["stored_expiry"] = tokens.expires_at.isoformat() if tokens.expires_at else None
    data["has_refresh_token"] = tokens.refresh_token is not None
    info(f'Profile "{profile.name}": authenticated.')
    format_response(data)


@auth_app.command("token")
def auth_token(ctx: typer.Context) -> None:
    """Print the raw access token to stdout.

    Example::

        curl -H "Authorization: Bearer $(pkcesession auth token)" ...
    """
    try:
        profile = profile_from_context(ctx)
        session = build_session(profile)
    except PkceSessionError as exc:
        fail(exc)

    token = session.get_access_token()
    if token is None:
        fail(
            AuthError(f'Profile "{profile.name}" is not authenticated'),
            "Log in: pkcesession auth login",
        )
    print_data(token)


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Forget the profile's tokens."""
    try:
        profile = profile_from_context(ctx)
        session = build_session(profile)
    except PkceSessionError as exc:
        fail(exc)

    session.logout()
    success(f'Logged out of "{profile.name}".')

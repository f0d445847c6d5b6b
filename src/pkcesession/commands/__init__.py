"""Built-in CLI sub-commands for pkcesession.

This package groups the Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~pkcesession.commands.auth` -- log in, handle the redirect, show
  and clear the session.
* :mod:`~pkcesession.commands.config` -- manage client profiles.
* :mod:`~pkcesession.commands.api` -- call the resource server with the
  session's bearer token.

Helpers shared by the command modules live here.
"""

from __future__ import annotations

from typing import NoReturn, Optional

import typer

from pkcesession.auth.session import SessionManager
from pkcesession.auth.storage import Storage
from pkcesession.exceptions import PkceSessionError
from pkcesession.models import Profile
from pkcesession.output import error, suggest


def profile_from_context(ctx: typer.Context) -> Profile:
    """Resolve the active profile from ``--profile`` and the config precedence chain.

    Raises:
        ConfigError: If no profile can be resolved or loaded.
    """
    from pkcesession.config import resolve_profile

    obj = ctx.obj or {}
    cli_profile: Optional[str] = obj.get("profile")
    return resolve_profile(cli_profile)


def build_session(profile: Profile, **kwargs: object) -> SessionManager:
    """Create a :class:`SessionManager` backed by the profile's file storage."""
    return SessionManager(
        profile.auth,
        Storage.for_profile(profile.name),
        timeout=profile.request.timeout,
        verify=profile.request.verify_ssl,
        **kwargs,  # type: ignore[arg-type]
    )


def fail(exc: PkceSessionError, hint: Optional[str] = None) -> NoReturn:
    """Report *exc* on stderr and exit with its exit code."""
    error(str(exc))
    if hint:
        suggest(hint)
    raise typer.Exit(code=exc.exit_code)

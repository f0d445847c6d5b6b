"""Config commands -- create, inspect, and remove client profiles.

Provides the ``pkcesession config`` sub-command group. A profile records one
client registration with an authorization server (client id, redirect URI,
endpoints, scope) plus where the resource server lives. Profiles are stored
as JSON under the config directory; tokens live separately under the data
directory.
"""

from __future__ import annotations

from typing import Optional

import typer
from pydantic import ValidationError

from pkcesession.exceptions import ConfigError, PkceSessionError
from pkcesession.output import error, format_response, info, print_table, success, suggest


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("init")
def config_init(
    name: str = typer.Argument(help="Profile name."),
    client_id: str = typer.Option(..., "--client-id", help="OAuth2 client identifier."),
    redirect_uri: str = typer.Option(
        ..., "--redirect-uri", help="Registered redirect URI (must match exactly)."
    ),
    authorization_endpoint: str = typer.Option(
        ..., "--authorization-endpoint", help="Authorization endpoint URL or path."
    ),
    token_endpoint: str = typer.Option(
        ..., "--token-endpoint", help="Token endpoint URL or path."
    ),
    scope: Optional[str] = typer.Option(
        None, "--scope", help="Space-delimited scopes (default: read)."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Base URL for relative endpoint paths."
    ),
    api_base_url: Optional[str] = typer.Option(
        None, "--api-base-url", help="Resource server base URL (default: --base-url)."
    ),
    default: bool = typer.Option(
        False, "--default", help="Make this the default profile."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing profile."
    ),
) -> None:
    """Create a profile for a client registration.

    Example::

        pkcesession config init demo \\
            --client-id demo-client-id \\
            --redirect-uri http://127.0.0.1:8765/callback \\
            --base-url http://localhost:8080 \\
            --authorization-endpoint /api/v1/oauth2/authorize \\
            --token-endpoint /api/v1/oauth2/token \\
            --scope "read write admin"
    """
    from pkcesession.config import (
        load_global_config,
        profile_exists,
        save_global_config,
        save_profile,
    )
    from pkcesession.models import AuthConfig, Profile

    if profile_exists(name) and not force:
        error(f'Profile "{name}" already exists.')
        suggest("Use --force to overwrite it.")
        raise typer.Exit(code=2)

    try:
        auth = AuthConfig(
            client_id=client_id,
            redirect_uri=redirect_uri,
            authorization_endpoint=authorization_endpoint,
            token_endpoint=token_endpoint,
            scope=scope,
            base_url=base_url,
        )
        profile = Profile(name=name, auth=auth, api_base_url=api_base_url)
    except ValidationError as exc:
        error(f"Invalid profile settings: {exc}")
        raise typer.Exit(code=2) from None

    save_profile(profile)
    if default:
        global_cfg = load_global_config()
        global_cfg.default_profile = name
        save_global_config(global_cfg)

    success(f'Profile "{name}" saved.')
    suggest(f"Log in: pkcesession --profile {name} auth login")


@config_app.command("show")
def config_show(
    name: Optional[str] = typer.Argument(None, help="Profile name (default: active profile)."),
) -> None:
    """Show a profile's settings."""
    from pkcesession.config import get_config_dir, resolve_profile

    try:
        profile = resolve_profile(name)
    except PkceSessionError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    info(f"Config directory: {get_config_dir()}")
    data = profile.model_dump(mode="json")
    data["auth"]["authorization_url"] = profile.auth.authorization_url
    data["auth"]["token_url"] = profile.auth.token_url
    format_response(data)


@config_app.command("list")
def config_list() -> None:
    """List configured profiles."""
    from pkcesession.config import list_profiles, load_global_config, load_profile

    profiles = list_profiles()
    if not profiles:
        info("No profiles configured.")
        suggest("Create one: pkcesession config init <name> --client-id ...")
        return

    default_name = load_global_config().default_profile
    rows: list[list[str]] = []
    for name in profiles:
        marker = "*" if name == default_name else ""
        try:
            profile = load_profile(name)
        except ConfigError:
            rows.append([name, marker, "error", "-"])
            continue
        rows.append([name, marker, profile.auth.client_id, profile.auth.authorization_url])

    print_table(
        ["Profile", "Default", "Client ID", "Authorization URL"],
        rows,
        title="Configured Profiles",
    )


@config_app.command("use")
def config_use(name: str = typer.Argument(help="Profile to make the default.")) -> None:
    """Set the default profile."""
    from pkcesession.config import load_global_config, profile_exists, save_global_config

    if not profile_exists(name):
        error(f'Profile "{name}" not found.')
        raise typer.Exit(code=2)

    global_cfg = load_global_config()
    global_cfg.default_profile = name
    save_global_config(global_cfg)
    success(f'Default profile set to "{name}".')


@config_app.command("delete")
def config_delete(
    name: str = typer.Argument(help="Profile to delete."),
) -> None:
    """Delete a profile and its stored tokens."""
    from pkcesession.auth.storage import HANDSHAKE_KEYS, TOKEN_KEYS, Storage
    from pkcesession.config import delete_profile

    try:
        delete_profile(name)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=2) from None

    storage = Storage.for_profile(name)
    storage.durable.update({key: None for key in TOKEN_KEYS})
    storage.session.update({key: None for key in HANDSHAKE_KEYS})
    success(f'Profile "{name}" deleted.')

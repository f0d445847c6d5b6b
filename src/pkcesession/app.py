"""Typer application factory and CLI entry point for pkcesession.

This module wires together the top-level Typer application and registers the
built-in sub-commands (``auth``, ``config``, ``api``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`pkcesession.config`: Profile and global configuration resolution.
    :mod:`pkcesession.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from pkcesession import __version__
from pkcesession.commands.api import api_app
from pkcesession.commands.auth import auth_app
from pkcesession.commands.config import config_app
from pkcesession.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="pkcesession",
    help="OAuth 2.0 authorization code login with PKCE, from the command line.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.add_typer(auth_app, name="auth", help="Log in, finish the redirect, inspect or clear the session.")
app.add_typer(config_app, name="config", help="Client profile management.")
app.add_typer(api_app, name="api", help="Call the resource server with the access token.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"pkcesession {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route library log records to stderr.

    ``--verbose`` shows DEBUG records; otherwise only warnings and above.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    # httpx logs every request at INFO/DEBUG; keep it out of the way.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Profile name to use."
    ),
    json_output: bool = typer.Option(
        False, "--json", help="JSON output format."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Plain text output."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~pkcesession.output.OutputManager` and
    logging from CLI flags, and stores ``profile`` in the Typer context so
    that sub-commands can read it via ``ctx.obj``.
    """
    from pkcesession.commands import fail
    from pkcesession.config import load_global_config
    from pkcesession.exceptions import ConfigError
    from pkcesession.output import OutputFormat, OutputManager, set_output

    def _install(fmt: OutputFormat) -> None:
        set_output(
            OutputManager(
                format=fmt,
                no_color=no_color,
                quiet=quiet,
                verbose=verbose,
            )
        )

    configure_logging(verbose)

    if json_output:
        _install(OutputFormat.JSON)
    elif plain_output:
        _install(OutputFormat.PLAIN)
    else:
        # config.json supplies the default when no format flag is given.
        try:
            configured = load_global_config().output.format
        except ConfigError as exc:
            _install(OutputFormat.AUTO)
            fail(exc)
        _install(OutputFormat(configured))

    ctx.ensure_object(dict)
    ctx.obj["profile"] = profile
    ctx.obj["verbose"] = verbose


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from pkcesession.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``pkcesession`` console script.

    Unhandled :class:`~pkcesession.exceptions.PkceSessionError` instances
    cause a clean exit with the error's ``exit_code``. All other exceptions
    produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from pkcesession.exceptions import PkceSessionError
        from pkcesession.output import error

        if isinstance(exc, PkceSessionError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)

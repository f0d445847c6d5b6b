"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~pkcesession.exceptions.PkceSessionError` subclass.
Shell wrappers can inspect the exit code to tell a rejected login apart from
a possible CSRF attempt or an unreachable server without parsing stderr.

Example::

    $ pkcesession auth callback "http://127.0.0.1:8765/callback?code=x&state=y"
    $ echo $?
    8   # EXIT_STATE_MISMATCH -- the state did not match the stored handshake
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments, or the callback URL was malformed."""

EXIT_AUTH_FAILURE = 3
"""The login was denied, lost its handshake state, or the code was rejected."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_STATE_MISMATCH = 8
"""The callback ``state`` did not match the stored handshake (possible CSRF)."""

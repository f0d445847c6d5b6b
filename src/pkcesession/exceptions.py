"""Exception hierarchy for pkcesession.

All exceptions inherit from :class:`PkceSessionError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`pkcesession.exit_codes`.
The top-level error handler in :func:`pkcesession.app.main` catches
``PkceSessionError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

None of these errors is retried automatically; retrying is left to the
caller.

Subclass hierarchy::

    PkceSessionError (exit 1)
    +-- InvalidUsageError            (exit 2)
    |   +-- MalformedCallbackError   (exit 2)
    +-- AuthError                    (exit 3)
    |   +-- AuthorizationDeniedError (exit 3)
    |   +-- MissingVerifierError     (exit 3)
    |   +-- TokenExchangeError       (exit 3)
    |   +-- CallbackTimeoutError     (exit 3)
    |   +-- StateMismatchError       (exit 8)
    +-- ServiceUnavailableError      (exit 6)
    +-- CryptoUnavailableError       (exit 1)
    +-- ConfigError                  (exit 1)
"""

from __future__ import annotations

from pkcesession.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STATE_MISMATCH,
)


class PkceSessionError(Exception):
    """Base exception for all pkcesession errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`pkcesession.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(PkceSessionError):
    """Raised for invalid CLI arguments or unusable settings (e.g. a non-loopback listener)."""

    exit_code = EXIT_INVALID_USAGE


class MalformedCallbackError(InvalidUsageError):
    """Raised when the redirect-back carries no ``code`` or no ``state``."""


class AuthError(PkceSessionError):
    """Raised when the authorization handshake or the code exchange fails."""

    exit_code = EXIT_AUTH_FAILURE


class AuthorizationDeniedError(AuthError):
    """The authorization server refused, or the user declined, the request.

    Args:
        error: The ``error`` code from the callback (e.g. ``access_denied``).
        description: Optional ``error_description`` from the callback.
    """

    def __init__(self, error: str, description: str | None = None):
        message = f"Authorization denied: {error}"
        if description:
            message += f" - {description}"
        super().__init__(message)
        self.error = error
        self.description = description


class StateMismatchError(AuthError):
    """The callback ``state`` does not match the stored handshake state.

    This is the CSRF defence. It is surfaced with its own exit code and must
    never be retried automatically.
    """

    exit_code = EXIT_STATE_MISMATCH


class MissingVerifierError(AuthError):
    """The stored ``code_verifier`` is gone, e.g. storage was cleared mid-flow."""


class TokenExchangeError(AuthError):
    """The token endpoint rejected the authorization code.

    Args:
        status: HTTP status code returned by the token endpoint.
        body: Raw response body, kept for diagnostics.
        message: Optional override for the default message.
    """

    def __init__(self, status: int, body: str, message: str | None = None):
        super().__init__(message or f"Token exchange failed: {status} - {body}")
        self.status = status
        self.body = body


class CallbackTimeoutError(AuthError):
    """No redirect reached the loopback listener before the timeout."""


class ServiceUnavailableError(PkceSessionError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Safe to retry manually.
    """

    exit_code = EXIT_CONNECTION_ERROR


class CryptoUnavailableError(PkceSessionError):
    """The SHA-256 digest primitive is not available; a login cannot start."""


class ConfigError(PkceSessionError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad endpoints)."""

    exit_code = EXIT_GENERIC_FAILURE

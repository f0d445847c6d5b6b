"""PKCE challenge generation (:rfc:`7636`).

:func:`generate_verifier` produces the random values used for both the
anti-CSRF ``state`` and the PKCE ``code_verifier``; :func:`derive_challenge`
turns a verifier into its ``S256`` ``code_challenge``.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from pkcesession.exceptions import CryptoUnavailableError

STATE_LENGTH = 32
VERIFIER_LENGTH = 128

# RFC 7636 section 4.1: 43-128 characters
MIN_VERIFIER_LENGTH = 43
MAX_VERIFIER_LENGTH = 128


def generate_verifier(length: int) -> str:
    """Return *length* random lowercase hex characters.

    ``length`` bytes are drawn from :func:`secrets.token_bytes`, hex-encoded
    and truncated, so every character carries four bits of entropy.

    Args:
        length: Number of characters to return. Use at least 32 for a
            ``state`` and 43-128 for a ``code_verifier``.

    Raises:
        ValueError: If *length* is negative.
    """
    if length < 0:
        raise ValueError(f"length must be non-negative, got {length}")
    return secrets.token_bytes(length).hex()[:length]


def derive_challenge(verifier: str) -> str:
    """Derive the ``S256`` code challenge for *verifier*.

    ``BASE64URL(SHA256(UTF8(verifier)))`` with the ``=`` padding stripped.

    Raises:
        CryptoUnavailableError: If SHA-256 cannot be obtained from
            :mod:`hashlib` on this interpreter.
    """
    try:
        hasher = hashlib.new("sha256")
    except ValueError as exc:
        raise CryptoUnavailableError(f"SHA-256 digest is unavailable: {exc}") from exc
    hasher.update(verifier.encode("utf-8"))
    return base64.urlsafe_b64encode(hasher.digest()).rstrip(b"=").decode("ascii")

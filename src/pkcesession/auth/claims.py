"""Display-only decoding of access-token claims.

The access token is treated as a JWT and its payload is decoded *without*
verifying the signature. The result is for showing the user who they are
logged in as; it is never a trust boundary. Hosts that do not want this can
pass ``token_describer=None`` (or their own describer) to
:class:`~pkcesession.auth.session.SessionManager`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import jwt

from pkcesession.models import TokenInfo

_PREFIX_LENGTH = 20
_UNKNOWN = "Unknown"


def token_prefix(token: str) -> str:
    """Return the first characters of *token* followed by ``...``."""
    return token[:_PREFIX_LENGTH] + "..."


def degraded_info(token: str) -> TokenInfo:
    """Descriptor used when the token cannot be decoded."""
    return TokenInfo(token=token_prefix(token), type="Bearer")


def decode_claims(token: str) -> dict[str, Any]:
    """Decode the JWT payload of *token* without signature verification.

    Raises:
        jwt.PyJWTError: If the token is not a three-segment JWT with a JSON
            object payload.
    """
    return jwt.decode(token, options={"verify_signature": False})


def describe_token(token: str) -> TokenInfo:
    """Build a :class:`~pkcesession.models.TokenInfo` from the token's claims.

    Raises:
        jwt.PyJWTError: If the token cannot be decoded. The session manager
            turns this into :func:`degraded_info`.
    """
    claims = decode_claims(token)

    expires = _UNKNOWN
    exp = claims.get("exp")
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        try:
            expires = datetime.fromtimestamp(exp, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            pass

    scope = claims.get("scope")
    if isinstance(scope, list):
        scope = " ".join(str(s) for s in scope)

    user = claims.get("sub") or claims.get("username")

    return TokenInfo(
        token=token_prefix(token),
        type="Bearer",
        expires=expires,
        scope=str(scope) if scope else _UNKNOWN,
        user=str(user) if user else _UNKNOWN,
        claims=claims,
    )

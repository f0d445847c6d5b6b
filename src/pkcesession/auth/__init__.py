"""OAuth2 Authorization Code + PKCE client session.

The main entry points are:

- :class:`SessionManager` -- starts a login, handles the redirect-back,
  exchanges the code, and holds the resulting tokens.
- :class:`Storage` -- the session-scoped and durable key-value stores the
  manager persists into (:class:`MemoryStore`, :class:`FileStore`).
- :func:`generate_verifier` / :func:`derive_challenge` -- PKCE helpers.
- :class:`CallbackListener` -- loopback receiver for the redirect.

Typical usage::

    from pkcesession.auth import SessionManager, Storage

    session = SessionManager(profile.auth, Storage.for_profile(profile.name))
    if not session.is_authenticated():
        session.authorize()
"""

from pkcesession.auth.callback import CallbackListener, is_loopback_uri
from pkcesession.auth.claims import describe_token
from pkcesession.auth.pkce import derive_challenge, generate_verifier
from pkcesession.auth.session import SessionManager
from pkcesession.auth.storage import (
    FileStore,
    KeyValueStore,
    MemoryStore,
    Storage,
    StorageScope,
)

__all__ = [
    "CallbackListener",
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
    "SessionManager",
    "Storage",
    "StorageScope",
    "derive_challenge",
    "describe_token",
    "generate_verifier",
    "is_loopback_uri",
]

"""HTTP client for the resource server protected by the session's access token.

Classes:
    :class:`ApiClient` -- async client backed by :class:`httpx.AsyncClient`.
"""

from pkcesession.client.api_client import ApiClient

__all__ = ["ApiClient"]

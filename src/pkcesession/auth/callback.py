"""Loopback listener that receives the authorization redirect.

A command-line host has no page for the authorization server to redirect
to, so when the registered ``redirect_uri`` points at the local machine
(``127.0.0.1``, ``localhost`` or ``::1``) :class:`CallbackListener` binds
that host and port, answers the browser with a short HTML page, and hands
the full redirect URL back for
:meth:`~pkcesession.auth.session.SessionManager.handle_callback`.

The listener must be bound *before* the browser is sent to the
authorization endpoint, otherwise a fast redirect can arrive first::

    with CallbackListener(config.redirect_uri) as listener:
        session.authorize()
        url = listener.wait(timeout=120)
    await session.handle_callback(url)
"""

from __future__ import annotations

import html
import logging
import socket
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from pkcesession.exceptions import CallbackTimeoutError, InvalidUsageError

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = frozenset({"127.0.0.1", "localhost", "::1"})
DEFAULT_TIMEOUT = 120.0


def is_loopback_uri(uri: str) -> bool:
    """Whether *uri* is an ``http`` URL on a loopback host with an explicit port."""
    parsed = urlparse(uri)
    return parsed.scheme == "http" and parsed.hostname in LOOPBACK_HOSTS and parsed.port is not None


class _IPv6HTTPServer(HTTPServer):
    address_family = socket.AF_INET6


class CallbackListener:
    """Single-use HTTP server bound to a loopback ``redirect_uri``.

    Args:
        redirect_uri: The registered redirect URI, e.g.
            ``http://127.0.0.1:8765/callback``.

    Raises:
        InvalidUsageError: If *redirect_uri* is not a loopback ``http`` URL
            with an explicit port.
    """

    def __init__(self, redirect_uri: str) -> None:
        if not is_loopback_uri(redirect_uri):
            raise InvalidUsageError(
                f"Cannot listen on redirect URI {redirect_uri!r}: only http URLs on "
                "127.0.0.1, localhost or ::1 with an explicit port are supported"
            )
        parsed = urlparse(redirect_uri)
        self._redirect_uri = redirect_uri
        self._host = parsed.hostname or "127.0.0.1"
        self._port = parsed.port or 0
        self._path = parsed.path or "/"
        self._server: Optional[HTTPServer] = None
        self._received: Optional[str] = None

    def __enter__(self) -> CallbackListener:
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def start(self) -> None:
        """Bind the listening socket."""
        listener = self
        origin = f"http://{urlparse(self._redirect_uri).netloc}"

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                parsed = urlparse(self.path)
                if parsed.path != listener._path:
                    self.send_response(404)
                    self.end_headers()
                    return

                params = parse_qs(parsed.query)
                if "error" in params:
                    body = f"Authorization failed: {params['error'][0]}"
                else:
                    body = (
                        "Authorization received. You can close this window "
                        "and return to the terminal."
                    )
                listener._received = origin + self.path

                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(
                    f"<html><body><h2>{html.escape(body)}</h2></body></html>".encode("utf-8")
                )

            def log_message(self, format: str, *args: Any) -> None:
                logger.debug("callback listener: " + format, *args)

        server_cls = _IPv6HTTPServer if ":" in self._host else HTTPServer
        try:
            self._server = server_cls((self._host, self._port), CallbackHandler)
        except OSError as exc:
            raise InvalidUsageError(
                f"Cannot listen on {self._host}:{self._port} for the redirect: {exc.strerror or exc}. "
                "Free the port, or finish the login with 'auth login --no-listen' "
                "and 'auth callback'."
            ) from exc
        logger.debug("Listening for redirect on %s", self._redirect_uri)

    def wait(self, timeout: float = DEFAULT_TIMEOUT) -> str:
        """Serve requests until the redirect arrives and return its full URL.

        Requests to other paths (a browser's ``/favicon.ico``) are answered
        with 404 and ignored.

        Raises:
            CallbackTimeoutError: If nothing arrives within *timeout* seconds.
        """
        if self._server is None:
            self.start()
        assert self._server is not None

        deadline = time.monotonic() + timeout
        while self._received is None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CallbackTimeoutError(
                    f"No authorization redirect received within {timeout:.0f} seconds"
                )
            self._server.timeout = remaining
            self._server.handle_request()
        return self._received

    def close(self) -> None:
        """Release the listening socket."""
        if self._server is not None:
            self._server.server_close()
            self._server = None

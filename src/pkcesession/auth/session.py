"""OAuth2 Authorization Code + PKCE session manager.

:class:`SessionManager` owns the whole client-side lifecycle of a login
against one authorization server (:rfc:`6749`, :rfc:`7636`):

1. :meth:`~SessionManager.authorize` stores a fresh ``state`` and
   ``code_verifier`` in session storage and navigates to the authorization
   endpoint. Nothing comes back from this call; the flow resumes when the
   host later sees the redirect.
2. :meth:`~SessionManager.handle_callback` validates the redirect-back
   (error, presence of ``code``/``state``, the CSRF ``state`` check, the
   stored verifier), consumes the handshake, and exchanges the code.
3. :meth:`~SessionManager.exchange_code_for_token` posts the code and
   verifier to the token endpoint and installs the resulting tokens.

Tokens are loaded from durable storage on construction, dropped when their
recorded expiry has passed, and erased by :meth:`~SessionManager.logout`.
There is no automatic refresh.

Example::

    storage = Storage.for_profile("demo")
    session = SessionManager(config, storage)
    session.authorize()                      # opens the browser
    ...
    await session.handle_callback(redirect_url)
    session.get_access_token()
"""

from __future__ import annotations

import logging
import webbrowser
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlencode, urlparse

import httpx

from pkcesession.auth.claims import degraded_info, describe_token, token_prefix
from pkcesession.auth.pkce import (
    STATE_LENGTH,
    VERIFIER_LENGTH,
    derive_challenge,
    generate_verifier,
)
from pkcesession.auth.storage import (
    ACCESS_TOKEN_KEY,
    CODE_VERIFIER_KEY,
    EXPIRES_AT_KEY,
    HANDSHAKE_KEYS,
    REFRESH_TOKEN_KEY,
    STATE_KEY,
    TOKEN_KEYS,
    Storage,
)
from pkcesession.exceptions import (
    AuthorizationDeniedError,
    MalformedCallbackError,
    MissingVerifierError,
    ServiceUnavailableError,
    StateMismatchError,
    TokenExchangeError,
)
from pkcesession.models import AuthConfig, SessionState, TokenInfo, TokenResponse, TokenSet

logger = logging.getLogger(__name__)

Navigator = Callable[[str], Any]
Clock = Callable[[], datetime]
TokenDescriber = Callable[[str], TokenInfo]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _from_epoch_ms(raw: str) -> datetime:
    return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)


def _first(params: dict[str, list[str]], name: str) -> Optional[str]:
    values = params.get(name)
    return values[0] if values else None


def _query_of(callback: str) -> str:
    """Return the query string of a full or relative callback URL, or of a bare query."""
    if "?" in callback:
        return urlparse(callback).query
    parsed = urlparse(callback)
    if parsed.scheme or parsed.netloc or parsed.path.startswith("/"):
        return ""
    return callback


class SessionManager:
    """Drive the authorization code flow and hold the resulting session.

    Args:
        config: The client registration.
        storage: Session (handshake) and durable (token) stores.
        http_client: Optional :class:`httpx.AsyncClient` used for the token
            request. When ``None`` a short-lived client is created per
            exchange using *timeout* and *verify*.
        navigator: Called with the authorization URL by :meth:`authorize`.
            Defaults to :func:`webbrowser.open`.
        clock: Returns the current aware UTC time. Injected by tests.
        token_describer: Builds the display view of the access token for
            :meth:`get_token_info`. ``None`` disables claim decoding.
        timeout: Token request timeout in seconds.
        verify: Verify TLS certificates of the token endpoint.
    """

    def __init__(
        self,
        config: AuthConfig,
        storage: Storage,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        navigator: Navigator = webbrowser.open,
        clock: Clock = _utcnow,
        token_describer: Optional[TokenDescriber] = describe_token,
        timeout: float = 30.0,
        verify: bool = True,
    ) -> None:
        self._config = config
        self._storage = storage
        self._http_client = http_client
        self._navigator = navigator
        self._clock = clock
        self._token_describer = token_describer
        self._timeout = timeout
        self._verify = verify
        self._tokens: Optional[TokenSet] = None
        self._load_from_storage()

    @property
    def config(self) -> AuthConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        """Current state of the load/logout state machine."""
        if self._tokens is None:
            return SessionState.UNAUTHENTICATED
        return SessionState.AUTHENTICATED

    # ------------------------------------------------------------------ #
    # Start login
    # ------------------------------------------------------------------ #

    def authorize(self) -> None:
        """Begin a new handshake and navigate to the authorization endpoint.

        Any handshake already in flight is overwritten. The navigator is
        expected to leave the application; the flow continues in
        :meth:`handle_callback`.

        Raises:
            CryptoUnavailableError: If SHA-256 is unavailable.
        """
        state = generate_verifier(STATE_LENGTH)
        code_verifier = generate_verifier(VERIFIER_LENGTH)
        code_challenge = derive_challenge(code_verifier)

        self._storage.session.update({STATE_KEY: state, CODE_VERIFIER_KEY: code_verifier})

        url = self.build_authorization_url(state, code_challenge)
        logger.debug("Navigating to authorization endpoint %s", self._config.authorization_url)
        self._navigator(url)

    def build_authorization_url(self, state: str, code_challenge: str) -> str:
        """Return the authorization endpoint URL for the given handshake values."""
        params = {
            "response_type": "code",
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_uri,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "scope": self._config.requested_scope,
        }
        base = self._config.authorization_url
        separator = "&" if urlparse(base).query else "?"
        return f"{base}{separator}{urlencode(params)}"

    # ------------------------------------------------------------------ #
    # Handle redirect-back
    # ------------------------------------------------------------------ #

    def is_callback(self, url: str) -> bool:
        """Whether *url* is a redirect-back to this client's redirect URI.

        True when the path matches the configured ``redirect_uri`` path and
        the query carries ``code`` or ``error``.
        """
        parsed = urlparse(url)
        if parsed.path != urlparse(self._config.redirect_uri).path:
            return False
        params = parse_qs(parsed.query)
        return "code" in params or "error" in params

    async def handle_callback(self, callback_url: str) -> bool:
        """Validate the redirect-back and exchange its code for tokens.

        Args:
            callback_url: The full URL the authorization server redirected
                to, or just its query string.

        Returns:
            ``True`` once the new tokens are installed.

        Raises:
            AuthorizationDeniedError: The callback carries ``error``.
            MalformedCallbackError: ``code`` or ``state`` is missing.
            StateMismatchError: ``state`` differs from the stored one.
            MissingVerifierError: No ``code_verifier`` is stored.
            TokenExchangeError: The token endpoint rejected the code.
            ServiceUnavailableError: The token endpoint was unreachable.
        """
        params = parse_qs(_query_of(callback_url))
        code = _first(params, "code")
        state = _first(params, "state")
        error = _first(params, "error")

        if error:
            logger.warning("Authorization server returned error: %s", error)
            raise AuthorizationDeniedError(error, _first(params, "error_description"))

        if not code or not state:
            raise MalformedCallbackError("Missing authorization code or state parameter")

        session = self._storage.session
        stored_state = session.get(STATE_KEY)
        if stored_state is None or stored_state != state:
            raise StateMismatchError("Invalid state parameter")

        code_verifier = session.get(CODE_VERIFIER_KEY)
        if not code_verifier:
            raise MissingVerifierError(
                "Missing code verifier; start the login again"
            )

        session.update({key: None for key in HANDSHAKE_KEYS})

        await self.exchange_code_for_token(code, code_verifier)
        return True

    async def exchange_code_for_token(self, code: str, code_verifier: str) -> TokenSet:
        """Exchange an authorization code for tokens and install them.

        On any failure the current session, if there is one, is left as it
        was.

        Returns:
            The installed :class:`~pkcesession.models.TokenSet`.

        Raises:
            TokenExchangeError: Non-2xx status, or a 2xx body that is not a
                valid token response.
            ServiceUnavailableError: The request could not be completed.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._config.redirect_uri,
            "client_id": self._config.client_id,
            "code_verifier": code_verifier,
        }

        response = await self._post_form(self._config.token_url, data)
        received_at = self._clock()

        if not response.is_success:
            raise TokenExchangeError(response.status_code, response.text)

        try:
            token_response = TokenResponse.model_validate(response.json())
        except ValueError as exc:
            raise TokenExchangeError(
                response.status_code,
                response.text,
                f"Token endpoint returned an invalid token response: {exc}",
            ) from exc

        expires_at = None
        if token_response.expires_in is not None:
            try:
                expires_at = received_at + timedelta(seconds=token_response.expires_in)
            except (OverflowError, ValueError) as exc:
                raise TokenExchangeError(
                    response.status_code,
                    response.text,
                    f"Token endpoint returned an unusable expires_in "
                    f"{token_response.expires_in!r}: {exc}",
                ) from exc

        tokens = TokenSet(
            access_token=token_response.access_token,
            token_type=token_response.token_type,
            refresh_token=token_response.refresh_token,
            expires_at=expires_at,
            scope=token_response.scope,
        )
        self._commit(tokens)
        logger.info("Installed access token %s", token_prefix(tokens.access_token))
        return tokens

    async def _post_form(self, url: str, data: dict[str, str]) -> httpx.Response:
        headers = {"Accept": "application/json"}
        try:
            if self._http_client is not None:
                return await self._http_client.post(url, data=data, headers=headers)
            async with httpx.AsyncClient(timeout=self._timeout, verify=self._verify) as client:
                return await client.post(url, data=data, headers=headers)
        except httpx.TransportError as exc:
            raise ServiceUnavailableError(
                f"Service unavailable: token endpoint {url} could not be reached: {exc}"
            ) from exc

    # ------------------------------------------------------------------ #
    # Read current auth state
    # ------------------------------------------------------------------ #

    def is_authenticated(self) -> bool:
        return self._tokens is not None

    def get_access_token(self) -> Optional[str]:
        return self._tokens.access_token if self._tokens is not None else None

    def get_token_set(self) -> Optional[TokenSet]:
        """Return the in-memory tokens, including refresh token and expiry."""
        return self._tokens

    def get_token_info(self) -> Optional[TokenInfo]:
        """Return a display view of the access token, or ``None`` when logged out.

        Never raises: a token the describer cannot handle yields the short
        prefix-only descriptor.
        """
        token = self.get_access_token()
        if token is None:
            return None
        if self._token_describer is None:
            return degraded_info(token)
        try:
            return self._token_describer(token)
        except Exception as exc:
            logger.debug("Access token is not a decodable JWT: %s", exc)
            return degraded_info(token)

    # ------------------------------------------------------------------ #
    # Load / logout
    # ------------------------------------------------------------------ #

    def logout(self) -> None:
        """Forget the tokens in memory and erase every durable token entry."""
        self._tokens = None
        self._storage.durable.update({key: None for key in TOKEN_KEYS})
        logger.debug("Cleared stored tokens")

    def _commit(self, tokens: TokenSet) -> None:
        expires_ms = (
            str(_to_epoch_ms(tokens.expires_at)) if tokens.expires_at is not None else None
        )
        self._storage.durable.update(
            {
                ACCESS_TOKEN_KEY: tokens.access_token,
                REFRESH_TOKEN_KEY: tokens.refresh_token,
                EXPIRES_AT_KEY: expires_ms,
            }
        )
        self._tokens = tokens

    def _load_from_storage(self) -> None:
        durable = self._storage.durable
        access_token = durable.get(ACCESS_TOKEN_KEY)
        refresh_token = durable.get(REFRESH_TOKEN_KEY)
        raw_expiry = durable.get(EXPIRES_AT_KEY)

        expires_at: Optional[datetime] = None
        expiry_valid = True
        if raw_expiry is not None:
            try:
                expires_at = _from_epoch_ms(raw_expiry)
            except (ValueError, OverflowError, OSError):
                logger.warning("Unparseable token expiry %r; treating as expired", raw_expiry)
                expiry_valid = False

        if access_token and expiry_valid:
            tokens = TokenSet(
                access_token=access_token,
                refresh_token=refresh_token,
                expires_at=expires_at,
            )
            if not tokens.is_expired(self._clock()):
                self._tokens = tokens
                return

        if access_token or refresh_token or raw_expiry is not None:
            logger.info("Stored token is expired or incomplete; clearing it")
            self.logout()

"""OAuth2 session for the Fitbit API.

``OAuthSession`` owns the current access/refresh token pair for one service.
It performs the authorization-code exchange and the refresh-token exchange
against the provider and hands out the current bearer secret for request
signing.

States::

    Unauthenticated --obtain_tokens--> Authorized --refresh_tokens--> Authorized

A failed refresh leaves the session Authorized with a stale secret; the user
re-enters through ``obtain_tokens`` from any state.

Lock scope: ``_lock`` guards the held tokens only.  Token-endpoint round
trips run outside it, so a slow refresh never blocks a concurrent
``get_secret()`` or ``has_secret()``.
"""

from __future__ import annotations

import logging
import secrets
import threading

import httpx
from authlib.integrations.httpx_client import OAuth2Client, OAuthError

from fitsync.base import OAuthTokens
from fitsync.services.credential_store import (
    CredentialStore,
    decode_tokens,
    encode_tokens,
)

logger = logging.getLogger("fitsync.auth.oauth")

FITBIT = "fitbit"


class AuthError(Exception):
    """Base class for OAuth session failures."""


class NotAuthenticatedError(AuthError):
    """Raised when a secret is requested before any token was obtained."""


class TokenExchangeError(AuthError):
    """Raised when the authorization-code exchange fails."""


class TokenRefreshError(AuthError):
    """Raised when the refresh-token exchange fails or cannot be attempted."""


class OAuthSession:
    """Token lifecycle for a single OAuth2 service.

    Usage::

        session = OAuthSession(
            service=FITBIT,
            client_id=settings.fitbit_client_id,
            client_secret=settings.fitbit_client_secret,
            auth_url=settings.fitbit_auth_url,
            token_url=settings.fitbit_token_url,
            redirect_uri=settings.fitbit_redirect_uri,
            scopes=settings.fitbit_scopes,
            credential_store=KeyringCredentialStore(),
        )
        session.obtain_tokens(code)
        secret = session.get_secret()
    """

    def __init__(
        self,
        service: str,
        client_id: str,
        client_secret: str,
        auth_url: str,
        token_url: str,
        redirect_uri: str,
        scopes: str = "",
        credential_store: CredentialStore | None = None,
        oauth_client: OAuth2Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the session and restore any persisted credential.

        Args:
            service:          Service name, also the credential store key.
            client_id:        OAuth2 client ID.
            client_secret:    OAuth2 client secret.
            auth_url:         Provider authorization endpoint.
            token_url:        Provider token endpoint.
            redirect_uri:     Registered redirect URI for the callback.
            scopes:           Space-separated scopes requested at authorization.
            credential_store: Where the token pair is persisted between runs.
            oauth_client:     Optional pre-configured authlib client (for testing).
            timeout:          Token-endpoint request timeout in seconds.
        """
        self.service = service
        self.client_id = client_id
        self.redirect_uri = redirect_uri
        self.scopes = scopes
        self._auth_url = auth_url
        self._token_url = token_url
        self._store = credential_store
        self._client = oauth_client or OAuth2Client(
            client_id=client_id,
            client_secret=client_secret,
            scope=scopes,
            redirect_uri=redirect_uri,
            token_endpoint_auth_method="client_secret_basic",
            timeout=timeout,
        )
        self._lock = threading.Lock()
        self._tokens: OAuthTokens | None = self._restore()
        self._pending_state: str | None = None

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def authorization_url(self, state: str | None = None) -> str:
        """Return the provider URL the user visits to grant access.

        The state carried by the URL is remembered until the callback
        presents it to ``check_state``.
        """
        url, issued = self._client.create_authorization_url(self._auth_url, state=state)
        with self._lock:
            self._pending_state = issued
        return url

    def check_state(self, state: str | None) -> bool:
        """Consume the pending authorization state and report whether it matches.

        With no authorization URL outstanding there is nothing to compare and
        any state is accepted.
        """
        with self._lock:
            expected, self._pending_state = self._pending_state, None
        if expected is None:
            return True
        return state is not None and secrets.compare_digest(state, expected)

    def obtain_tokens(self, code: str) -> None:
        """Exchange an authorization code for a token pair.

        On failure the previously held tokens (if any) are untouched.

        Raises:
            TokenExchangeError: On transport failure or provider rejection.
        """
        logger.info("%s: exchanging authorization code", self.service)
        try:
            response = self._client.fetch_token(self._token_url, code=code)
            tokens = OAuthTokens.from_token_response(dict(response))
        except (OAuthError, httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("%s: token exchange failed: %s", self.service, exc)
            raise TokenExchangeError(f"Token exchange failed: {exc}") from exc

        with self._lock:
            self._tokens = tokens
        self._persist(tokens)
        logger.info("%s: authorization complete", self.service)

    def get_secret(self) -> str:
        """Return the current access secret.

        Raises:
            NotAuthenticatedError: If no token pair has ever been obtained.
        """
        with self._lock:
            if self._tokens is None:
                raise NotAuthenticatedError(
                    f"No {self.service} token retrieved. Visit /auth/login first."
                )
            return self._tokens.access_token

    def refresh_tokens(self) -> None:
        """Exchange the held refresh secret for a new token pair.

        If the provider omits a new refresh secret the previous one is kept.

        Raises:
            TokenRefreshError: If no refresh secret is held or the exchange fails.
        """
        with self._lock:
            current = self._tokens
        if current is None or not current.refresh_token:
            raise TokenRefreshError(f"No {self.service} refresh token held")

        logger.info("%s: refreshing access token", self.service)
        try:
            response = self._client.refresh_token(
                self._token_url, refresh_token=current.refresh_token
            )
            tokens = OAuthTokens.from_token_response(dict(response))
        except (OAuthError, httpx.HTTPError, KeyError, ValueError) as exc:
            logger.error("%s: token refresh failed: %s", self.service, exc)
            raise TokenRefreshError(f"Token refresh failed: {exc}") from exc

        if not tokens.refresh_token:
            tokens.refresh_token = current.refresh_token

        with self._lock:
            self._tokens = tokens
        self._persist(tokens)

    def has_secret(self) -> bool:
        """Report whether any token has been obtained."""
        with self._lock:
            return self._tokens is not None

    # ------------------------------------------------------------------
    # Credential store round trip
    # ------------------------------------------------------------------

    def _restore(self) -> OAuthTokens | None:
        if self._store is None:
            return None
        blob = self._store.get(self.service)
        if not blob:
            return None
        data = decode_tokens(blob)
        if data is None:
            return None
        try:
            return OAuthTokens.from_token_response(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Stored %s token is incomplete: %s", self.service, exc)
            return None

    def _persist(self, tokens: OAuthTokens) -> None:
        if self._store is None:
            return
        try:
            self._store.set(self.service, encode_tokens(tokens.to_token_response()))
        except Exception as exc:
            # The in-memory pair stays valid; the next run re-authorizes.
            logger.warning("Failed to persist %s token: %s", self.service, exc)

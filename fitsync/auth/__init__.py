"""OAuth2 token lifecycle for fitsync."""

from fitsync.auth.oauth import (
    FITBIT,
    AuthError,
    NotAuthenticatedError,
    OAuthSession,
    TokenExchangeError,
    TokenRefreshError,
)

__all__ = [
    "FITBIT",
    "AuthError",
    "NotAuthenticatedError",
    "OAuthSession",
    "TokenExchangeError",
    "TokenRefreshError",
]

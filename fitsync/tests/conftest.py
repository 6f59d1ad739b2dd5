"""Shared fixtures for fitsync tests: fake OAuth provider, fake Fitbit API, temp destinations."""

from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock

import httpx
import pytest

from fitsync.adapters.fitbit import FitbitClient
from fitsync.auth.oauth import FITBIT, OAuthSession
from fitsync.config_loader import DestinationConfig, DestinationKind, DestinationSpec
from fitsync.services.credential_store import InMemoryCredentialStore
from fitsync.sync.destinations import Destinations

API_BASE = "https://api.fitbit.com/1/user/-"


# ---------------------------------------------------------------------------
# OAuth fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_response() -> dict:
    return {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "expires_in": 28800,
        "token_type": "Bearer",
        "scope": "weight profile",
        "user_id": "ABC123",
    }


@pytest.fixture
def refreshed_token_response() -> dict:
    return {
        "access_token": "access-2",
        "refresh_token": "refresh-2",
        "expires_in": 28800,
        "token_type": "Bearer",
        "scope": "weight profile",
    }


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def oauth_client(token_response: dict, refreshed_token_response: dict) -> MagicMock:
    """Stand-in for authlib's OAuth2Client with canned token responses."""
    client = MagicMock()
    client.fetch_token.return_value = token_response
    client.refresh_token.return_value = refreshed_token_response
    client.create_authorization_url.return_value = (
        "https://www.fitbit.com/oauth2/authorize?client_id=client-id&response_type=code",
        "state-1",
    )
    return client


@pytest.fixture
def session(oauth_client: MagicMock, credential_store: InMemoryCredentialStore) -> OAuthSession:
    """An Unauthenticated Fitbit session."""
    return OAuthSession(
        service=FITBIT,
        client_id="client-id",
        client_secret="client-secret",
        auth_url="https://www.fitbit.com/oauth2/authorize",
        token_url="https://api.fitbit.com/oauth2/token",
        redirect_uri="http://localhost:8000/auth/fitbit",
        scopes="weight profile",
        credential_store=credential_store,
        oauth_client=oauth_client,
    )


@pytest.fixture
def authorized_session(session: OAuthSession) -> OAuthSession:
    session.obtain_tokens("auth-code")
    return session


# ---------------------------------------------------------------------------
# Fake Fitbit API
# ---------------------------------------------------------------------------


@pytest.fixture
def make_client(
    authorized_session: OAuthSession,
) -> Callable[[Callable[[httpx.Request], httpx.Response]], FitbitClient]:
    """Build a FitbitClient whose transport is the given request handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> FitbitClient:
        http = httpx.Client(transport=httpx.MockTransport(handler))
        return FitbitClient(authorized_session, base_url=API_BASE, http_client=http)

    return _make


@pytest.fixture
def expired_body() -> dict:
    return {
        "errors": [
            {"errorType": "expired_token", "message": "Access token expired: access-1"}
        ],
        "success": False,
    }


# ---------------------------------------------------------------------------
# Destinations
# ---------------------------------------------------------------------------


@pytest.fixture
def csv_spec(tmp_path: Path) -> DestinationSpec:
    return DestinationSpec(id="csv", kind=DestinationKind.FILE_SERIES, path=tmp_path / "basic.csv")


@pytest.fixture
def destinations(tmp_path: Path, csv_spec: DestinationSpec) -> Destinations:
    return Destinations(
        DestinationConfig(destinations=[csv_spec]),
        cache_file=tmp_path / "cache" / "destinations_cache.json",
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_today() -> date:
    return date(2024, 3, 1)

"""Tests for application startup and shutdown wiring."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, call

import pytest
from fastapi.testclient import TestClient

import fitsync.main as main
from fitsync.auth.oauth import OAuthSession
from fitsync.config import Settings
from fitsync.config_loader import ConfigMissingError
from fitsync.services.credential_store import InMemoryCredentialStore
from fitsync.sync.destinations import Destinations


@pytest.fixture
def services(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> MagicMock:
    """Patch the lifespan's collaborators; returns the parent mock recording call order."""
    settings = Settings(
        _env_file=None,
        fitbit_client_id="client-id",
        fitbit_client_secret="client-secret",
        config_dir=tmp_path / "cfg",
        cache_dir=tmp_path / "cache",
    )
    manager = MagicMock()
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    monkeypatch.setattr(main, "KeyringCredentialStore", lambda prefix: InMemoryCredentialStore())
    monkeypatch.setattr(main, "FitbitClient", lambda *args, **kwargs: manager.client)
    monkeypatch.setattr(main, "SyncScheduler", lambda *args, **kwargs: manager.scheduler)
    return manager


class TestLifespan:
    def test_startup_wires_state(self, services: MagicMock) -> None:
        app = main.create_app()
        with TestClient(app):
            assert isinstance(app.state.session, OAuthSession)
            assert isinstance(app.state.destinations, Destinations)
            assert app.state.scheduler is services.scheduler
            services.scheduler.start.assert_called_once_with()

    def test_scheduler_drained_before_client_closed(self, services: MagicMock) -> None:
        with TestClient(main.create_app()):
            pass

        assert services.mock_calls == [
            call.scheduler.start(),
            call.scheduler.shutdown(wait=True),
            call.client.close(),
        ]

    def test_missing_credentials_abort_startup(
        self, services: MagicMock, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.delenv("FITBIT_CLIENT_ID", raising=False)
        monkeypatch.delenv("FITBIT_CLIENT_SECRET", raising=False)
        monkeypatch.setattr(
            main, "get_settings", lambda: Settings(_env_file=None, config_dir=tmp_path)
        )
        with pytest.raises(ConfigMissingError):
            with TestClient(main.create_app()):
                pass
        services.scheduler.start.assert_not_called()

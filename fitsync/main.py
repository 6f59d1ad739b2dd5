"""fitsync — FastAPI application entry point.

Run locally:
    fitsync
    uvicorn fitsync.main:app --port 8000
"""

from __future__ import annotations

import logging
import sys
import threading
import webbrowser
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI

from fitsync.adapters.fitbit import FitbitClient
from fitsync.auth.oauth import FITBIT, OAuthSession
from fitsync.config import Settings, get_settings
from fitsync.routers import api, auth, health
from fitsync.services.credential_store import KeyringCredentialStore
from fitsync.sync.backfill import SyncEngine
from fitsync.sync.destinations import Destinations
from fitsync.sync.scheduler import SyncScheduler

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("fitsync")


# ---------- Wiring ----------

def build_session(settings: Settings) -> OAuthSession:
    return OAuthSession(
        service=FITBIT,
        client_id=settings.fitbit_client_id,
        client_secret=settings.fitbit_client_secret,
        auth_url=settings.fitbit_auth_url,
        token_url=settings.fitbit_token_url,
        redirect_uri=settings.fitbit_redirect_uri,
        scopes=settings.fitbit_scopes,
        credential_store=KeyringCredentialStore(prefix=settings.keyring_service_prefix),
        timeout=settings.http_timeout_seconds,
    )


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks.

    Configuration problems raise here and abort startup.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info("Starting fitsync v%s", settings.app_version)

    settings.require_client_credentials()
    session = build_session(settings)
    client = FitbitClient(
        session,
        base_url=settings.fitbit_api_base,
        locale=settings.fitbit_locale,
        timeout=settings.http_timeout_seconds,
    )
    destinations = Destinations.load(
        settings.destinations_file, settings.destinations_cache_file
    )
    engine = SyncEngine(
        destinations,
        client,
        max_window_days=settings.sync_max_window_days,
        epoch_start=settings.sync_epoch_start,
    )
    scheduler = SyncScheduler(engine, interval_minutes=settings.sync_interval_minutes)

    app.state.session = session
    app.state.destinations = destinations
    app.state.scheduler = scheduler

    if not session.has_secret():
        logger.info("No Fitbit token yet; authorize at http://%s:%d/auth/login", settings.host, settings.port)

    scheduler.start()
    yield
    # Let an in-flight pass finish before its HTTP client goes away
    scheduler.shutdown(wait=True)
    client.close()
    logger.info("fitsync shut down")


# ---------- App factory ----------

def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="fitsync",
        description="Local Fitbit body-weight sync service.",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url=None,
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(api.router)

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app and optionally open a browser on it."""
    settings = get_settings()
    url = f"http://{settings.host}:{settings.port}/"
    if settings.open_browser:
        threading.Timer(1.0, webbrowser.open, args=(url,)).start()
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()

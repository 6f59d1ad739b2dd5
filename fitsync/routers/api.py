"""Local JSON API: auth state and on-demand sync."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from fitsync.dependencies import AppScheduler, AppSettings, FitbitSession
from fitsync.models.api import AuthState, ServiceAuthState, SyncScheduled

router = APIRouter(tags=["api"])


@router.get("/")
def index(session: FitbitSession, settings: AppSettings) -> dict[str, Any]:
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "authorized": session.has_secret(),
        "login": "/auth/login",
    }


@router.get("/api/authstate", response_model=AuthState)
def auth_state(session: FitbitSession, settings: AppSettings) -> Any:
    """Report per-service token presence and the parameters needed to authorize.

    The client secret is never included.
    """
    return AuthState(
        fitbit=ServiceAuthState(
            has_token=session.has_secret(),
            scopes=session.scopes,
            redirect_uri=session.redirect_uri,
            client_id=session.client_id,
        ),
        google=ServiceAuthState(
            has_token=False,
            scopes="",
            redirect_uri=settings.google_redirect_uri,
            client_id=settings.google_client_id,
        ),
    )


@router.post("/api/sync", response_model=SyncScheduled, status_code=202)
def request_sync(scheduler: AppScheduler) -> Any:
    scheduler.trigger_now("manual")
    return SyncScheduled(scheduled=True, reason="manual")

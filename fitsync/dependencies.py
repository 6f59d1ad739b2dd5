"""Shared FastAPI dependencies injected into route handlers.

The lifespan hook builds one OAuth session, one destinations collection and
one sync scheduler per process and hangs them on ``app.state``; these
accessors hand them to routes.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from fitsync.auth.oauth import OAuthSession
from fitsync.config import Settings, get_settings
from fitsync.sync.destinations import Destinations
from fitsync.sync.scheduler import SyncScheduler


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail="Service is still starting")
    return value


def get_session(request: Request) -> OAuthSession:
    return _state(request, "session")


def get_destinations(request: Request) -> Destinations:
    return _state(request, "destinations")


def get_scheduler(request: Request) -> SyncScheduler:
    return _state(request, "scheduler")


# Annotated shortcuts for route signatures
FitbitSession = Annotated[OAuthSession, Depends(get_session)]
AppDestinations = Annotated[Destinations, Depends(get_destinations)]
AppScheduler = Annotated[SyncScheduler, Depends(get_scheduler)]
AppSettings = Annotated[Settings, Depends(get_settings)]

"""Response schemas for the local HTTP surface."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from fitsync.models.base import FitsyncBase, utc_now


class ServiceAuthState(FitsyncBase):
    """What the UI needs to know to (re)authorize one service."""

    has_token: bool = False
    scopes: str = ""
    redirect_uri: str = ""
    client_id: str = ""


class AuthState(FitsyncBase):
    fitbit: ServiceAuthState
    google: ServiceAuthState


class SyncScheduled(FitsyncBase):
    scheduled: bool = True
    reason: str = "manual"


class DestinationStatus(FitsyncBase):
    id: str
    kind: str
    metric: str
    path: str
    last_synced: datetime | None = None
    last_status: str | None = None
    last_error: str | None = None


class HealthStatus(FitsyncBase):
    status: str
    version: str
    authorized: bool
    scheduler_running: bool
    last_run_at: datetime | None = None
    destinations: list[DestinationStatus] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)

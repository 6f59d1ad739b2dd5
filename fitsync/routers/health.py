"""Health check endpoint."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from fitsync.dependencies import AppDestinations, AppScheduler, AppSettings, FitbitSession
from fitsync.models.api import DestinationStatus, HealthStatus

router = APIRouter(tags=["system"])
logger = logging.getLogger("fitsync.health")


@router.get("/health", response_model=HealthStatus)
def health_check(
    settings: AppSettings,
    session: FitbitSession,
    destinations: AppDestinations,
    scheduler: AppScheduler,
) -> Any:
    """Liveness check. Returns 200 if the process is up.

    Status is 'degraded' when there is no token yet, the scheduler is stopped,
    or the last pass failed for any destination.
    """
    last = {r.destination_id: r for r in scheduler.last_results}
    checkpoints = destinations.checkpoints()

    rows = []
    for spec in destinations.specs:
        result = last.get(spec.id)
        rows.append(
            DestinationStatus(
                id=spec.id,
                kind=spec.kind.value,
                metric=spec.metric.value,
                path=str(spec.path),
                last_synced=checkpoints.get(spec.id),
                last_status=result.status if result else None,
                last_error=result.error if result else None,
            )
        )

    authorized = session.has_secret()
    healthy = (
        authorized
        and scheduler.is_running
        and not any(row.last_status == "error" for row in rows)
    )
    return HealthStatus(
        status="healthy" if healthy else "degraded",
        version=settings.app_version,
        authorized=authorized,
        scheduler_running=scheduler.is_running,
        last_run_at=scheduler.last_run_at,
        destinations=rows,
    )

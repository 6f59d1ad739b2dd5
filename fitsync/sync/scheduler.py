"""Periodic and on-demand sync passes.

Every trigger (startup, the interval timer, a completed authorization, a
manual request) goes through one APScheduler job store and a single worker
thread, so at most one pass runs at a time.  A trigger that arrives while a
pass is running is coalesced by the scheduler or, failing that, refused by
``Destinations.pass_lock``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fitsync.sync.backfill import SyncEngine, SyncResult

logger = logging.getLogger("fitsync.sync.scheduler")

PERIODIC_JOB_ID = "fitbit_periodic_sync"
ON_DEMAND_JOB_ID = "fitbit_on_demand_sync"


class SyncScheduler:
    """Drive a ``SyncEngine`` from a background scheduler."""

    def __init__(
        self,
        engine: SyncEngine,
        interval_minutes: int = 15,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self._engine = engine
        self._interval_minutes = interval_minutes
        self._scheduler = scheduler or BackgroundScheduler(
            executors={"default": ThreadPoolExecutor(1)},
            job_defaults={"coalesce": True, "max_instances": 1},
            timezone="UTC",
        )
        self.last_results: list[SyncResult] = []
        self.last_run_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self, run_immediately: bool = True) -> None:
        """Start the scheduler with the periodic job.

        Args:
            run_immediately: Run the first pass now instead of one interval from now.
        """
        if self._scheduler.running:
            logger.warning("Sync scheduler already running")
            return

        job_options = {}
        if run_immediately:
            job_options["next_run_time"] = datetime.now(timezone.utc)
        self._scheduler.add_job(
            self.run_pass,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id=PERIODIC_JOB_ID,
            name="Periodic Fitbit sync",
            kwargs={"reason": "periodic"},
            replace_existing=True,
            **job_options,
        )
        self._scheduler.start()
        logger.info("Started sync scheduler (interval: %d min)", self._interval_minutes)

    def shutdown(self, wait: bool = True) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("Stopped sync scheduler")

    def trigger_now(self, reason: str) -> None:
        """Queue a one-off pass on the scheduler's worker.

        If the scheduler is not running the pass runs in the calling thread.
        """
        if not self._scheduler.running:
            logger.info("Scheduler not running; syncing inline (%s)", reason)
            self.run_pass(reason)
            return

        logger.info("Sync requested (%s)", reason)
        self._scheduler.add_job(
            self.run_pass,
            id=ON_DEMAND_JOB_ID,
            name="On-demand Fitbit sync",
            kwargs={"reason": reason},
            replace_existing=True,
        )

    def run_pass(self, reason: str = "manual") -> list[SyncResult]:
        """Run one pass.  Never raises; failures are logged and the next tick proceeds."""
        logger.info("Running sync pass (%s)", reason)
        try:
            results = self._engine.sync_all()
        except Exception as exc:
            logger.error("Sync pass (%s) failed: %s", reason, exc, exc_info=True)
            return []

        self.last_run_at = datetime.now(timezone.utc)
        if results:
            self.last_results = results
        return results

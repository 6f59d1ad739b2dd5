"""Windowed backfill: the sync pass over every configured destination.

For each destination the engine walks history from its checkpoint to today
in windows no longer than the API's maximum range, appending each window's
points to the destination's sink.  The checkpoint moves only after the whole
walk succeeds, so a pass that fails halfway is re-walked from the same
checkpoint next time.  Sinks deduplicate on append, which makes the re-walk
safe.

Destinations are independent: a failure on one is logged and the pass moves
on to the next.

Usage::

    engine = SyncEngine(destinations, fitbit_client)
    for result in engine.sync_all():
        logger.info("%s: %s", result.destination_id, result.status)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterator

from fitsync.adapters.fitbit import ApiError, FitbitClient
from fitsync.auth.oauth import AuthError
from fitsync.config_loader import DestinationSpec
from fitsync.sync.destinations import Destinations, SinkError, get_sink

logger = logging.getLogger("fitsync.sync.backfill")

#: Longest range the body time series endpoints accept in one request.
MAX_WINDOW_DAYS = 365

#: Start of history for a destination that has never been synced.
EPOCH_START = date(2010, 1, 1)


@dataclass
class SyncResult:
    """Outcome of one destination within a sync pass.

    Attributes:
        destination_id: Destination the result belongs to.
        status:         'success' or 'error'.
        windows:        (start, end) of every window fetched, in order.
        points_fetched: Total points returned by the API.
        points_stored:  Size of the stored series after the last append.
        error:          Error message if status == 'error'.
        last_synced:    Checkpoint after the pass (unchanged on error).
    """

    destination_id: str
    status: str = "success"
    windows: list[tuple[date, date]] = field(default_factory=list)
    points_fetched: int = 0
    points_stored: int = 0
    error: str | None = None
    last_synced: datetime | None = None


def iter_windows(
    start: date, today: date, max_window_days: int = MAX_WINDOW_DAYS
) -> Iterator[tuple[date, date]]:
    """Yield the ``(start, end)`` windows covering ``start`` through ``today``.

    Each window ends at ``min(start + max_window_days, today)`` and the next
    one starts on that same end date.  The last window always ends on
    ``today``.  A start after today is clamped to today.

    Raises:
        ValueError: If ``max_window_days`` is not positive.
    """
    if max_window_days < 1:
        raise ValueError(f"max_window_days must be positive, got {max_window_days}")

    window_start = min(start, today)
    while True:
        window_end = min(window_start + timedelta(days=max_window_days), today)
        yield window_start, window_end
        if window_end == today:
            return
        window_start = window_end


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """Run checkpointed, windowed backfills for every destination."""

    def __init__(
        self,
        destinations: Destinations,
        client: FitbitClient,
        max_window_days: int = MAX_WINDOW_DAYS,
        epoch_start: date = EPOCH_START,
        today: Callable[[], date] = date.today,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the engine.

        Args:
            destinations:    Shared destinations state (specs + checkpoints).
            client:          Fitbit API client.
            max_window_days: Maximum span of one API request.
            epoch_start:     First date fetched for a never-synced destination.
            today:           Source of the current calendar date.
            now:             Source of the current instant for checkpoints.

        Raises:
            ValueError: If ``max_window_days`` is not positive.
        """
        if max_window_days < 1:
            raise ValueError(f"max_window_days must be positive, got {max_window_days}")
        self._destinations = destinations
        self._client = client
        self._max_window_days = max_window_days
        self._epoch_start = epoch_start
        self._today = today
        self._now = now

    def sync_all(self) -> list[SyncResult]:
        """Run one sync pass over every destination.

        Returns an empty list without doing anything if another pass
        currently holds the destinations.
        """
        with self._destinations.pass_lock() as acquired:
            if not acquired:
                logger.info("Sync pass already running; skipping this trigger")
                return []

            specs = self._destinations.specs
            logger.info("Beginning sync of %d destination(s)", len(specs))

            results: list[SyncResult] = []
            for spec in specs:
                result = SyncResult(
                    destination_id=spec.id,
                    last_synced=self._destinations.last_synced(spec.id),
                )
                try:
                    self._sync_destination(spec, result)
                except (ApiError, AuthError, SinkError) as exc:
                    result.status = "error"
                    result.error = str(exc)
                    logger.warning("Sync to destination %s failed: %s", spec.id, exc)
                else:
                    result.last_synced = self._destinations.advance(spec.id, self._now())
                results.append(result)

            try:
                self._destinations.save()
            except OSError as exc:
                logger.error("Failed to write checkpoint cache: %s", exc)

            logger.info(
                "Sync completed: %d destination(s), %d error(s)",
                len(results),
                sum(1 for r in results if r.status == "error"),
            )
            return results

    def _sync_destination(self, spec: DestinationSpec, result: SyncResult) -> None:
        """Walk the windows for one destination, appending as it goes."""
        last_synced = self._destinations.last_synced(spec.id)
        start = last_synced.astimezone().date() if last_synced else self._epoch_start
        today = self._today()
        sink = get_sink(spec)

        logger.info("Syncing destination %s (%s) from %s", spec.id, spec.metric.value, start)

        for window_start, window_end in iter_windows(start, today, self._max_window_days):
            points = self._client.get_body_series(spec.metric, window_start, window_end)
            logger.debug(
                "%s: window %s..%s returned %d point(s)",
                spec.id, window_start, window_end, len(points),
            )
            stored = sink.append(points)
            result.windows.append((window_start, window_end))
            result.points_fetched += len(points)
            result.points_stored = len(stored)

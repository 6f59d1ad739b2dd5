"""Destination sinks and the destinations collection.

A destination is a configured ``DestinationSpec`` plus the sink that
persists its series.  Sinks are looked up by kind in ``SINK_REGISTRY``;
adding a new kind means adding a ``DestinationKind`` member and a factory
here.

``Destinations`` is the shared, lock-guarded state of a sync pass: the
specs, their checkpoints and the cache file they are written to.
"""

from __future__ import annotations

import csv
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterator, Protocol, Sequence

from fitsync.base import TimeSeriesPoint
from fitsync.config_loader import (
    DestinationConfig,
    DestinationKind,
    DestinationSpec,
    load_checkpoints,
    load_destination_config,
    save_checkpoints,
)
from fitsync.sync.dedup import compress

logger = logging.getLogger("fitsync.sync.destinations")


class SinkError(Exception):
    """Base class for sink failures."""


class SinkIOError(SinkError):
    """The backing store could not be read or written."""


class SinkParseError(SinkError):
    """The backing store exists but does not hold a valid series."""


class DestinationSink(Protocol):
    """Append target for a time series."""

    def append(self, points: Sequence[TimeSeriesPoint]) -> list[TimeSeriesPoint]:
        """Merge ``points`` into the stored series and return what is now stored."""
        ...


# ---------------------------------------------------------------------------
# File-backed series
# ---------------------------------------------------------------------------


class FileSeriesSink:
    """Comma-separated file with a ``dateTime,value`` header.

    ``append`` is a full read-modify-write: the stored series and the new
    points are compressed together and the whole file is replaced, so the
    file is always sorted by date with no duplicate dates.
    """

    FIELDNAMES = ("dateTime", "value")

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> list[TimeSeriesPoint]:
        """Return the stored series, or an empty one if the file does not exist.

        Raises:
            SinkIOError:    If the file cannot be read.
            SinkParseError: If the header or a row is invalid.
        """
        if not self.path.exists():
            return []

        try:
            with self.path.open("r", newline="", encoding="utf-8") as fh:
                reader = csv.DictReader(fh)
                if reader.fieldnames is None:
                    return []
                missing = set(self.FIELDNAMES) - set(reader.fieldnames)
                if missing:
                    raise SinkParseError(
                        f"{self.path}: missing column(s) {sorted(missing)} in header"
                    )
                points = []
                for line_no, row in enumerate(reader, start=2):
                    try:
                        points.append(TimeSeriesPoint.from_row(row))
                    except (KeyError, TypeError, ValueError) as exc:
                        raise SinkParseError(f"{self.path}:{line_no}: {exc}") from exc
                return points
        except OSError as exc:
            raise SinkIOError(f"Cannot read {self.path}: {exc}") from exc

    def append(self, points: Sequence[TimeSeriesPoint]) -> list[TimeSeriesPoint]:
        existing = self.read()
        merged = compress([*existing, *points])
        self._write(merged)
        logger.debug(
            "%s: %d stored + %d incoming -> %d retained",
            self.path, len(existing), len(points), len(merged),
        )
        return merged

    def _write(self, points: Sequence[TimeSeriesPoint]) -> None:
        """Replace the file atomically with ``points``."""
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                newline="",
                encoding="utf-8",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                writer = csv.DictWriter(fh, fieldnames=self.FIELDNAMES, lineterminator="\n")
                writer.writeheader()
                for point in points:
                    writer.writerow(point.to_row())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise SinkIOError(f"Cannot write {self.path}: {exc}") from exc


# Registry: destination kind → sink factory
SINK_REGISTRY: dict[DestinationKind, Callable[[DestinationSpec], DestinationSink]] = {
    DestinationKind.FILE_SERIES: lambda spec: FileSeriesSink(spec.path),
}


def get_sink(spec: DestinationSpec) -> DestinationSink:
    """Return the sink for a destination.

    Raises:
        KeyError: If no sink is registered for the destination's kind.
    """
    if spec.kind not in SINK_REGISTRY:
        raise KeyError(
            f"No sink registered for kind '{spec.kind}'. "
            f"Available: {[k.value for k in SINK_REGISTRY]}"
        )
    return SINK_REGISTRY[spec.kind](spec)


# ---------------------------------------------------------------------------
# Destinations collection
# ---------------------------------------------------------------------------


class Destinations:
    """Configured destinations with their checkpoints.

    Checkpoints only move forward: ``advance`` keeps the later of the stored
    and the new instant.  A sync pass holds ``pass_lock`` for its whole
    duration; a second pass that cannot take it does not run.
    """

    def __init__(
        self,
        config: DestinationConfig,
        checkpoints: dict[str, datetime | None] | None = None,
        cache_file: Path | None = None,
    ) -> None:
        self.config = config
        self._checkpoints: dict[str, datetime | None] = dict(checkpoints or {})
        self._cache_file = cache_file
        self._lock = threading.Lock()

    @classmethod
    def load(cls, config_file: Path, cache_file: Path) -> "Destinations":
        """Load specs and checkpoints from disk.

        Raises:
            ConfigMalformedError: If either file is invalid.
        """
        config = load_destination_config(config_file)
        checkpoints = load_checkpoints(cache_file)
        return cls(config, checkpoints, cache_file)

    @property
    def specs(self) -> list[DestinationSpec]:
        return list(self.config.destinations)

    @contextmanager
    def pass_lock(self) -> Iterator[bool]:
        """Try to take the destinations for one sync pass without waiting.

        Yields True if the lock was acquired, False if a pass is already running.
        """
        acquired = self._lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()

    def last_synced(self, destination_id: str) -> datetime | None:
        return self._checkpoints.get(destination_id)

    def checkpoints(self) -> dict[str, datetime | None]:
        return dict(self._checkpoints)

    def advance(self, destination_id: str, instant: datetime) -> datetime:
        """Move a checkpoint forward to ``instant`` (never backwards)."""
        previous = self._checkpoints.get(destination_id)
        if previous is not None and previous > instant:
            logger.warning(
                "Clock moved backwards for %s (%s > %s); keeping checkpoint",
                destination_id, previous.isoformat(), instant.isoformat(),
            )
            instant = previous
        self._checkpoints[destination_id] = instant
        return instant

    def save(self) -> None:
        """Rewrite the checkpoint cache file.

        Raises:
            OSError: If the cache cannot be written.
        """
        if self._cache_file is None:
            return
        save_checkpoints(self._cache_file, self._checkpoints)

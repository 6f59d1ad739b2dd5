"""Sync pipeline: compression, destination sinks, windowed backfill and scheduling."""

from fitsync.sync.backfill import EPOCH_START, MAX_WINDOW_DAYS, SyncEngine, SyncResult, iter_windows
from fitsync.sync.dedup import VALUE_TOLERANCE, compress
from fitsync.sync.destinations import (
    SINK_REGISTRY,
    DestinationSink,
    Destinations,
    FileSeriesSink,
    SinkError,
    SinkIOError,
    SinkParseError,
    get_sink,
)
from fitsync.sync.scheduler import SyncScheduler

__all__ = [
    "EPOCH_START",
    "MAX_WINDOW_DAYS",
    "SINK_REGISTRY",
    "VALUE_TOLERANCE",
    "DestinationSink",
    "Destinations",
    "FileSeriesSink",
    "SinkError",
    "SinkIOError",
    "SinkParseError",
    "SyncEngine",
    "SyncResult",
    "SyncScheduler",
    "compress",
    "get_sink",
    "iter_windows",
]

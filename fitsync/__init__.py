"""fitsync: pull Fitbit body-weight history into local time-series files.

Modules:
    auth      — OAuth2 token lifecycle
    adapters  — Fitbit Web API client
    sync      — compression, sinks, windowed backfill, scheduling
    routers   — local HTTP surface (auth callback, auth state, health)
"""

__version__ = "0.1.0"

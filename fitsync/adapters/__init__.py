"""Health data API clients for fitsync.

Available clients:
    FitbitClient — Fitbit Web API (OAuth2), body time series and weight logs
"""

from fitsync.adapters.fitbit import (
    ApiError,
    ApiExpiredError,
    ApiRemoteError,
    ApiTransportError,
    FitbitClient,
)

__all__ = [
    "ApiError",
    "ApiExpiredError",
    "ApiRemoteError",
    "ApiTransportError",
    "FitbitClient",
]

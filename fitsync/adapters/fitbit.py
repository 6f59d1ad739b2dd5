"""Fitbit Web API client.

Issues authenticated GET requests against the user-scoped API, parses the
response envelope, and transparently recovers from an expired access token
exactly once per call.

API base: https://api.fitbit.com/1/user/-

Endpoints used:
    /body/{metric}/date/{start}/{end}.json     — Body time series over a range
    /body/{metric}/date/{base}/{period}.json   — Body time series over a period
    /body/log/weight/date/{base}/{period}.json — Individual weight log entries

The time series endpoints reject ranges longer than the per-resource maximum,
which is why the sync engine walks history in bounded windows.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from fitsync.auth.oauth import OAuthSession, TokenRefreshError
from fitsync.base import TimeSeriesPoint
from fitsync.models.fitbit import (
    ApiEnvelope,
    BodyMetric,
    BodySeriesResponse,
    TimePeriod,
    WeightLogEntry,
    WeightLogResponse,
)

logger = logging.getLogger("fitsync.adapters.fitbit")

_FITBIT_API_BASE = "https://api.fitbit.com/1/user/-"

EnvelopeT = TypeVar("EnvelopeT", bound=ApiEnvelope)


class ApiError(Exception):
    """Base class for Fitbit API call failures."""


class ApiTransportError(ApiError):
    """Connection failure, timeout, or a body that is not a valid envelope."""


class ApiRemoteError(ApiError):
    """The provider answered with one or more error entries."""

    def __init__(self, messages: list[str]) -> None:
        self.messages = messages
        super().__init__("; ".join(messages) or "Fitbit API error")


class ApiExpiredError(ApiError):
    """The access token is expired and one refresh-and-retry did not help."""


class FitbitClient:
    """Synchronous Fitbit API client bound to one OAuth session.

    Transport failures are never retried here; the scheduler's next tick is
    the retry policy.  An ``expired_token`` error triggers one refresh of the
    session followed by one retry of the same request.
    """

    def __init__(
        self,
        session: OAuthSession,
        base_url: str = _FITBIT_API_BASE,
        locale: str = "en_US",
        http_client: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            session:     OAuth session providing (and refreshing) the bearer secret.
            base_url:    User-scoped API base URL.
            locale:      Accept-Language header; selects the unit system.
            http_client: Optional pre-configured httpx client (for testing).
            timeout:     Request timeout in seconds when no client is given.
        """
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._locale = locale
        self._http = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # Generic request
    # ------------------------------------------------------------------

    def request(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        response_model: type[EnvelopeT] = ApiEnvelope,  # type: ignore[assignment]
    ) -> EnvelopeT:
        """GET ``path`` and parse the body as ``response_model``.

        Args:
            path:           Path below the API base, starting with '/'.
            params:         Query parameters.
            response_model: Envelope subclass describing the expected payload.

        Returns:
            The parsed envelope, guaranteed to carry no error entries.

        Raises:
            ApiTransportError:     Connection failure, timeout or malformed body.
            ApiRemoteError:        Provider error entries other than expiry.
            ApiExpiredError:       Token still expired after one refresh, or
                                   the refresh itself failed.
            NotAuthenticatedError: No token has ever been obtained.
        """
        envelope = self._get(path, params, response_model)

        if envelope.has_expired_token:
            logger.info("Fitbit: access token expired, refreshing and retrying %s", path)
            try:
                self._session.refresh_tokens()
            except TokenRefreshError as exc:
                raise ApiExpiredError(f"Access token expired and refresh failed: {exc}") from exc
            envelope = self._get(path, params, response_model)
            if envelope.has_expired_token:
                raise ApiExpiredError("Access token still expired after refresh")

        if envelope.errors:
            raise ApiRemoteError(envelope.error_messages)
        return envelope

    def _get(
        self,
        path: str,
        params: dict[str, Any] | None,
        response_model: type[EnvelopeT],
    ) -> EnvelopeT:
        headers = {
            "Authorization": f"Bearer {self._session.get_secret()}",
            "Accept-Language": self._locale,
        }
        url = f"{self._base_url}{path}"

        try:
            response = self._http.get(url, params=params, headers=headers)
            body = response.text
        except httpx.HTTPError as exc:
            raise ApiTransportError(f"GET {path} failed: {exc}") from exc

        try:
            envelope = response_model.model_validate_json(body)
        except ValidationError as exc:
            raise ApiTransportError(
                f"Malformed response body from {path} (HTTP {response.status_code})"
            ) from exc

        if not response.is_success and not envelope.errors:
            raise ApiRemoteError([f"HTTP {response.status_code}"])
        return envelope

    # ------------------------------------------------------------------
    # Body endpoints
    # ------------------------------------------------------------------

    def get_body_series(
        self, metric: BodyMetric, start_date: date, end_date: date
    ) -> list[TimeSeriesPoint]:
        """Fetch a body time series over ``[start_date, end_date]``."""
        path = f"/body/{metric.value}/date/{start_date.isoformat()}/{end_date.isoformat()}.json"
        response = self.request(path, response_model=BodySeriesResponse)
        return response.series(metric)

    def get_body_series_period(
        self,
        metric: BodyMetric,
        period: TimePeriod,
        base_date: date | None = None,
    ) -> list[TimeSeriesPoint]:
        """Fetch a body time series ending at ``base_date`` (default: today)."""
        base = base_date.isoformat() if base_date else "today"
        path = f"/body/{metric.value}/date/{base}/{period.value}.json"
        response = self.request(path, response_model=BodySeriesResponse)
        return response.series(metric)

    def get_weight_logs(
        self, base_date: date, period: TimePeriod = TimePeriod.ONE_MONTH
    ) -> list[WeightLogEntry]:
        """Fetch individual weight log entries for a period ending at ``base_date``.

        Fitbit accepts only 1d, 7d, 1w and 1m periods here.
        """
        path = f"/body/log/weight/date/{base_date.isoformat()}/{period.value}.json"
        response = self.request(path, response_model=WeightLogResponse)
        return response.weight or []

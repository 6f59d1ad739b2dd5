"""Pydantic models for the Fitbit Web API response envelope.

Every Fitbit response is parsed into an ``ApiEnvelope`` subclass: the
common ``success``/``errors`` fields plus the payload fields the caller
expects.  Payload fields are optional so that error responses (which carry
only ``errors``) validate against the same model.

Example error body::

    {"errors": [{"errorType": "expired_token",
                 "message": "Access token expired: eyJ..."}],
     "success": false}
"""

from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import Field

from fitsync.base import TimeSeriesPoint
from fitsync.models.base import FitsyncBase

EXPIRED_TOKEN = "expired_token"


class BodyMetric(str, Enum):
    """Body time series exposed by ``/body/{metric}/date/...``."""

    WEIGHT = "weight"
    BMI = "bmi"
    FAT = "fat"


class TimePeriod(str, Enum):
    """Period suffixes accepted by the period form of the body endpoints."""

    ONE_DAY = "1d"
    SEVEN_DAYS = "7d"
    THIRTY_DAYS = "30d"
    ONE_WEEK = "1w"
    ONE_MONTH = "1m"
    THREE_MONTHS = "3m"
    SIX_MONTHS = "6m"
    ONE_YEAR = "1y"
    MAX = "max"


# ---------- Envelope ----------


class ApiErrorEntry(FitsyncBase):
    error_type: str = Field(default="", alias="errorType")
    field_name: str | None = Field(default=None, alias="fieldName")
    message: str = ""


class ApiEnvelope(FitsyncBase):
    success: bool | None = None
    errors: list[ApiErrorEntry] | None = None

    @property
    def has_expired_token(self) -> bool:
        return any(e.error_type == EXPIRED_TOKEN for e in self.errors or [])

    @property
    def error_messages(self) -> list[str]:
        return [e.message or e.error_type for e in self.errors or []]


# ---------- Body time series ----------


class SeriesValue(FitsyncBase):
    """``{"dateTime": "2020-01-01", "value": "70.0"}`` — values arrive as strings."""

    date_time: dt.date = Field(alias="dateTime")
    value: float

    def to_point(self) -> TimeSeriesPoint:
        return TimeSeriesPoint(timestamp=self.date_time, value=self.value)


class BodySeriesResponse(ApiEnvelope):
    body_weight: list[SeriesValue] | None = Field(default=None, alias="body-weight")
    body_bmi: list[SeriesValue] | None = Field(default=None, alias="body-bmi")
    body_fat: list[SeriesValue] | None = Field(default=None, alias="body-fat")

    def series(self, metric: BodyMetric) -> list[TimeSeriesPoint]:
        values = getattr(self, f"body_{metric.value}") or []
        return [v.to_point() for v in values]


# ---------- Weight logs ----------


class WeightLogEntry(FitsyncBase):
    log_id: int = Field(alias="logId")
    log_date: dt.date = Field(alias="date")
    time: str | None = None
    weight: float
    bmi: float | None = None
    fat: float | None = None
    source: str | None = None


class WeightLogResponse(ApiEnvelope):
    weight: list[WeightLogEntry] | None = None

"""Shared Pydantic base models and utilities."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FitsyncBase(BaseModel):
    """Base model with shared config for all fitsync schemas.

    Unknown keys are ignored so that provider responses can grow fields
    without breaking parsing.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

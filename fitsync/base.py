"""Canonical data models shared by the fitsync client, sync engine and sinks.

TimeSeriesPoint is the single unit of data that flows from the Fitbit API
into every destination.  OAuthTokens is the credential held by the
OAuth session and round-tripped through the credential store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any


# ---------------------------------------------------------------------------
# OAuth / Auth tokens
# ---------------------------------------------------------------------------


@dataclass
class OAuthTokens:
    """OAuth token pair returned after authorization or refresh.

    Attributes:
        access_token:  Bearer token for API calls.
        refresh_token: Long-lived token used to obtain a new access_token.
        expires_at:    UTC datetime when the access_token expires (hint only).
        token_type:    Token type, typically "Bearer".
        scope:         Granted OAuth scopes.
        extra:         Any additional fields returned by the provider (e.g. user_id).
    """

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    token_type: str = "Bearer"
    scope: list[str] = field(default_factory=list)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_token_response(cls, data: dict[str, Any]) -> "OAuthTokens":
        """Build tokens from a provider token-endpoint response.

        Raises:
            KeyError: If the response carries no access_token.
        """
        known = {"access_token", "refresh_token", "expires_in", "expires_at", "token_type", "scope"}

        expires_at: datetime | None = None
        if data.get("expires_at") is not None:
            expires_at = datetime.fromtimestamp(float(data["expires_at"]), tz=timezone.utc)
        elif data.get("expires_in") is not None:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(data["expires_in"]))

        scope = data.get("scope") or []
        if isinstance(scope, str):
            scope = scope.split()

        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
            token_type=data.get("token_type", "Bearer"),
            scope=list(scope),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_token_response(self) -> dict[str, Any]:
        """Serialize back to the token-endpoint response shape."""
        data: dict[str, Any] = {
            **self.extra,
            "access_token": self.access_token,
            "token_type": self.token_type,
        }
        if self.refresh_token is not None:
            data["refresh_token"] = self.refresh_token
        if self.expires_at is not None:
            data["expires_at"] = int(self.expires_at.timestamp())
        if self.scope:
            data["scope"] = " ".join(self.scope)
        return data

    def is_expired(self, buffer_seconds: int = 0) -> bool:
        """Return True if the expiry hint says the access token is stale."""
        if self.expires_at is None:
            return False
        remaining = (self.expires_at - datetime.now(timezone.utc)).total_seconds()
        return remaining < buffer_seconds


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One measurement on one calendar date.

    Attributes:
        timestamp: Calendar date the measurement belongs to.
        value:     Measurement in the units the API returned.
    """

    timestamp: date
    value: float

    def to_row(self) -> dict[str, str]:
        return {"dateTime": self.timestamp.isoformat(), "value": str(self.value)}

    @classmethod
    def from_row(cls, row: dict[str, str]) -> "TimeSeriesPoint":
        """Parse a ``{dateTime, value}`` record.

        Raises:
            KeyError:   If a column is missing.
            ValueError: If the date or value cannot be parsed.
        """
        return cls(
            timestamp=date.fromisoformat(row["dateTime"].strip()),
            value=float(row["value"]),
        )

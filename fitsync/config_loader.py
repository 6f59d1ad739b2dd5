"""Load and validate destination configuration and the checkpoint cache.

Two JSON files live outside the package:

``destinations.json`` (config dir) — which sinks receive data::

    {"destinations": [{"id": "csv", "kind": "file-series", "path": "basic.csv"}]}

``destinations_cache.json`` (cache dir) — per-destination checkpoints::

    {"data": {"csv": {"last_synced": "2024-03-01T08:15:00+00:00"}}}

Both are loaded once at startup.  A missing destinations file yields a single
default file-series destination; anything unreadable is a fatal
``ConfigMalformedError``.

Usage::

    from fitsync.config_loader import load_destination_config

    config = load_destination_config(settings.destinations_file)
    for spec in config.destinations:
        ...
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from fitsync.models.fitbit import BodyMetric

logger = logging.getLogger("fitsync.config")

DEFAULT_DESTINATION_ID = "csv"
DEFAULT_DESTINATION_PATH = "basic.csv"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Base class for configuration problems; fatal at startup."""


class ConfigMissingError(ConfigError):
    """A required setting or file is absent."""


class ConfigMalformedError(ConfigError, ValueError):
    """A configuration or cache file failed to parse or validate."""


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


class DestinationKind(str, Enum):
    """Closed set of sink kinds.  Extend here and in the sink registry."""

    FILE_SERIES = "file-series"


@dataclass(frozen=True)
class DestinationSpec:
    """One configured destination.

    Attributes:
        id:     Unique, stable identifier; keys the checkpoint cache.
        kind:   Sink kind.
        path:   Backing file for file-series sinks (absolute).
        metric: Which Fitbit body series this destination receives.
    """

    id: str
    kind: DestinationKind
    path: Path
    metric: BodyMetric = BodyMetric.WEIGHT


@dataclass
class DestinationConfig:
    """All configured destinations, in file order."""

    destinations: list[DestinationSpec]

    def get(self, destination_id: str) -> DestinationSpec | None:
        return next((d for d in self.destinations if d.id == destination_id), None)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


def _load_json(path: Path) -> Any:
    """Read and parse a JSON file.

    Raises:
        ConfigMalformedError: If the file cannot be read or is not valid JSON.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigMalformedError(f"Cannot read {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigMalformedError(f"JSON parse error in {path}: {exc}") from exc


def _validate_and_build(raw: Any, base_dir: Path) -> DestinationConfig:
    """Validate the raw JSON and construct a DestinationConfig.

    Relative paths are resolved against ``base_dir``.

    Raises:
        ConfigMalformedError: Listing every problem found.
    """
    errors: list[str] = []

    if not isinstance(raw, dict) or not isinstance(raw.get("destinations"), list):
        raise ConfigMalformedError("destinations config must be an object with a 'destinations' list")

    specs: list[DestinationSpec] = []
    seen: set[str] = set()
    for i, entry in enumerate(raw["destinations"]):
        where = f"destinations[{i}]"
        if not isinstance(entry, dict):
            errors.append(f"{where} must be an object")
            continue

        dest_id = entry.get("id")
        if not isinstance(dest_id, str) or not dest_id:
            errors.append(f"{where}.id must be a non-empty string")
            continue
        if dest_id in seen:
            errors.append(f"{where}.id '{dest_id}' is duplicated")
            continue
        seen.add(dest_id)

        try:
            kind = DestinationKind(entry.get("kind"))
        except ValueError:
            errors.append(
                f"{where}.kind {entry.get('kind')!r} is not one of "
                f"{[k.value for k in DestinationKind]}"
            )
            continue

        path = entry.get("path")
        if not isinstance(path, str) or not path:
            errors.append(f"{where}.path must be a non-empty string")
            continue

        try:
            metric = BodyMetric(entry.get("metric", BodyMetric.WEIGHT.value))
        except ValueError:
            errors.append(
                f"{where}.metric {entry.get('metric')!r} is not one of "
                f"{[m.value for m in BodyMetric]}"
            )
            continue

        resolved = Path(path).expanduser()
        if not resolved.is_absolute():
            resolved = base_dir / resolved
        specs.append(DestinationSpec(id=dest_id, kind=kind, path=resolved, metric=metric))

    if errors:
        raise ConfigMalformedError(
            f"destinations config has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return DestinationConfig(destinations=specs)


def default_destination_config(base_dir: Path) -> DestinationConfig:
    """The single file-series destination used when no config file exists."""
    return DestinationConfig(
        destinations=[
            DestinationSpec(
                id=DEFAULT_DESTINATION_ID,
                kind=DestinationKind.FILE_SERIES,
                path=base_dir / DEFAULT_DESTINATION_PATH,
            )
        ]
    )


def load_destination_config(path: Path) -> DestinationConfig:
    """Load and validate the destinations file.

    Args:
        path: Location of destinations.json.

    Returns:
        Validated DestinationConfig (the default one if the file is absent).
    """
    if not path.exists():
        logger.info("No destinations config at %s, using default destination", path)
        return default_destination_config(path.parent)

    config = _validate_and_build(_load_json(path), path.parent)
    logger.info("Loaded %d destination(s) from %s", len(config.destinations), path)
    return config


# ---------------------------------------------------------------------------
# Checkpoint cache
# ---------------------------------------------------------------------------


def _parse_instant(value: Any, where: str) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigMalformedError(f"{where} must be an ISO-8601 string or null")
    try:
        instant = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ConfigMalformedError(f"{where} is not ISO-8601: {value!r}") from exc
    # Naive instants are taken as UTC
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


def load_checkpoints(path: Path) -> dict[str, datetime | None]:
    """Read the checkpoint cache; a missing file means no checkpoints."""
    if not path.exists():
        return {}

    raw = _load_json(path)
    if not isinstance(raw, dict) or not isinstance(raw.get("data", {}), dict):
        raise ConfigMalformedError(f"{path} must be an object with a 'data' mapping")

    checkpoints: dict[str, datetime | None] = {}
    for dest_id, entry in raw.get("data", {}).items():
        if not isinstance(entry, dict):
            raise ConfigMalformedError(f"{path}: data.{dest_id} must be an object")
        checkpoints[dest_id] = _parse_instant(entry.get("last_synced"), f"data.{dest_id}.last_synced")
    return checkpoints


def save_checkpoints(path: Path, checkpoints: dict[str, datetime | None]) -> None:
    """Rewrite the checkpoint cache in full.

    Raises:
        OSError: If the cache directory or file cannot be written.
    """
    payload = {
        "data": {
            dest_id: {"last_synced": instant.isoformat() if instant else None}
            for dest_id, instant in checkpoints.items()
        }
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

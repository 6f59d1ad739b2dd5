"""Time series compression and deduplication.

Every append to a destination merges the stored series with the incoming
points and runs ``compress`` over the result before it is written back.
This is what makes re-walking an already-synced window harmless.

Rules, applied to the merged series in order:
    1. Stable sort by date, so for equal dates the later input wins.
    2. A point on the same date as the last retained point replaces it, and
       is itself dropped if that leaves it equal to the point before.
    3. A point whose value is within ``VALUE_TOLERANCE`` of the last
       retained value is dropped as a redundant reading.
    4. Anything else is retained.

The output keeps only value transitions, in ascending date order, with no
duplicate dates.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

from fitsync.base import TimeSeriesPoint

logger = logging.getLogger("fitsync.sync.dedup")

#: Absolute tolerance under which two readings count as the same value.
VALUE_TOLERANCE = 1e-4


def values_equal(a: float, b: float, tolerance: float = VALUE_TOLERANCE) -> bool:
    return math.isclose(a, b, rel_tol=0.0, abs_tol=tolerance)


def compress(
    points: Iterable[TimeSeriesPoint], tolerance: float = VALUE_TOLERANCE
) -> list[TimeSeriesPoint]:
    """Merge, deduplicate and compress a time series.

    Pure and deterministic: ``compress(compress(p)) == compress(p)``.

    Args:
        points:    Merged series, existing points first, incoming points last.
        tolerance: Absolute value tolerance for dropping redundant readings.

    Returns:
        Retained points, ascending by date, unique per date.
    """
    ordered = sorted(points, key=lambda p: p.timestamp)

    retained: list[TimeSeriesPoint] = []
    for point in ordered:
        if not retained:
            retained.append(point)
            continue

        last = retained[-1]
        if point.timestamp == last.timestamp:
            retained[-1] = point
            # A replacement can make the point redundant against its predecessor
            if len(retained) > 1 and values_equal(point.value, retained[-2].value, tolerance):
                retained.pop()
        elif values_equal(point.value, last.value, tolerance):
            continue
        else:
            retained.append(point)

    logger.debug("Compressed %d point(s) to %d", len(ordered), len(retained))
    return retained

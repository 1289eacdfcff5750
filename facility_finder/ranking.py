"""Turn enriched candidates into the short list returned to the user."""

from __future__ import annotations

import math
from typing import Mapping, Optional, Sequence

from .errors import OpenRouteError
from .models import RankedFacility, RouteMetrics

STATUS_PRIORITY: dict[str, int] = {
    "open": 1,
    "crowded": 2,
    "closed": 3,
}
UNKNOWN_STATUS_PRIORITY = 4


def status_priority(status: Optional[str]) -> int:
    """Return the sort priority for *status*; unknown or missing statuses sort last."""

    if not status:
        return UNKNOWN_STATUS_PRIORITY
    return STATUS_PRIORITY.get(status.strip().lower(), UNKNOWN_STATUS_PRIORITY)


def attach_metrics(
    candidates: Sequence[RankedFacility],
    metrics: Mapping[int, RouteMetrics],
) -> list[RankedFacility]:
    """Copy driving distance/time onto each candidate by its request index.

    Every candidate index must be present in *metrics*; a missing key means
    the matrix response did not cover the request.
    """

    missing = [index for index in range(len(candidates)) if index not in metrics]
    if missing:
        raise OpenRouteError(f"Matrix response is missing destinations {missing}")

    for index, candidate in enumerate(candidates):
        entry = metrics[index]
        candidate.distance = entry.distance_km
        candidate.time = entry.minutes
    return list(candidates)


def _distance_key(candidate: RankedFacility) -> float:
    return math.inf if candidate.distance is None else candidate.distance


def rank_facilities(
    candidates: Sequence[RankedFacility],
    *,
    limit: int = 3,
    by_status: bool = True,
) -> list[RankedFacility]:
    """Sort by (status priority, driving distance) and keep the first *limit*.

    ``sorted`` is stable, so ties keep their input (geodesic) order.
    """

    if by_status:
        for candidate in candidates:
            candidate.priority = status_priority(candidate.facility.status)
        ordered = sorted(candidates, key=lambda c: (c.priority, _distance_key(c)))
    else:
        for candidate in candidates:
            candidate.priority = None
        ordered = sorted(candidates, key=_distance_key)
    return ordered[:limit]

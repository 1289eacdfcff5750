"""Request pipelines: nearest facilities, facility detail, and parameter parsing."""

from __future__ import annotations

import logging
import math
from typing import Any, Optional, Protocol, Sequence

from .errors import NotFoundError, ValidationError
from .models import (
    MAX_FACILITY_ID,
    Facility,
    FacilityDetail,
    RankedFacility,
    Review,
    RouteMetrics,
)
from .ranking import attach_metrics, rank_facilities

logger = logging.getLogger(__name__)

LatLon = tuple[float, float]


class FacilitySource(Protocol):
    async def nearest_of_type(
        self, facility_type: str, lat: float, lon: float, *, limit: int = 20
    ) -> list[RankedFacility]: ...

    async def get_facility(self, facility_id: int) -> Optional[Facility]: ...

    async def list_reviews(self, facility_id: int) -> list[Review]: ...


class MatrixSource(Protocol):
    async def driving_matrix(
        self, origin: LatLon, destinations: Sequence[LatLon]
    ) -> dict[int, RouteMetrics]: ...


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_text(value: Any, name: str) -> str:
    if _is_blank(value):
        raise ValidationError(f"{name} is required")
    return str(value).strip()


def parse_coordinate(value: Any, name: str, *, limit: float) -> float:
    """Parse a latitude (``limit=90``) or longitude (``limit=180``).

    Zero is a valid coordinate; only absent or blank values count as missing.
    """

    if _is_blank(value) or isinstance(value, bool):
        raise ValidationError(f"{name} is required")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number") from None
    if not math.isfinite(number) or not -limit <= number <= limit:
        raise ValidationError(f"{name} must be between -{limit:g} and {limit:g}")
    return number


def parse_position(lat: Any, lon: Any, *, prefix: str = "") -> LatLon:
    lat_name = f"{prefix}Lat" if prefix else "lat"
    lon_name = f"{prefix}Lon" if prefix else "lon"
    return (
        parse_coordinate(lat, lat_name, limit=90),
        parse_coordinate(lon, lon_name, limit=180),
    )


def parse_facility_id(value: Any) -> int:
    try:
        facility_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError("Facility id must be an integer") from None
    if facility_id < 0:
        raise ValidationError("Facility id must be an integer")
    return facility_id


async def find_nearest(
    store: FacilitySource,
    router: MatrixSource,
    facility_type: str,
    position: LatLon,
    *,
    candidate_limit: int = 20,
    result_limit: int = 3,
    by_status: bool = True,
) -> list[RankedFacility]:
    """Query candidates, enrich them with driving metrics and rank them.

    Any store or routing failure propagates; nothing partial is returned.
    """

    lat, lon = position
    candidates = await store.nearest_of_type(facility_type, lat, lon, limit=candidate_limit)
    if not candidates:
        return []

    candidates = candidates[:candidate_limit]
    metrics = await router.driving_matrix(
        position, [candidate.facility.position for candidate in candidates]
    )
    enriched = attach_metrics(candidates, metrics)
    ranked = rank_facilities(enriched, limit=result_limit, by_status=by_status)
    logger.info(
        "Ranked %s of %s %r candidate(s) near (%.5f, %.5f)",
        len(ranked),
        len(candidates),
        facility_type,
        lat,
        lon,
    )
    return ranked


def average_rating(reviews: Sequence[Review], fallback: float) -> float:
    """Mean review rating, or *fallback* when there are no reviews."""

    if not reviews:
        return fallback
    return sum(review.rating for review in reviews) / len(reviews)


async def facility_detail(store: FacilitySource, facility_id: int) -> FacilityDetail:
    if not 0 <= facility_id <= MAX_FACILITY_ID:
        raise NotFoundError("Facility not found")
    facility = await store.get_facility(facility_id)
    if facility is None:
        raise NotFoundError("Facility not found")
    reviews = await store.list_reviews(facility_id)
    return FacilityDetail(
        facility=facility,
        reviews=reviews,
        average_rating=average_rating(reviews, facility.ratings),
    )

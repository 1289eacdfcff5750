"""Data models shared by the store, the ranking pipeline and the HTTP layer."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any, Mapping, Optional

# Facility ids live in a Postgres INTEGER (int4) column.
MAX_FACILITY_ID = 2**31 - 1


@dataclass(slots=True)
class Facility:
    """A facility row as stored in the ``facilities`` table."""

    id: int
    name: str
    address: str
    type: str
    latitude: float
    longitude: float
    status: Optional[str]
    ratings: float
    contact_call: Optional[str] = None
    contact_whatsapp: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Facility":
        return cls(
            id=int(row["id"]),
            name=row["name"],
            address=row.get("address") or "",
            type=row["type"],
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            status=row.get("status"),
            ratings=float(row.get("ratings") or 0.0),
            contact_call=row.get("contact_call"),
            contact_whatsapp=row.get("contact_whatsapp"),
        )

    @property
    def position(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Review:
    """A single user review of a facility."""

    id: int
    facility_id: int
    user_name: str
    rating: float
    review: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Review":
        return cls(
            id=int(row["id"]),
            facility_id=int(row["facility_id"]),
            user_name=row.get("user_name") or "",
            rating=float(row["rating"]),
            review=row.get("review") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True, frozen=True)
class RouteMetrics:
    """Driving distance (km) and duration (s) from the requester to one destination."""

    distance_km: Optional[float]
    duration_s: Optional[float]

    @property
    def minutes(self) -> Optional[int]:
        if self.duration_s is None:
            return None
        return int(math.floor(self.duration_s / 60 + 0.5))


@dataclass(slots=True)
class RankedFacility:
    """A candidate facility enriched with distance, time and status priority."""

    facility: Facility
    geo_distance: Optional[float] = None
    distance: Optional[float] = None
    time: Optional[int] = None
    priority: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        payload = self.facility.to_dict()
        payload["geo_distance"] = self.geo_distance
        payload["distance"] = self.distance
        payload["time"] = self.time
        if self.priority is not None:
            payload["priority"] = self.priority
        return payload


@dataclass(slots=True)
class FacilityDetail:
    """A facility together with its reviews and the derived average rating."""

    facility: Facility
    reviews: list[Review] = field(default_factory=list)
    average_rating: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "facility": self.facility.to_dict(),
            "reviews": [review.to_dict() for review in self.reviews],
            "averageRating": self.average_rating,
        }

from __future__ import annotations

from typing import Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from facility_finder.config import Settings
from facility_finder.models import Facility, RankedFacility, Review, RouteMetrics
from web.app import create_app


def make_facility(
    facility_id: int,
    *,
    status: Optional[str] = "Open",
    lat: float = 4.8,
    lon: float = 7.0,
    ratings: float = 4.0,
    facility_type: str = "hospital",
) -> Facility:
    return Facility(
        id=facility_id,
        name=f"Facility {facility_id}",
        address=f"{facility_id} Aba Road",
        type=facility_type,
        latitude=lat,
        longitude=lon,
        status=status,
        ratings=ratings,
        contact_call="+2348000000000",
        contact_whatsapp="2348000000000",
    )


class FakeStore:
    """In-memory stand-in for FacilityStore."""

    def __init__(self, facilities: Sequence[Facility] = (), reviews: Sequence[Review] = ()) -> None:
        self.facilities = list(facilities)
        self.reviews = list(reviews)
        self.queries: list[tuple[str, float, float, int]] = []
        self.error: Exception | None = None

    async def nearest_of_type(self, facility_type, lat, lon, *, limit=20):
        self.queries.append((facility_type, lat, lon, limit))
        if self.error is not None:
            raise self.error
        matches = [f for f in self.facilities if f.type == facility_type]
        return [RankedFacility(facility=f, geo_distance=float(i)) for i, f in enumerate(matches[:limit])]

    async def get_facility(self, facility_id):
        if self.error is not None:
            raise self.error
        for facility in self.facilities:
            if facility.id == facility_id:
                return facility
        return None

    async def list_reviews(self, facility_id):
        return [r for r in self.reviews if r.facility_id == facility_id]

    async def ping(self):
        if self.error is not None:
            raise self.error
        return "2026-01-01 00:00:00+00:00"


class FakeRouter:
    """In-memory stand-in for OpenRouteClient.

    ``distances`` maps a destination (lat, lon) to its driving distance in km;
    duration is 90 seconds per km.
    """

    def __init__(self, distances: dict[tuple[float, float], Optional[float]] | None = None) -> None:
        self.distances = distances or {}
        self.matrix_calls: list[tuple[tuple[float, float], list[tuple[float, float]]]] = []
        self.geocode_result: Optional[tuple[float, float]] = None
        self.directions_result: dict = {}
        self.directions_calls: list[tuple[tuple[float, float], tuple[float, float]]] = []
        self.error: Exception | None = None

    async def driving_matrix(self, origin, destinations):
        self.matrix_calls.append((origin, list(destinations)))
        if self.error is not None:
            raise self.error
        metrics = {}
        for index, point in enumerate(destinations):
            km = self.distances.get(tuple(point), 1.0)
            metrics[index] = RouteMetrics(
                distance_km=km,
                duration_s=None if km is None else km * 90,
            )
        return metrics

    async def geocode(self, query):
        if self.error is not None:
            raise self.error
        return self.geocode_result

    async def directions(self, start, end):
        self.directions_calls.append((start, end))
        if self.error is not None:
            raise self.error
        return self.directions_result


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def router() -> FakeRouter:
    return FakeRouter()


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="postgresql://test/db", ors_api_key="test-key")


@pytest.fixture
def client(settings, store, router):
    app = create_app(settings, store=store, router=router)
    with TestClient(app) as test_client:
        yield test_client

"""Location-based facility finder: ranking over PostGIS and OpenRouteService."""

from .errors import NotFoundError, OpenRouteError, StoreError, UpstreamError, ValidationError
from .models import Facility, FacilityDetail, RankedFacility, Review, RouteMetrics
from .openroute import OpenRouteClient
from .polyline import decode_polyline, encode_polyline
from .ranking import rank_facilities, status_priority
from .store import FacilityStore

__all__ = [
    "Facility",
    "FacilityDetail",
    "FacilityStore",
    "NotFoundError",
    "OpenRouteClient",
    "OpenRouteError",
    "RankedFacility",
    "Review",
    "RouteMetrics",
    "StoreError",
    "UpstreamError",
    "ValidationError",
    "decode_polyline",
    "encode_polyline",
    "rank_facilities",
    "status_priority",
]

"""Async client for the OpenRouteService matrix, geocoding and directions APIs."""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

import httpx

from .config import DEFAULT_ORS_BASE_URL, DEFAULT_ORS_PROFILE
from .errors import OpenRouteError
from .models import RouteMetrics

logger = logging.getLogger(__name__)

# Internal coordinate type: (lat, lon). ORS wants [lon, lat].
LatLon = tuple[float, float]

MAX_MATRIX_DESTINATIONS = 50


def _lon_lat(point: LatLon) -> list[float]:
    lat, lon = point
    return [float(lon), float(lat)]


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


class OpenRouteClient:
    """Thin adapter over ORS.

    Sole responsibility is talking HTTP to ORS and normalising its payloads;
    it never retries, and every failure surfaces as :class:`OpenRouteError`.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        base_url: str = DEFAULT_ORS_BASE_URL,
        profile: str = DEFAULT_ORS_PROFILE,
        connect_timeout: float = 5.0,
        read_timeout: float = 15.0,
        geocode_country: Optional[str] = None,
        geocode_bbox: Optional[tuple[float, float, float, float]] = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._profile = profile
        self._geocode_country = geocode_country
        self._geocode_bbox = geocode_bbox

        if client is None:
            timeout = httpx.Timeout(
                connect=connect_timeout,
                read=read_timeout,
                write=read_timeout,
                pool=connect_timeout,
            )
            client = httpx.AsyncClient(
                headers={"Accept": "application/json, application/geo+json"},
                timeout=timeout,
            )
        self._client = client

    async def __aenter__(self) -> "OpenRouteClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        if not self._api_key:
            return {}
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise OpenRouteError(
                f"ORS {path} returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise OpenRouteError(f"ORS {path} request failed: {exc}") from exc
        except ValueError as exc:
            raise OpenRouteError(f"ORS {path} returned invalid JSON") from exc

    async def driving_matrix(
        self,
        origin: LatLon,
        destinations: Sequence[LatLon],
    ) -> dict[int, RouteMetrics]:
        """Distance (km) and duration (s) from *origin* to every destination.

        One batched request; the result is keyed by the destination's index in
        *destinations* rather than left as parallel arrays.
        """

        if not destinations:
            return {}
        if len(destinations) > MAX_MATRIX_DESTINATIONS:
            raise ValueError(
                f"At most {MAX_MATRIX_DESTINATIONS} destinations per matrix request, got {len(destinations)}"
            )

        count = len(destinations)
        body = {
            "locations": [_lon_lat(origin)] + [_lon_lat(point) for point in destinations],
            "sources": [0],
            "destinations": list(range(1, count + 1)),
            "metrics": ["distance", "duration"],
            "units": "km",
        }
        data = await self._request(
            "POST",
            f"/v2/matrix/{self._profile}",
            json=body,
            headers=self._auth_headers(),
        )

        try:
            distances = data["distances"][0]
            durations = data["durations"][0]
        except (KeyError, IndexError, TypeError) as exc:
            raise OpenRouteError("Matrix response lacks distances/durations") from exc
        if not isinstance(distances, list) or not isinstance(durations, list):
            raise OpenRouteError("Matrix response rows are not lists")
        if len(distances) != count or len(durations) != count:
            raise OpenRouteError(
                f"Matrix response has {len(distances)}/{len(durations)} entries for {count} destinations"
            )

        try:
            return {
                index: RouteMetrics(
                    distance_km=_optional_float(distances[index]),
                    duration_s=_optional_float(durations[index]),
                )
                for index in range(count)
            }
        except (TypeError, ValueError) as exc:
            raise OpenRouteError("Matrix response has non-numeric entries") from exc

    def _geocode_params(self, query: str) -> dict[str, Any]:
        params: dict[str, Any] = {"text": query, "size": 1}
        if self._api_key:
            params["api_key"] = self._api_key
        if self._geocode_country:
            params["boundary.country"] = self._geocode_country
        if self._geocode_bbox:
            min_lon, min_lat, max_lon, max_lat = self._geocode_bbox
            params["boundary.rect.min_lon"] = min_lon
            params["boundary.rect.min_lat"] = min_lat
            params["boundary.rect.max_lon"] = max_lon
            params["boundary.rect.max_lat"] = max_lat
        return params

    async def geocode(self, query: str) -> Optional[LatLon]:
        """Return ``(lat, lon)`` of the best match for *query*, or None when nothing matched."""

        data = await self._request("GET", "/geocode/search", params=self._geocode_params(query))
        if not isinstance(data, dict):
            raise OpenRouteError("Geocode response is not a JSON object")
        features = data.get("features")
        if features is not None and not isinstance(features, list):
            raise OpenRouteError("Geocode features are not a list")
        if not features:
            logger.info("Geocode found no match for %r", query)
            return None
        try:
            lon, lat = features[0]["geometry"]["coordinates"][:2]
            return (float(lat), float(lon))
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise OpenRouteError("Geocode feature lacks coordinates") from exc

    async def directions(self, start: LatLon, end: LatLon) -> dict[str, Any]:
        """Route between two points; the ORS payload is returned untouched."""

        data = await self._request(
            "POST",
            f"/v2/directions/{self._profile}",
            json={"coordinates": [_lon_lat(start), _lon_lat(end)]},
            headers=self._auth_headers(),
        )
        if not isinstance(data, dict):
            raise OpenRouteError("Directions response is not a JSON object")
        return data

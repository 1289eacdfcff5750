"""FastAPI application exposing the facility finder JSON API."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from facility_finder.config import Settings, load_settings
from facility_finder.errors import (
    FacilityFinderError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from facility_finder.finder import (
    facility_detail,
    find_nearest,
    parse_facility_id,
    parse_position,
    require_text,
)
from facility_finder.openroute import OpenRouteClient
from facility_finder.polyline import decode_polyline
from facility_finder.store import FacilityStore

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
logging.getLogger("httpx").setLevel(logging.INFO)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

# Client-facing messages for upstream failures; details only go to the log.
GENERIC_ERRORS = {
    "/api/geocode": "Geocode error",
    "/api/directions": "Directions error",
}
DEFAULT_GENERIC_ERROR = "Server error"


def _generic_error(request: Request) -> str:
    return GENERIC_ERRORS.get(request.url.path, DEFAULT_GENERIC_ERROR)


def _is_truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


def _add_decoded_geometry(payload: dict[str, Any], precision: int) -> dict[str, Any]:
    for route in payload.get("routes") or []:
        geometry = route.get("geometry") if isinstance(route, dict) else None
        if isinstance(geometry, str):
            route["decoded_geometry"] = [list(point) for point in decode_polyline(geometry, precision)]
    return payload


def create_app(
    settings: Settings | None = None,
    *,
    store: Any = None,
    router: Any = None,
) -> FastAPI:
    """Build the application.

    *store* and *router* default to a :class:`FacilityStore` and an
    :class:`OpenRouteClient` created on startup and closed on shutdown;
    objects passed in are used as-is and left open.
    """

    settings = settings or load_settings()
    app = FastAPI(title="Facility Finder")
    app.state.settings = settings
    app.state.store = store
    app.state.router = router

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def _on_startup() -> None:
        if app.state.store is None:
            owned = FacilityStore(settings.database_url or "", pool_size=settings.db_pool_size)
            await owned.connect()
            app.state.store = owned
            app.state.owned_store = owned
        if app.state.router is None:
            if not settings.ors_api_key:
                logger.warning("ORS_API_KEY is not set; OpenRouteService calls will be rejected")
            owned_router = OpenRouteClient(
                settings.ors_api_key,
                base_url=settings.ors_base_url,
                profile=settings.ors_profile,
                connect_timeout=settings.http_connect_timeout,
                read_timeout=settings.http_read_timeout,
                geocode_country=settings.geocode_country,
                geocode_bbox=settings.geocode_bbox,
            )
            app.state.router = owned_router
            app.state.owned_router = owned_router
        scope = settings.geocode_country or "global"
        if settings.geocode_bbox:
            scope = f"{scope} bbox={settings.geocode_bbox}"
        logger.info(
            "Facility finder ready (candidates=%s, results=%s, rank_by_status=%s, geocode=%s)",
            settings.candidate_limit,
            settings.result_limit,
            settings.rank_by_status,
            scope,
        )

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        owned_router = getattr(app.state, "owned_router", None)
        if owned_router is not None:
            await owned_router.aclose()
            app.state.router = None
            app.state.owned_router = None
        owned = getattr(app.state, "owned_store", None)
        if owned is not None:
            await owned.close()
            app.state.store = None
            app.state.owned_store = None

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"error": "Invalid request parameters"}, status_code=400)

    @app.exception_handler(UpstreamError)
    async def _upstream_handler(request: Request, exc: UpstreamError) -> JSONResponse:
        logger.error("Upstream failure on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        return JSONResponse({"error": _generic_error(request)}, status_code=exc.status_code)

    @app.exception_handler(FacilityFinderError)
    async def _finder_error_handler(request: Request, exc: FacilityFinderError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unexpected_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse({"error": _generic_error(request)}, status_code=500)

    @app.get("/api/facilities")
    async def facilities(
        type: Optional[str] = None,
        lat: Optional[str] = None,
        lon: Optional[str] = None,
    ):
        if any(value is None or not value.strip() for value in (type, lat, lon)):
            raise ValidationError("Type, lat, and lon are required")
        facility_type = type.strip()
        position = parse_position(lat, lon)

        ranked = await find_nearest(
            app.state.store,
            app.state.router,
            facility_type,
            position,
            candidate_limit=settings.candidate_limit,
            result_limit=settings.result_limit,
            by_status=settings.rank_by_status,
        )
        return [item.to_dict() for item in ranked]

    @app.get("/api/facility/{facility_id}")
    async def facility(facility_id: str):
        detail = await facility_detail(app.state.store, parse_facility_id(facility_id))
        return detail.to_dict()

    @app.get("/api/geocode")
    async def geocode(text: Optional[str] = None):
        query = require_text(text, "Text")
        match = await app.state.router.geocode(query)
        if match is None:
            raise NotFoundError("Location not found")
        lat, lon = match
        return {"lat": lat, "lon": lon}

    @app.post("/api/directions")
    async def directions(request: Request, decoded: Optional[str] = None):
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            raise ValidationError("Coordinates required")

        start = parse_position(payload.get("startLat"), payload.get("startLon"), prefix="start")
        end = parse_position(payload.get("endLat"), payload.get("endLon"), prefix="end")
        result = await app.state.router.directions(start, end)
        if _is_truthy(decoded):
            result = _add_decoded_geometry(result, settings.polyline_precision)
        return result

    @app.get("/api/health")
    async def health():
        server_time = await app.state.store.ping()
        return {"status": "ok", "database": server_time}

    return app


app = create_app()

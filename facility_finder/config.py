"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_ORS_BASE_URL = "https://api.openrouteservice.org"
DEFAULT_ORS_PROFILE = "driving-car"
DEFAULT_PORT = 3000
DEFAULT_CANDIDATE_LIMIT = 20
MAX_CANDIDATE_LIMIT = 50
DEFAULT_RESULT_LIMIT = 3

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(slots=True, frozen=True)
class Settings:
    database_url: Optional[str] = None
    ors_api_key: Optional[str] = None
    ors_base_url: str = DEFAULT_ORS_BASE_URL
    ors_profile: str = DEFAULT_ORS_PROFILE
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"
    candidate_limit: int = DEFAULT_CANDIDATE_LIMIT
    result_limit: int = DEFAULT_RESULT_LIMIT
    rank_by_status: bool = True
    geocode_country: Optional[str] = None
    geocode_bbox: Optional[tuple[float, float, float, float]] = None
    polyline_precision: int = 5
    http_connect_timeout: float = 5.0
    http_read_timeout: float = 15.0
    db_pool_size: int = 5
    cors_origins: tuple[str, ...] = ("*",)


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    value = (env.get(name) or "").strip()
    return value or None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer %s=%r", name, value)
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric %s=%r", name, value)
        return default


def _env_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = (env.get(name) or "").strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def parse_bbox(raw: Optional[str]) -> Optional[tuple[float, float, float, float]]:
    """Parse ``min_lon,min_lat,max_lon,max_lat`` into a tuple."""

    if not raw:
        return None
    parts = [part.strip() for part in raw.split(",") if part.strip()]
    if len(parts) != 4:
        raise ValueError(f"GEOCODE_BBOX needs four comma-separated numbers, got {raw!r}")
    min_lon, min_lat, max_lon, max_lat = (float(part) for part in parts)
    if min_lon >= max_lon or min_lat >= max_lat:
        raise ValueError(f"GEOCODE_BBOX corners are out of order: {raw!r}")
    return (min_lon, min_lat, max_lon, max_lat)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from *env* (``os.environ`` after loading ``.env``)."""

    if env is None:
        load_dotenv()
        env = os.environ

    candidate_limit = _env_int(env, "CANDIDATE_LIMIT", DEFAULT_CANDIDATE_LIMIT)
    candidate_limit = max(1, min(candidate_limit, MAX_CANDIDATE_LIMIT))
    origins = [o.strip() for o in (env.get("CORS_ORIGINS") or "*").split(",") if o.strip()]
    country = _env_str(env, "GEOCODE_COUNTRY")

    return Settings(
        database_url=_env_str(env, "DATABASE_URL"),
        ors_api_key=_env_str(env, "ORS_API_KEY"),
        ors_base_url=(_env_str(env, "ORS_BASE_URL") or DEFAULT_ORS_BASE_URL).rstrip("/"),
        ors_profile=_env_str(env, "ORS_PROFILE") or DEFAULT_ORS_PROFILE,
        host=_env_str(env, "HOST") or "0.0.0.0",
        port=_env_int(env, "PORT", DEFAULT_PORT),
        log_level=(_env_str(env, "LOG_LEVEL") or "INFO").upper(),
        candidate_limit=candidate_limit,
        result_limit=max(1, _env_int(env, "RESULT_LIMIT", DEFAULT_RESULT_LIMIT)),
        rank_by_status=_env_bool(env, "RANK_BY_STATUS", True),
        geocode_country=country.upper() if country else None,
        geocode_bbox=parse_bbox(_env_str(env, "GEOCODE_BBOX")),
        polyline_precision=_env_int(env, "POLYLINE_PRECISION", 5),
        http_connect_timeout=_env_float(env, "HTTP_CONNECT_TIMEOUT", 5.0),
        http_read_timeout=_env_float(env, "HTTP_READ_TIMEOUT", 15.0),
        db_pool_size=max(1, _env_int(env, "DB_POOL_SIZE", 5)),
        cors_origins=tuple(origins) or ("*",),
    )

"""PostGIS-backed facility store built on SQLAlchemy's asyncio engine."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import (
    Column,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    select,
    text,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .config import MAX_CANDIDATE_LIMIT
from .errors import StoreError
from .models import MAX_FACILITY_ID, Facility, RankedFacility, Review

logger = logging.getLogger(__name__)

metadata = MetaData()

facilities = Table(
    "facilities",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(255), nullable=False),
    Column("address", Text),
    Column("type", String(100), nullable=False, index=True),
    Column("latitude", Float, nullable=False),
    Column("longitude", Float, nullable=False),
    Column("status", String(32)),
    Column("ratings", Float, nullable=False, default=0.0),
    Column("contact_call", String(50)),
    Column("contact_whatsapp", String(50)),
)

reviews = Table(
    "reviews",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("facility_id", Integer, ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("user_name", String(255)),
    Column("rating", Float, nullable=False),
    Column("review", Text),
)

# Geodesic distance in km from the requester to each facility of one type.
NEAREST_OF_TYPE_SQL = text(
    """
    SELECT f.*,
        ST_Distance(
            ST_MakePoint(:lon, :lat)::geography,
            ST_MakePoint(f.longitude, f.latitude)::geography
        ) / 1000 AS geo_distance
    FROM facilities AS f
    WHERE f.type = :type
    ORDER BY geo_distance ASC
    LIMIT :limit
    """
)


def async_database_url(url: str) -> str:
    """Point a plain ``postgres://`` URL at the asyncpg driver.

    asyncpg spells libpq's ``sslmode`` query parameter as ``ssl``.
    """

    parsed = make_url(url)
    if parsed.drivername in ("postgres", "postgresql", "postgresql+psycopg2"):
        parsed = parsed.set(drivername="postgresql+asyncpg")
    query = dict(parsed.query)
    sslmode = query.pop("sslmode", None)
    if sslmode is not None:
        query.setdefault("ssl", sslmode)
        parsed = parsed.set(query=query)
    return parsed.render_as_string(hide_password=False)


def clamp_candidate_limit(limit: int) -> int:
    """Keep the candidate prefix within 1..MAX_CANDIDATE_LIMIT."""

    return max(1, min(limit, MAX_CANDIDATE_LIMIT))


class FacilityStore:
    """Read access to facilities and reviews over a pooled async engine.

    The engine is created by :meth:`connect` and disposed by :meth:`close`;
    every query checks a connection out of the pool for its own duration.
    """

    def __init__(self, database_url: str, *, pool_size: int = 5, echo: bool = False) -> None:
        if not database_url:
            raise ValueError("DATABASE_URL is not set")
        self._url = async_database_url(database_url)
        self._pool_size = pool_size
        self._echo = echo
        self._engine: Optional[AsyncEngine] = None

    async def __aenter__(self) -> "FacilityStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("FacilityStore.connect() has not been called")
        return self._engine

    async def connect(self) -> None:
        if self._engine is None:
            self._engine = create_async_engine(
                self._url,
                pool_size=self._pool_size,
                pool_pre_ping=True,
                echo=self._echo,
            )
            logger.info("Database engine created (pool_size=%s)", self._pool_size)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info("Database engine disposed")

    async def ping(self) -> str:
        """Return the database server time; raises :class:`StoreError` when unreachable."""

        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT NOW()"))
                return str(result.scalar_one())
        except SQLAlchemyError as exc:
            raise StoreError("Database ping failed") from exc

    async def create_schema(self) -> None:
        """Enable PostGIS and create the tables when they are missing."""

        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("CREATE EXTENSION IF NOT EXISTS postgis"))
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as exc:
            raise StoreError("Schema creation failed") from exc

    async def nearest_of_type(
        self,
        facility_type: str,
        lat: float,
        lon: float,
        *,
        limit: int = 20,
    ) -> list[RankedFacility]:
        """Facilities of *facility_type* ordered by geodesic distance, at most *limit*."""

        limit = clamp_candidate_limit(limit)
        params = {"type": facility_type, "lat": lat, "lon": lon, "limit": limit}
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(NEAREST_OF_TYPE_SQL, params)
                rows = result.mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Facility query failed for type={facility_type!r}") from exc

        logger.debug("Found %s candidate(s) of type %r", len(rows), facility_type)
        return [_ranked_from_row(row) for row in rows]

    async def get_facility(self, facility_id: int) -> Optional[Facility]:
        if not 0 <= facility_id <= MAX_FACILITY_ID:
            return None
        query = select(facilities).where(facilities.c.id == facility_id)
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(query)
                row = result.mappings().first()
        except SQLAlchemyError as exc:
            raise StoreError(f"Facility lookup failed for id={facility_id}") from exc
        return Facility.from_row(row) if row is not None else None

    async def list_reviews(self, facility_id: int) -> list[Review]:
        if not 0 <= facility_id <= MAX_FACILITY_ID:
            return []
        query = (
            select(reviews)
            .where(reviews.c.facility_id == facility_id)
            .order_by(reviews.c.id)
        )
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(query)
                rows = result.mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(f"Review lookup failed for facility id={facility_id}") from exc
        return [Review.from_row(row) for row in rows]


def _ranked_from_row(row: Any) -> RankedFacility:
    geo = row.get("geo_distance")
    return RankedFacility(
        facility=Facility.from_row(row),
        geo_distance=float(geo) if geo is not None else None,
    )

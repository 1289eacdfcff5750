"""CLI entry point for the facility finder service."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Sequence

from .config import Settings, load_settings
from .errors import StoreError
from .polyline import decode_polyline
from .store import FacilityStore

logger = logging.getLogger(__name__)


def main(argv: Sequence[str] | None = None) -> int:
    """Execute the CLI."""

    settings = load_settings()
    args = _parse_args(argv, settings)
    _configure_logging(args.log_level)

    if args.command == "serve":
        return _serve(args)
    if args.command == "init-db":
        return _init_db(settings)
    if args.command == "decode":
        return _decode(args)
    raise SystemExit(f"Unknown command {args.command!r}")


def _parse_args(argv: Sequence[str] | None, settings: Settings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=settings.host, help="Interface to bind")
    serve.add_argument("--port", type=int, default=settings.port, help="Port to listen on")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")

    commands.add_parser("init-db", help="Enable PostGIS and create the facilities/reviews tables")

    decode = commands.add_parser("decode", help="Decode an encoded polyline to JSON coordinates")
    decode.add_argument("encoded", help="Encoded polyline string")
    decode.add_argument(
        "--precision",
        type=int,
        default=settings.polyline_precision,
        help="Decimal places the polyline was encoded with",
    )
    return parser.parse_args(argv)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(levelname)s %(message)s",
    )


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    logger.info("Starting server on %s:%s", args.host, args.port)
    uvicorn.run(
        "web.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )
    return 0


async def _create_schema(settings: Settings) -> str:
    async with FacilityStore(settings.database_url or "", pool_size=1) as store:
        await store.create_schema()
        return await store.ping()


def _init_db(settings: Settings) -> int:
    if not settings.database_url:
        logger.error("DATABASE_URL is not set")
        return 2
    try:
        server_time = asyncio.run(_create_schema(settings))
    except StoreError as exc:
        logger.error("Database initialisation failed: %s", exc.__cause__ or exc)
        return 1
    logger.info("Schema ready (database time %s)", server_time)
    return 0


def _decode(args: argparse.Namespace) -> int:
    try:
        points = decode_polyline(args.encoded, precision=args.precision)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    json.dump([list(point) for point in points], sys.stdout)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

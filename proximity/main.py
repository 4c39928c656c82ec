"""Command-line entrypoints for proximity ranking."""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
from dotenv import load_dotenv

try:
    import uvloop
except ImportError:  # pragma: no cover - uvloop optional on some platforms
    uvloop = None

from proximity.config import ConfigError, Settings, load_settings
from proximity.geo.cache import GeocodeCache
from proximity.geo.client import HttpGeocodingClient
from proximity.geo.distance import format_distance, haversine_distance
from proximity.geo.point import GeoPoint
from proximity.location.provider import HttpLocationQuery, UserLocationProvider
from proximity.observability.log import configure_logging
from proximity.observability.metrics import MetricsRegistry
from proximity.rank.engine import RankingEngine
from proximity.rank.nearby import NearbyService
from proximity.resolve.batch import BatchResolver
from proximity.resolve.resolver import CoordinateResolver

DEFAULT_SETTINGS = Path("config/settings.toml")
DEFAULT_LOGGING = Path("config/logging.yaml")


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="proximity", description="Nearest-first business ranking")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS), help="Path to settings TOML")
    sub = parser.add_subparsers(dest="command", required=True)

    rank = sub.add_parser("rank", help="Resolve coordinates and rank entities nearest first")
    rank.add_argument("--input", required=True, help="JSON file holding a list of entities")
    rank.add_argument("--lat", type=float, help="User latitude")
    rank.add_argument("--lng", type=float, help="User longitude")
    rank.add_argument("--ip-location", action="store_true", help="Query IP geolocation when no lat/lng given")
    rank.add_argument("--query", help="Free text filter")
    rank.add_argument("--category", help="Category filter")
    rank.add_argument("--limit", type=int, help="Maximum number of results")
    rank.add_argument("--popular", action="store_true", help="Popular near you: cap at ranking.popular_limit")
    rank.add_argument("--concurrency", type=int, help="Maximum concurrent geocode lookups")
    rank.add_argument("--timeout", type=float, help="Per-lookup timeout in seconds")

    geocode = sub.add_parser("geocode", help="Geocode a single address")
    geocode.add_argument("address")

    distance = sub.add_parser("distance", help="Great-circle distance between two points")
    for name in ("lat1", "lon1", "lat2", "lon2"):
        distance.add_argument(name, type=float)

    return parser


def _load_entities(path: Path) -> List[Dict[str, Any]]:
    payload = orjson.loads(path.read_bytes())
    if not isinstance(payload, list):
        raise SystemExit(f"Expected a JSON list of entities in {path}")
    return [item for item in payload if isinstance(item, dict)]


def _geocoder(settings: Settings, metrics: MetricsRegistry, timeout: Optional[float]) -> HttpGeocodingClient:
    return HttpGeocodingClient(
        base_url=settings.geocoder.base_url,
        user_agent=settings.geocoder.user_agent,
        timeout=timeout or settings.geocoder.timeout_seconds,
        country_codes=settings.geocoder.country_codes,
        metrics=metrics,
    )


def _locator(args: argparse.Namespace, settings: Settings, metrics: MetricsRegistry) -> UserLocationProvider:
    known = GeoPoint.from_values(args.lat, args.lng) or settings.location.known_point()
    query = None
    if args.ip_location:
        query = HttpLocationQuery(
            url=settings.location.ip_lookup_url,
            timeout=settings.location.timeout_seconds,
        )
    return UserLocationProvider(
        known,
        query,
        timeout=settings.location.timeout_seconds,
        metrics=metrics,
    )


async def run_rank(args: argparse.Namespace, settings: Settings) -> List[Dict[str, Any]]:
    """Execute the rank command end-to-end."""
    entities = _load_entities(Path(args.input))
    metrics = MetricsRegistry()
    timeout = args.timeout or settings.geocoder.timeout_seconds
    async with _geocoder(settings, metrics, timeout) as client:
        resolver = CoordinateResolver(cache=GeocodeCache(), client=client, timeout=timeout, metrics=metrics)
        batch = BatchResolver(
            resolver,
            concurrency=args.concurrency or settings.ranking.concurrency,
            metrics=metrics,
        )
        service = NearbyService(
            batch=batch,
            locator=_locator(args, settings, metrics),
            engine=RankingEngine(metrics=metrics),
            popular_limit=settings.ranking.popular_limit,
        )
        if args.popular:
            ranked = await service.popular_near_you(entities)
        else:
            ranked = await service.nearby(entities, query=args.query, category=args.category, limit=args.limit)
    for entity in ranked:
        entity["distance_label"] = format_distance(entity["distance_km"])
    return ranked


async def run_geocode(address: str, settings: Settings) -> Dict[str, Any]:
    async with _geocoder(settings, MetricsRegistry(), None) as client:
        point = await client.geocode(address)
    return {"address": address, "lat": point.lat if point else None, "lng": point.lng if point else None}


def _emit(payload: Any) -> None:
    sys.stdout.write(orjson.dumps(payload, option=orjson.OPT_INDENT_2).decode())
    sys.stdout.write("\n")


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(DEFAULT_LOGGING)
    try:
        settings = load_settings(Path(args.settings))
    except ConfigError as exc:
        raise SystemExit(f"Failed to load settings: {exc}")

    if uvloop is not None:
        uvloop.install()

    if args.command == "distance":
        _emit({"distance_km": haversine_distance(args.lat1, args.lon1, args.lat2, args.lon2)})
        return

    if args.command == "geocode":
        _emit(asyncio.run(run_geocode(args.address, settings)))
        return

    if args.command == "rank":
        _emit(asyncio.run(run_rank(args, settings)))


if __name__ == "__main__":
    main()

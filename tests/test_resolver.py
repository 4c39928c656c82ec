import asyncio

from proximity.geo.cache import GeocodeCache
from proximity.geo.point import GeoPoint
from proximity.observability.metrics import MetricsRegistry
from proximity.resolve.resolver import CoordinateResolver, ensure_coordinates


class CountingGeocoder:
    def __init__(self, results=None, *, delay: float = 0.0, failing=()):
        self._results = results or {}
        self._delay = delay
        self._failing = set(failing)
        self.calls = []

    async def geocode(self, address: str):
        self.calls.append(address)
        if self._delay:
            await asyncio.sleep(self._delay)
        if address in self._failing:
            raise RuntimeError("provider exploded")
        return self._results.get(address)


def _resolver(geocoder, **kwargs):
    return CoordinateResolver(cache=GeocodeCache(), client=geocoder, **kwargs)


def test_existing_coordinates_short_circuit():
    geocoder = CountingGeocoder()
    resolver = _resolver(geocoder)
    entity = {"id": 1, "address": "1 Main St", "coordinates": {"lat": 10, "lng": 20}}

    async def _run():
        first = await resolver.ensure_coordinates(entity)
        second = await resolver.ensure_coordinates(entity)
        assert first is entity and second is entity

    asyncio.run(_run())
    assert geocoder.calls == []
    assert entity["coordinates"] == {"lat": 10, "lng": 20}


def test_geocoded_entity_is_not_looked_up_twice():
    geocoder = CountingGeocoder({"1 Main St": GeoPoint(lat=1.0, lng=2.0)})
    resolver = _resolver(geocoder)
    entity = {"id": 1, "address": "1 Main St"}

    async def _run():
        await ensure_coordinates(entity, resolver)
        await ensure_coordinates(entity, resolver)

    asyncio.run(_run())
    assert entity["coordinates"] == {"lat": 1.0, "lng": 2.0}
    assert geocoder.calls == ["1 Main St"]


def test_alias_fields_follow_precedence():
    geocoder = CountingGeocoder()
    resolver = _resolver(geocoder)
    entities = [
        {"id": "a", "lat": 1.5, "lng": 2.5, "latitude": 9, "longitude": 9},
        {"id": "b", "latitude": 3, "longitude": 4},
        {"id": "c", "lat": 5, "lon": 6},
        {"id": "d", "location_lat": 7, "location_lng": 8},
        {"id": "e", "geo": {"latitude": 11, "longitude": 12}, "address": "ignored"},
        {"id": "f", "coordinates": {"latitude": 13, "longitude": 14}},
        {"id": "g", "lat": "1", "lng": "2"},
        {"id": "h", "lat": True, "lng": 2},
    ]

    async def _run():
        for entity in entities:
            await resolver.ensure_coordinates(entity)

    asyncio.run(_run())
    coords = {entity["id"]: entity.get("coordinates") for entity in entities}
    assert coords["a"] == {"lat": 1.5, "lng": 2.5}
    assert coords["b"] == {"lat": 3.0, "lng": 4.0}
    assert coords["c"] == {"lat": 5.0, "lng": 6.0}
    assert coords["d"] == {"lat": 7.0, "lng": 8.0}
    assert coords["e"] == {"lat": 11.0, "lng": 12.0}
    assert coords["f"] == {"lat": 13.0, "lng": 14.0}
    assert coords["g"] is None
    assert coords["h"] is None
    assert geocoder.calls == []


def test_location_string_is_used_as_address():
    geocoder = CountingGeocoder({"Market Square": GeoPoint(lat=4.0, lng=5.0)})
    entity = {"id": 1, "location": "  Market Square "}
    asyncio.run(_resolver(geocoder).ensure_coordinates(entity))
    assert entity["coordinates"] == {"lat": 4.0, "lng": 5.0}


def test_address_variants_hit_provider_once():
    geocoder = CountingGeocoder({"123 Main St": GeoPoint(lat=1.0, lng=1.0)}, delay=0.01)
    resolver = _resolver(geocoder)
    first = {"id": 1, "address": "123 Main St"}
    second = {"id": 2, "address": " 123 main st "}

    async def _run():
        await asyncio.gather(resolver.ensure_coordinates(first), resolver.ensure_coordinates(second))

    asyncio.run(_run())
    assert len(geocoder.calls) == 1
    assert first["coordinates"] == second["coordinates"] == {"lat": 1.0, "lng": 1.0}


def test_misses_are_cached_and_leave_entity_untouched():
    geocoder = CountingGeocoder()
    metrics = MetricsRegistry()
    resolver = _resolver(geocoder, metrics=metrics)
    entity = {"id": 1, "address": "Unknown Rd"}

    async def _run():
        await resolver.ensure_coordinates(entity)
        await resolver.ensure_coordinates(dict(entity))

    asyncio.run(_run())
    assert "coordinates" not in entity
    assert geocoder.calls == ["Unknown Rd"]
    assert "UNKNOWN RD" in resolver.cache
    assert metrics.get("cache_hits") == 1
    assert metrics.get("cache_misses") == 1


def test_provider_errors_and_timeouts_degrade_to_no_coordinates():
    failing = CountingGeocoder(failing={"Boom Ave"})
    slow = CountingGeocoder({"Slow Ln": GeoPoint(lat=1.0, lng=1.0)}, delay=1.0)
    broken = {"id": 1, "address": "Boom Ave"}
    late = {"id": 2, "address": "Slow Ln"}

    async def _run():
        await _resolver(failing).ensure_coordinates(broken)
        resolver = _resolver(slow, timeout=0.05)
        await resolver.ensure_coordinates(late)
        assert "Slow Ln" in resolver.cache
        assert resolver.cache.get("Slow Ln") is None

    asyncio.run(_run())
    assert "coordinates" not in broken
    assert "coordinates" not in late


def test_entities_without_location_data_pass_through():
    geocoder = CountingGeocoder()
    resolver = _resolver(geocoder)
    entity = {"id": 1, "name": "Mystery", "address": "   "}

    async def _run():
        assert await resolver.ensure_coordinates(entity) is entity
        assert await resolver.ensure_coordinates(None) is None

    asyncio.run(_run())
    assert entity == {"id": 1, "name": "Mystery", "address": "   "}
    assert geocoder.calls == []


def test_finite_out_of_range_coordinates_are_kept():
    geocoder = CountingGeocoder({"1 Main St": GeoPoint(lat=5.0, lng=5.0)})
    entity = {"id": 1, "coordinates": {"lat": 0, "lng": 181}, "address": "1 Main St"}
    aliased = {"id": 2, "lat": 0, "lng": 190}

    async def _run():
        resolver = _resolver(geocoder)
        await resolver.ensure_coordinates(entity)
        await resolver.ensure_coordinates(aliased)

    asyncio.run(_run())
    assert geocoder.calls == []
    assert entity["coordinates"] == {"lat": 0, "lng": 181}
    assert aliased["coordinates"] == {"lat": 0.0, "lng": 190.0}

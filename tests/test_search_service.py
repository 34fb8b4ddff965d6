import asyncio

import pytest

from repairfinder.models.dto import GeoPoint, RawTagRecord, SearchQuery
from repairfinder.services.result_cache import InMemoryResultCache
from repairfinder.services.search_service import (
    SearchService,
    build_overpass_query,
    parse_elements,
    to_service_record,
)
from tests.helpers import SF, GatedEndpointClient, StubEndpointClient, make_element

BIKE_SHOP = make_element(
    101, lat=37.78, lon=-122.42,
    tags={"name": "Mission Bicycle", "shop": "bicycle", "addr:street": "Valencia St", "addr:housenumber": "766"},
)
TAILOR = make_element(202, lat=37.86, lon=-122.42, tags={"name": "Golden Gate Tailors", "craft": "tailor"})
PIZZA = make_element(303, lat=37.771, lon=-122.42, tags={"name": "Joe's Pizza", "amenity": "restaurant"})
BAKERY = make_element(304, lat=37.775, lon=-122.42, tags={"name": "Corner Bakery", "shop": "bakery"})
FURNITURE = make_element(305, lat=37.79, lon=-122.42, tags={"name": "Oak Furniture Outlet", "shop": "furniture"})


def service_for(payload, clock=None):
    client = StubEndpointClient(payload)
    cache = InMemoryResultCache(ttl_seconds=300, clock=clock) if clock else InMemoryResultCache()
    return SearchService(client, cache), client


def test_overpass_query_covers_all_tags_and_geometries():
    query = build_overpass_query(SF, 20000)
    assert query.startswith("[out:json][timeout:40];(")
    assert query.endswith(");out body center;")
    assert "node[shop=electronics](around:20000,37.77,-122.42);" in query
    assert "way[craft=watchmaker](around:20000,37.77,-122.42);" in query
    assert "relation[shop=hardware](around:20000,37.77,-122.42);" in query
    assert query.count("(around:") == 13 * 3


@pytest.mark.parametrize("radius_km, radius_m", [(0.2, 1000), (20, 20000), (100, 40000)])
def test_radius_is_clamped(radius_km, radius_m):
    assert SearchQuery(point=SF, radius_km=radius_km).clamped_radius_m == radius_m


def test_parse_elements_drops_malformed_and_duplicates():
    payload = {
        "elements": [
            make_element(1, lat=37.0, lon=-122.0, tags={"name": "A", "shop": "computer"}),
            make_element(1, lat=37.0, lon=-122.0, tags={"name": "A", "shop": "computer"}),
            make_element(1, element_type="way", center={"lat": 37.1, "lon": -122.1}, tags={"name": "A", "shop": "computer"}),
            make_element(2, lat=37.0, lon=-122.0, tags={"shop": "computer"}),
            make_element(3, tags={"name": "No Coordinates", "shop": "computer"}),
            "not-an-element",
            {"type": "node", "id": 4, "lat": 37.0, "lon": -122.0, "tags": ["name", "shop"]},
            {"type": "way", "id": 5, "center": [37.0, -122.0], "tags": {"name": "Listy", "shop": "computer"}},
            {"type": "node", "id": {"ref": 6}, "lat": 37.0, "lon": -122.0, "tags": {"name": "Odd Id", "shop": "computer"}},
            make_element(7, lat=237.0, lon=-122.0, tags={"name": "Off The Map", "shop": "computer"}),
        ]
    }
    records = parse_elements(payload)
    assert [r.service_id for r in records] == ["osm-node-1", "osm-way-1"]
    assert records[1].lat == 37.1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "bad_element",
    [
        {"type": "node", "id": 8, "lat": 37.78, "lon": -122.42, "tags": ["name", "shop"]},
        {"type": "way", "id": 8, "center": [37.78, -122.42], "tags": {"name": "Bad Center", "shop": "bicycle"}},
        {"type": "node", "id": [8], "lat": 37.78, "lon": -122.42, "tags": {"name": "Bad Id", "shop": "bicycle"}},
        {"type": "node", "lat": 37.78, "lon": -122.42, "tags": {"name": "No Id", "shop": "bicycle"}},
    ],
)
async def test_malformed_element_does_not_sink_the_search(bad_element):
    service, _ = service_for({"elements": [bad_element, BIKE_SHOP]})

    results = await service.search(SF)

    assert [r.name for r in results] == ["Mission Bicycle"]


def test_service_record_fields():
    raw = RawTagRecord.from_element(
        make_element(9, lat=37.78, lon=-122.42, tags={"name": "Fixit", "craft": "electronics_repair", "contact:phone": "+1 555"})
    )
    record = to_service_record(raw, SF)
    assert record.id == "osm-node-9"
    assert record.address == "Address not available"
    assert record.type == "electronics_repair"
    assert record.phone == "+1 555"
    assert record.distance_km == pytest.approx(1.11, rel=0.01)
    assert record.distance_label == "1.1 km"


@pytest.mark.asyncio
async def test_bikes_search_returns_only_bicycle_shop():
    service, client = service_for({"elements": [TAILOR, BIKE_SHOP]})

    results = await service.search(GeoPoint(lat=37.77, lon=-122.42), category="bikes", query="", radius_km=20)

    assert [r.name for r in results] == ["Mission Bicycle"]
    assert results[0].distance_km < 2
    assert results[0].address == "Valencia St 766"
    assert len(client.queries) == 1


@pytest.mark.asyncio
async def test_results_sorted_by_distance():
    service, _ = service_for({"elements": [TAILOR, BIKE_SHOP, make_element(7, lat=37.771, lon=-122.42, tags={"name": "Cell Fix", "shop": "mobile_phone"})]})

    results = await service.search(SF)

    assert [r.name for r in results] == ["Cell Fix", "Mission Bicycle"]
    distances = [r.distance_km for r in results]
    assert distances == sorted(distances)


@pytest.mark.asyncio
async def test_zero_classified_falls_back_to_raw_set():
    service, _ = service_for({"elements": [BAKERY, PIZZA]})

    results = await service.search(SF)

    assert [r.name for r in results] == ["Joe's Pizza", "Corner Bakery"]


@pytest.mark.asyncio
async def test_fallbacks_combine_for_unmapped_category():
    # Nothing passes the classifier and "furniture" has no OSM mapping, so the
    # name match surfaces a shop neither filter was aimed at.
    service, _ = service_for({"elements": [PIZZA, FURNITURE]})

    results = await service.search(SF, category="furniture")

    assert [r.name for r in results] == ["Oak Furniture Outlet"]
    assert results[0].type == "furniture"


@pytest.mark.asyncio
async def test_free_text_filter_matches_name_address_or_type():
    service, _ = service_for({"elements": [BIKE_SHOP, make_element(8, lat=37.772, lon=-122.42, tags={"name": "PC Doctor", "shop": "computer"})]})

    assert [r.name for r in await service.search(SF, query="  VALENCIA ")] == ["Mission Bicycle"]
    assert [r.name for r in await service.search(SF, query="computer")] == ["PC Doctor"]


@pytest.mark.asyncio
async def test_results_truncated_to_twenty():
    elements = [
        make_element(i, lat=37.77 + i * 0.001, lon=-122.42, tags={"name": f"Shop {i}", "shop": "hardware"})
        for i in range(30, 0, -1)
    ]
    service, _ = service_for({"elements": elements})

    results = await service.search(SF)

    assert len(results) == 20
    assert results[0].name == "Shop 1"
    assert len({r.id for r in results}) == 20


@pytest.mark.asyncio
async def test_cache_hit_skips_backend(clock):
    service, client = service_for({"elements": [BIKE_SHOP]}, clock=clock)

    first = await service.search(GeoPoint(lat=37.7701, lon=-122.4201), category="bikes")
    clock.advance(299)
    second = await service.search(GeoPoint(lat=37.7704, lon=-122.4199), category="bikes")

    assert second == first
    assert len(client.queries) == 1


@pytest.mark.asyncio
async def test_cache_expires_after_ttl(clock):
    service, client = service_for({"elements": [BIKE_SHOP]}, clock=clock)

    await service.search(SF)
    clock.advance(301)
    await service.search(SF)

    assert len(client.queries) == 2


@pytest.mark.asyncio
async def test_different_parameters_miss_the_cache(clock):
    service, client = service_for({"elements": [BIKE_SHOP]}, clock=clock)

    await service.search(SF)
    await service.search(SF, category="bikes")
    await service.search(SF, query="mission")
    await service.search(SF, radius_km=5)

    assert len(client.queries) == 4


@pytest.mark.asyncio
async def test_backend_exhaustion_returns_empty_and_is_not_cached(exhausted_client):
    service = SearchService(exhausted_client, InMemoryResultCache())

    assert await service.search(SF) == []
    assert await service.search(SF) == []
    assert len(exhausted_client.queries) == 2


@pytest.mark.asyncio
async def test_deadline_bounds_a_stuck_fetch():
    class HangingClient:
        async def fetch(self, query):
            await asyncio.Event().wait()

    service = SearchService(HangingClient(), InMemoryResultCache(), deadline_seconds=0.01)

    assert await service.search(SF) == []


@pytest.mark.asyncio
async def test_concurrent_identical_searches_are_not_coalesced(clock):
    client = GatedEndpointClient({"elements": [BIKE_SHOP]})
    cache = InMemoryResultCache(ttl_seconds=300, clock=clock)
    service = SearchService(client, cache)

    first = asyncio.ensure_future(service.search(SF))
    second = asyncio.ensure_future(service.search(SF))
    for _ in range(50):
        if len(client.queries) == 2:
            break
        await asyncio.sleep(0)
    assert len(client.queries) == 2

    client.release.set()
    first_results, second_results = await asyncio.gather(first, second)

    assert [r.name for r in first_results] == ["Mission Bicycle"]
    assert second_results == first_results
    assert len(cache) == 1

    assert await service.search(SF) == first_results
    assert len(client.queries) == 2


@pytest.mark.asyncio
async def test_category_filter_agrees_with_classifier_on_case():
    shop = make_element(404, lat=37.771, lon=-122.42, tags={"name": "Cell Shop", "shop": "Mobile_Phone"})
    service, _ = service_for({"elements": [shop, BIKE_SHOP]})

    results = await service.search(SF, category="mobile")

    assert [r.name for r in results] == ["Cell Shop"]
    assert results[0].type == "Mobile_Phone"

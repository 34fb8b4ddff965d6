import httpx
import pytest
import respx

from repairfinder.core.errors import GeocodingError, LocationNotFoundError
from repairfinder.services.geocoding import Geocoder, parse_coordinates

NOMINATIM = {"host": "nominatim.openstreetmap.org", "path": "/search"}


@pytest.mark.parametrize(
    "text, expected",
    [
        ("37.77, -122.42", (37.77, -122.42)),
        ("16,0544 108,2208", (16.0544, 108.2208)),
        ("108.2208, 16.0544", (16.0544, 108.2208)),
    ],
)
def test_parse_coordinates(text, expected):
    point = parse_coordinates(text)
    assert (point.lat, point.lon) == pytest.approx(expected)


@pytest.mark.parametrize("text", ["San Francisco", "95, 200", "12"])
def test_parse_coordinates_rejects_non_coordinates(text):
    assert parse_coordinates(text) is None


@pytest.mark.asyncio
@respx.mock
async def test_geocode_returns_first_result():
    route = respx.get(**NOMINATIM).respond(200, json=[{"lat": "37.7792808", "lon": "-122.4192363"}])

    async with httpx.AsyncClient() as http:
        point = await Geocoder(http).geocode("  San Francisco City Hall ")

    assert (point.lat, point.lon) == pytest.approx((37.7792808, -122.4192363))
    params = route.calls.last.request.url.params
    assert params["q"] == "San Francisco City Hall"
    assert params["limit"] == "1"
    assert params["format"] == "json"
    assert route.calls.last.request.headers["user-agent"] == "RepairFirst/1.0"


@pytest.mark.asyncio
@respx.mock
async def test_geocode_no_results_is_location_not_found():
    respx.get(**NOMINATIM).respond(200, json=[])

    async with httpx.AsyncClient() as http:
        with pytest.raises(LocationNotFoundError):
            await Geocoder(http).geocode("Atlantis")


@pytest.mark.asyncio
@respx.mock
async def test_geocode_skips_request_for_coordinates():
    route = respx.get(**NOMINATIM).respond(200, json=[])

    async with httpx.AsyncClient() as http:
        point = await Geocoder(http).geocode("37.77, -122.42")

    assert point.lat == 37.77
    assert not route.called


@pytest.mark.asyncio
@respx.mock
async def test_geocode_server_error():
    respx.get(**NOMINATIM).respond(503)

    async with httpx.AsyncClient() as http:
        with pytest.raises(GeocodingError):
            await Geocoder(http).geocode("Paris")


@pytest.mark.asyncio
@respx.mock
async def test_geocode_transport_error():
    respx.get(**NOMINATIM).mock(side_effect=httpx.ConnectTimeout("slow"))

    async with httpx.AsyncClient() as http:
        with pytest.raises(GeocodingError):
            await Geocoder(http).geocode("Paris")


@pytest.mark.asyncio
async def test_geocode_empty_text():
    with pytest.raises(LocationNotFoundError):
        await Geocoder(http=None).geocode("   ")

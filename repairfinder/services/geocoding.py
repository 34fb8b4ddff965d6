# Turns a typed location into coordinates before a nearby search.
# One request per lookup against Nominatim; no retries.

import re
from typing import Optional

import httpx
import structlog
from pydantic import ValidationError

from repairfinder.core.config import settings
from repairfinder.core.errors import GeocodingError, LocationNotFoundError
from repairfinder.models.dto import GeoPoint

logger = structlog.get_logger(__name__)

# "lat,lon" or "lat, lon", comma decimals allowed (European style)
COORD_PATTERN = re.compile(r'^([-+]?\d{1,3}(?:[.,]\d+)?)[,\s]+([-+]?\d{1,3}(?:[.,]\d+)?)$')

def parse_coordinates(text: str) -> Optional[GeoPoint]:
    """
    Recognizes direct coordinate input such as "37.77, -122.42".

    Values are read as (lat, lon) unless the first one cannot be a latitude.
    Returns None when the text is not a valid coordinate pair.
    """
    match = COORD_PATTERN.match(text.strip())
    if not match:
        return None
    try:
        val1 = float(match.group(1).replace(',', '.'))
        val2 = float(match.group(2).replace(',', '.'))
    except ValueError:
        return None

    lat, lon = (val2, val1) if abs(val1) > 90 else (val1, val2)
    try:
        return GeoPoint(lat=lat, lon=lon)
    except ValidationError:
        return None

class Geocoder:
    def __init__(self, http: httpx.AsyncClient, url: Optional[str] = None):
        self.http = http
        self.url = url or settings.NOMINATIM_URL

    async def geocode(self, place: str) -> GeoPoint:
        """
        Resolve free text to the first matching coordinate.

        Raises:
            LocationNotFoundError: nothing matched the text.
            GeocodingError: the geocoding service failed or answered garbage.
        """
        query = (place or "").strip()
        if not query:
            raise LocationNotFoundError("Empty location")

        direct = parse_coordinates(query)
        if direct is not None:
            logger.info("geocode_direct_coordinates", lat=direct.lat, lon=direct.lon)
            return direct

        params = {"format": "json", "q": query, "limit": 1}
        try:
            response = await self.http.get(
                self.url,
                params=params,
                headers={"User-Agent": settings.USER_AGENT},
                timeout=settings.NOMINATIM_TIMEOUT,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("geocode_http_error", status_code=e.response.status_code, query=query)
            raise GeocodingError(f"Geocoding failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("geocode_transport_error", error=str(e), query=query)
            raise GeocodingError(f"Geocoding service unreachable: {e}") from e
        except ValueError as e:
            logger.error("geocode_decode_error", error=str(e), query=query)
            raise GeocodingError("Geocoding service returned a non-JSON body") from e

        if not isinstance(data, list) or not data:
            logger.info("geocode_not_found", query=query)
            raise LocationNotFoundError(f"Could not find location: {query}")

        first = data[0]
        try:
            return GeoPoint(lat=float(first["lat"]), lon=float(first["lon"]))
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.error("geocode_bad_result", error=str(e), query=query)
            raise GeocodingError("Geocoding result has no usable coordinates") from e

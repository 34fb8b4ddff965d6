# repairfinder/api/routes.py
# JSON endpoints the presentation layer calls: search, geocode, rank and
# the AI-assisted recommendation path.

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from typing import List

import structlog

from repairfinder.core.errors import GeocodingError, LocationNotFoundError
from repairfinder.models.dto import (
    CategoryInfo,
    ErrorResponse,
    GeoPoint,
    RankRequest,
    RankResponse,
    RecommendationRequest,
    RecommendationResponse,
    SearchRequest,
    SearchResponse,
)
from repairfinder.services.category_mapper import CategoryMapper
from repairfinder.services.geocoding import Geocoder
from repairfinder.services.ranker import rank_top
from repairfinder.services.recommendations import recommend_services
from repairfinder.services.search_service import SearchService

router = APIRouter()
logger = structlog.get_logger(__name__)

# ----------------------------------------------------------------------
# Dependencies (built once in the application lifespan)
# ----------------------------------------------------------------------
def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service

def get_geocoder(request: Request) -> Geocoder:
    return request.app.state.geocoder

async def _resolve_location(geocoder: Geocoder, place: str) -> GeoPoint:
    try:
        return await geocoder.geocode(place)
    except LocationNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=ErrorResponse(
                error="LOCATION_NOT_FOUND",
                detail="Could not find the specified location. Please try a different search.",
            ).model_dump(),
        )
    except GeocodingError as e:
        logger.error("geocoding_unavailable", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=ErrorResponse(
                error="GEOCODING_UNAVAILABLE",
                detail="The geocoding service is temporarily unavailable.",
            ).model_dump(),
        )

# ----------------------------------------------------------------------
# Categories
# ----------------------------------------------------------------------
@router.get("/categories", response_model=List[CategoryInfo])
async def list_categories():
    return CategoryMapper.list_categories()

# ----------------------------------------------------------------------
# Nearby Search
# ----------------------------------------------------------------------
@router.post(
    "/search",
    response_model=SearchResponse,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def search_nearby(
    data: SearchRequest,
    search_service: SearchService = Depends(get_search_service),
    geocoder: Geocoder = Depends(get_geocoder),
):
    """Nearest repair services to the given coordinates, or to a geocoded location text."""
    if data.lat is not None and data.lon is not None:
        point = GeoPoint(lat=data.lat, lon=data.lon)
    else:
        point = await _resolve_location(geocoder, data.location)

    results = await search_service.search(
        point,
        category=data.category,
        query=data.query,
        radius_km=data.radius_km,
    )
    return SearchResponse(results=results, user_lat=point.lat, user_lon=point.lon)

# ----------------------------------------------------------------------
# Geocoding
# ----------------------------------------------------------------------
@router.get(
    "/geocode",
    response_model=GeoPoint,
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def geocode(
    q: str = Query(..., min_length=1, description="Place name or address."),
    geocoder: Geocoder = Depends(get_geocoder),
):
    return await _resolve_location(geocoder, q)

# ----------------------------------------------------------------------
# Ranking / AI-assisted Recommendations
# ----------------------------------------------------------------------
@router.post("/rank", response_model=RankResponse)
async def rank(data: RankRequest):
    return RankResponse(results=rank_top(data.services, data.n))

@router.post("/recommendations", response_model=RecommendationResponse)
async def recommendations(
    data: RecommendationRequest,
    search_service: SearchService = Depends(get_search_service),
):
    """Closest repairers for a product analysed by the external vision service."""
    origin = None
    if data.lat is not None and data.lon is not None:
        origin = GeoPoint(lat=data.lat, lon=data.lon)

    services = await recommend_services(
        data.analysis,
        search_service=search_service,
        prefetched=data.repair_services,
        origin=origin,
    )
    return RecommendationResponse(
        recommendation=data.analysis.recommendation,
        category=CategoryMapper.resolve(data.analysis.category),
        services=services,
    )

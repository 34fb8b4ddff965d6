# Data models for the discovery core and the public API.

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, computed_field, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional, Union

from repairfinder.core.config import settings
from repairfinder.core.errors import MalformedRecordError
from repairfinder.utils.haversine import format_distance

ADDRESS_FALLBACK = "Address not available"
TYPE_FALLBACK = "repair"

# --- Core Value Types ---

class GeoPoint(BaseModel):
    """A WGS84 coordinate in decimal degrees."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, description="Latitude.")
    lon: float = Field(..., ge=-180, le=180, description="Longitude.")

class ServiceRecord(BaseModel):
    """A repair-capable business found near the search point."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Stable identifier derived from the OSM element.")
    name: str = Field(..., min_length=1, description="Business name.")
    address: str = Field(ADDRESS_FALLBACK, description="Display address.")
    lat: float = Field(..., description="Latitude.")
    lon: float = Field(..., description="Longitude.")
    distance_km: float = Field(..., ge=0, description="Distance from the search point.")
    type: str = Field(TYPE_FALLBACK, description="Primary OSM type tag value.")
    phone: Optional[str] = Field(None, description="Contact phone, when tagged.")

    @computed_field
    @property
    def distance_label(self) -> str:
        return format_distance(self.distance_km)

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(lat=self.lat, lon=self.lon)

class SearchQuery(BaseModel):
    """Normalized search parameters; used for cache keys and filtering."""
    model_config = ConfigDict(frozen=True)

    point: GeoPoint
    category: Optional[str] = None
    query: Optional[str] = None
    radius_km: float = settings.SEARCH_DEFAULT_RADIUS_KM

    @property
    def normalized_category(self) -> str:
        return self.category or "all"

    @property
    def normalized_query(self) -> str:
        return (self.query or "").strip().lower()

    @property
    def clamped_radius_m(self) -> int:
        radius_m = self.radius_km * 1000
        low = settings.SEARCH_MIN_RADIUS_KM * 1000
        high = settings.SEARCH_MAX_RADIUS_KM * 1000
        return int(max(low, min(radius_m, high)))

class CacheEntry(BaseModel):
    """Results stored for one cache key, stamped with the time they were fetched."""
    key: str
    timestamp: float
    results: List[ServiceRecord]

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.timestamp < ttl_seconds

class RawTagRecord(BaseModel):
    """An Overpass element as returned by the backend, before classification."""
    id: Union[int, str]
    element_type: str = "node"
    lat: Optional[float] = None
    lon: Optional[float] = None
    tags: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_element(cls, element: Dict[str, Any]) -> "RawTagRecord":
        element_id = element.get("id")
        if not isinstance(element_id, (int, str)) or isinstance(element_id, bool):
            raise MalformedRecordError(f"element id {element_id!r} is missing or not a scalar")
        # Ways and relations only carry a coordinate under "center" ("out center")
        center = element.get("center")
        if not isinstance(center, dict):
            center = {}
        tags = element.get("tags")
        if not isinstance(tags, dict):
            tags = {}
        lat = element.get("lat", center.get("lat"))
        lon = element.get("lon", center.get("lon"))
        try:
            return cls(
                id=element_id,
                element_type=str(element.get("type") or "node"),
                lat=lat if isinstance(lat, (int, float)) and not isinstance(lat, bool) else None,
                lon=lon if isinstance(lon, (int, float)) and not isinstance(lon, bool) else None,
                tags={str(k): str(v) for k, v in tags.items() if v is not None},
            )
        except ValidationError as e:
            raise MalformedRecordError(f"element {element_id!r}: {e.error_count()} invalid fields") from e

    @property
    def name(self) -> Optional[str]:
        return self.tags.get("name") or None

    @property
    def primary_type(self) -> str:
        return self.tags.get("craft") or self.tags.get("amenity") or self.tags.get("shop") or ""

    @property
    def service_id(self) -> str:
        return f"osm-{self.element_type}-{self.id}"

    @property
    def address(self) -> str:
        parts = [self.tags.get("addr:street"), self.tags.get("addr:housenumber"), self.tags.get("addr:city")]
        return " ".join(p for p in parts if p) or ADDRESS_FALLBACK

    @property
    def phone(self) -> Optional[str]:
        return self.tags.get("phone") or self.tags.get("contact:phone")

# --- AI-assisted Path ---

class SuggestedService(BaseModel):
    """A service supplied from outside the search, e.g. by the product analyzer."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str = "Unknown"
    address: str = ADDRESS_FALLBACK
    lat: Optional[float] = None
    lon: Optional[float] = None
    distance_km: Optional[float] = Field(None, validation_alias=AliasChoices("distance_km", "distanceKm"))
    distance_label: Optional[str] = Field(None, validation_alias=AliasChoices("distance_label", "distance"))
    type: str = TYPE_FALLBACK
    phone: Optional[str] = None

    @classmethod
    def from_record(cls, record: ServiceRecord) -> "SuggestedService":
        return cls(
            id=record.id,
            name=record.name,
            address=record.address,
            lat=record.lat,
            lon=record.lon,
            distance_km=record.distance_km,
            distance_label=record.distance_label,
            type=record.type,
            phone=record.phone,
        )

class PriceRange(BaseModel):
    min: float
    max: float

class SuggestedProduct(BaseModel):
    name: str
    price_range: Optional[str] = Field(None, validation_alias=AliasChoices("price_range", "priceRange"))

class ProductAnalysis(BaseModel):
    """Output of the external vision classifier. Only consumed, never produced here."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_name: str = "Unknown Product"
    category: str = "general"
    condition: str = ""
    recommendation: Literal["repair", "replace"] = "repair"
    confidence: float = Field(0.5, ge=0, le=1)
    reasoning: str = ""
    repair_estimate: Optional[str] = None
    replacement_price_range: Optional[PriceRange] = None
    suggested_products: List[SuggestedProduct] = Field(default_factory=list)

# --- API Request/Response Models ---

class CategoryInfo(BaseModel):
    id: str
    label: str

class SearchRequest(BaseModel):
    """Request body for /api/search. Either coordinates or a location text is required."""
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)
    location: Optional[str] = Field(None, description="Free-text place to geocode when no coordinates are given.")
    category: Optional[str] = Field(None, description="Category id, or 'all'.")
    query: Optional[str] = Field(None, description="Free-text filter on name, address or type.")
    radius_km: float = Field(settings.SEARCH_DEFAULT_RADIUS_KM, gt=0, description="Search radius; clamped to 1-40 km.")

    @model_validator(mode="after")
    def _require_position(self) -> "SearchRequest":
        has_point = self.lat is not None and self.lon is not None
        if not has_point and not (self.location and self.location.strip()):
            raise ValueError("Provide lat and lon, or a location to geocode.")
        return self

class SearchResponse(BaseModel):
    results: List[ServiceRecord] = Field(..., description="Nearest services, closest first.")
    user_lat: float
    user_lon: float

class RankRequest(BaseModel):
    services: List[SuggestedService]
    n: int = Field(settings.RANK_TOP_N, ge=1)

class RankResponse(BaseModel):
    results: List[SuggestedService]

class RecommendationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    analysis: ProductAnalysis
    repair_services: List[SuggestedService] = Field(
        default_factory=list, validation_alias=AliasChoices("repair_services", "repairServices")
    )
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)

class RecommendationResponse(BaseModel):
    recommendation: Literal["repair", "replace"]
    category: Optional[str] = None
    services: List[SuggestedService]

# --- Error Response Model ---

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="A machine-readable error code.")
    detail: str = Field(..., description="A human-readable explanation.")

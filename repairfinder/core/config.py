# Runtime configuration for the repair-service discovery API.
# Every field can be overridden through the environment or a local .env file.

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "RepairFirst Finder"
    VERSION: str = "0.2.0"
    BRIEF_DESCRIPTION: str = "Finds nearby repair-capable businesses from OpenStreetMap data, ranked by distance."

    ENV: str = Field("development", description="Application environment (e.g., production, development)")
    LOG_LEVEL: str = Field("INFO", description="Root log level (DEBUG, INFO, WARNING, ...)")
    USER_AGENT: str = Field("RepairFirst/1.0", description="User-Agent sent to OSM services")

    # --- Overpass (geodata backend) ---
    OVERPASS_ENDPOINTS: List[str] = Field(
        [
            "https://overpass-api.de/api/interpreter",
            "https://overpass.kumi.systems/api/interpreter",
            "https://overpass.openstreetmap.fr/api/interpreter",
        ],
        description="Interchangeable Overpass interpreter URLs, tried round-robin",
    )
    OVERPASS_QUERY_TIMEOUT: int = 40 # seconds, sent inside the query header
    OVERPASS_HTTP_TIMEOUT: float = 45.0 # seconds, per attempt
    OVERPASS_MAX_ATTEMPTS: int = 6

    # Backoff (seconds)
    RATE_LIMIT_BACKOFF_BASE: float = 0.5
    TRANSPORT_BACKOFF_BASE: float = 0.4
    STATUS_BACKOFF_STEP: float = 0.3
    BACKOFF_CAP: float = 10.0

    # --- Nominatim (geocoding backend) ---
    NOMINATIM_URL: str = "https://nominatim.openstreetmap.org/search"
    NOMINATIM_TIMEOUT: float = 10.0

    # --- Search ---
    SEARCH_DEFAULT_RADIUS_KM: float = 20.0
    SEARCH_MIN_RADIUS_KM: float = 1.0
    SEARCH_MAX_RADIUS_KM: float = 40.0
    SEARCH_MAX_RESULTS: int = 20
    # Overpass timeout plus the worst-case retry budget
    SEARCH_DEADLINE_SECONDS: float = 90.0
    RANK_TOP_N: int = 3

    # --- Cache ---
    CACHE_TTL_SECONDS: int = 300
    CACHE_KEY_PRECISION: int = 3 # ~111 m buckets
    ENABLE_REDIS: bool = Field(False, description="Use Redis instead of the in-process result cache")
    REDIS_URL: Optional[str] = Field(None, description="Redis URL for the shared result cache")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()

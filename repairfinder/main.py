# Application wiring: logging, shared HTTP client, result cache and services.

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import uuid

import httpx
import structlog

from repairfinder.core.config import settings
from repairfinder.api.routes import router as api_router
from repairfinder.logging import configure_logging
from repairfinder.middleware.logging import LoggingMiddleware
from repairfinder.services.endpoint_client import EndpointClient
from repairfinder.services.geocoding import Geocoder
from repairfinder.services.result_cache import RedisResultCache, build_result_cache
from repairfinder.services.search_service import SearchService

configure_logging()
logger = structlog.get_logger(__name__)

# --- Application Lifecycle Management ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("application_startup", version=settings.VERSION, env=settings.ENV)

    http = httpx.AsyncClient(headers={"User-Agent": settings.USER_AGENT})
    cache = build_result_cache()
    app.state.http = http
    app.state.result_cache = cache
    app.state.search_service = SearchService(EndpointClient(http), cache)
    app.state.geocoder = Geocoder(http)

    yield

    logger.info("application_shutdown")
    await http.aclose()
    if isinstance(cache, RedisResultCache):
        await cache.client.close()

# --- FastAPI Application Initialization ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.BRIEF_DESCRIPTION,
    lifespan=lifespan,
)

app.add_middleware(LoggingMiddleware)

# --- API Routes ---
app.include_router(api_router, prefix="/api")

# --- Health Check Endpoint ---
@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    return {
        "status": "ok",
        "version": settings.VERSION,
        "overpass_endpoints": len(settings.OVERPASS_ENDPOINTS),
        "cache_backend": "redis" if settings.ENABLE_REDIS and settings.REDIS_URL else "memory",
    }

# --- Global Exception Handler (for unhandled errors) ---
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    error_id = str(uuid.uuid4())
    logger.error("unhandled_exception", error_id=error_id, error=str(exc), exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "error": "INTERNAL_SERVER_ERROR",
                "detail": "An unexpected error occurred. Please report this error ID.",
                "error_id": error_id
            }
        }
    )

"""
NASA Data Proxy API
FastAPI surface over NASA's open data endpoints: APOD, Near Earth Objects,
Mars Rover photos, EPIC Earth imagery and the Image and Video Library.

Every response uses the same envelope: {"success": true, "data": ...} or
{"success": false, "error": {"message": ...}}.
"""

import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import configure_logging, load_settings
from errors import (
    HTTP_BAD_REQUEST,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
    INTERNAL_SERVER_ERROR,
    APIError,
)
from services import NasaServices, build_services

API_VERSION = "1.0.0"

# ============================================================================
# CONFIGURATION
# ============================================================================

settings = load_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    app.state.services = build_services(settings)
    logger.info("NASA Data Proxy starting ({} environment)", settings.environment)
    if settings.nasa_api_key == "DEMO_KEY":
        logger.warning("Using NASA DEMO_KEY, rate limits are low. Get a key at https://api.nasa.gov/")
    yield
    await app.state.services.aclose()


app = FastAPI(
    title="NASA Data Proxy API",
    description="Validated, circuit-protected proxy for NASA Open Data",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
    allow_credentials=True,
)


def get_services(request: Request) -> NasaServices:
    """Services built at startup, shared by every request."""
    return request.app.state.services

# ============================================================================
# HELPER: STANDARD ERROR FORMAT
# ============================================================================


def error_response(message: str, exc: Optional[BaseException] = None) -> Dict[str, Any]:
    """Create the failure envelope; stack traces only outside production."""
    error: Dict[str, Any] = {"message": message}
    if exc is not None and settings.is_development:
        # Wrapped errors keep the interesting trace on __cause__
        source = exc.__cause__ or exc
        error["stack"] = "".join(
            traceback.format_exception(type(source), source, source.__traceback__)
        )
    return {"success": False, "error": error}


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    logger.error("Error {}: {} ({} {})", exc.status_code, exc.message, request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=error_response(exc.message, exc))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = first.get("loc", ["query"])[-1]
        message = f"Invalid {field}: {first.get('msg', 'validation error')}"
    else:
        message = "Validation error"
    logger.error("Error {}: {}", HTTP_BAD_REQUEST, message)
    return JSONResponse(status_code=HTTP_BAD_REQUEST, content=error_response(message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == HTTP_NOT_FOUND:
        message = f"Route {request.url.path} not found"
    else:
        message = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_response(message))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error("Unhandled error on {} {}", request.method, request.url.path)
    return JSONResponse(
        status_code=HTTP_INTERNAL_SERVER_ERROR,
        content=error_response(INTERNAL_SERVER_ERROR, exc),
    )

# ============================================================================
# HEALTH CHECK
# ============================================================================


@app.get("/health")
async def health_check(services: NasaServices = Depends(get_services)):
    """Health check endpoint for monitoring, with breaker state per upstream."""
    return {
        "status": "OK",
        "message": "NASA Data Proxy API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": API_VERSION,
        "upstreams": services.breaker_snapshots(),
    }

# ============================================================================
# API INFO
# ============================================================================


@app.get("/api")
async def api_info():
    """Catalogue of the proxied endpoints and their parameters."""
    return {
        "success": True,
        "data": {
            "name": "NASA Data Proxy API",
            "version": API_VERSION,
            "description": "Proxy API for NASA Open Data",
            "documentation": "/docs",
            "endpoints": {
                "apod": {
                    "path": "/api/apod",
                    "method": "GET",
                    "description": "Get Astronomy Picture of the Day",
                    "parameters": {"date": "Optional date in YYYY-MM-DD format"},
                },
                "neo": {
                    "path": "/api/neo",
                    "method": "GET",
                    "description": "Get Near Earth Objects data",
                    "parameters": {
                        "start_date": "Required start date in YYYY-MM-DD format",
                        "end_date": "Required end date in YYYY-MM-DD format (max 7 days range)",
                    },
                },
                "marsRover": {
                    "path": "/api/mars-rover/{rover}/photos",
                    "method": "GET",
                    "description": "Get Mars Rover photos, latest available by default",
                    "parameters": {
                        "rover": "Required rover name (curiosity, opportunity, spirit)",
                        "sol": "Optional Martian sol (day)",
                        "earth_date": "Optional Earth date in YYYY-MM-DD format",
                        "camera": "Optional camera name",
                        "page": "Optional page number for pagination",
                    },
                },
                "epic": {
                    "path": "/api/epic",
                    "method": "GET",
                    "description": "Get EPIC Earth images",
                    "parameters": {
                        "date": "Optional date in YYYY-MM-DD format",
                        "collection": "Optional image collection (natural, enhanced)",
                    },
                },
                "imageLibrary": {
                    "path": "/api/image-library/search",
                    "method": "GET",
                    "description": "Search NASA Image and Video Library",
                    "parameters": {
                        "q": "Required search query",
                        "media_type": "Optional media type (image, video, audio)",
                        "page": "Optional page number",
                        "page_size": "Optional page size (max 100)",
                        "year_start": "Optional start year",
                        "year_end": "Optional end year",
                    },
                },
            },
        },
    }

# ============================================================================
# APOD (Astronomy Picture of the Day)
# ============================================================================


@app.get("/api/apod")
async def get_apod(
    date: Optional[str] = Query(None, description="Date (YYYY-MM-DD), default today"),
    services: NasaServices = Depends(get_services),
):
    return await services.apod.get_apod(date)

# ============================================================================
# NEAR EARTH OBJECTS
# ============================================================================


@app.get("/api/neo")
async def get_near_earth_objects(
    start_date: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, description="End date (YYYY-MM-DD), at most 7 days after start"),
    services: NasaServices = Depends(get_services),
):
    return await services.neo.get_near_earth_objects(start_date, end_date)

# ============================================================================
# MARS ROVER PHOTOS
# ============================================================================


@app.get("/api/mars-rover/{rover}/photos")
async def get_mars_rover_photos(
    rover: str = Path(..., description="curiosity, opportunity or spirit"),
    sol: Optional[int] = Query(None, description="Martian sol"),
    earth_date: Optional[str] = Query(None, description="Earth date (YYYY-MM-DD)"),
    camera: Optional[str] = Query(None, description="Camera abbreviation, e.g. NAVCAM"),
    page: int = Query(1, description="Page number"),
    services: NasaServices = Depends(get_services),
):
    """Without sol or earth_date, returns the rover's latest photos."""
    return await services.mars_rover.get_photos(rover, sol, earth_date, camera, page)

# ============================================================================
# EARTH IMAGES (NASA EPIC)
# ============================================================================


@app.get("/api/epic")
async def get_epic_images(
    date: Optional[str] = Query(None, description="Date (YYYY-MM-DD), default latest"),
    collection: str = Query("natural", description="Image collection: natural or enhanced"),
    services: NasaServices = Depends(get_services),
):
    return await services.epic.get_images(date, collection)

# ============================================================================
# IMAGE AND VIDEO LIBRARY
# ============================================================================


@app.get("/api/image-library/search")
async def search_image_library(
    q: Optional[str] = Query(None, description="Search terms"),
    media_type: Optional[str] = Query(None, description="image, video or audio"),
    page: int = Query(1, description="Page number"),
    page_size: int = Query(100, description="Results per page, at most 100"),
    year_start: Optional[str] = Query(None, description="Earliest year (YYYY)"),
    year_end: Optional[str] = Query(None, description="Latest year (YYYY)"),
    services: NasaServices = Depends(get_services),
):
    return await services.image_library.search(q, media_type, page, page_size, year_start, year_end)

# ============================================================================
# APPLICATION STARTUP
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info"
    )

"""
Domain services, one per NASA resource.

Each service validates its inputs, calls NASA through its own breaker-gated
UpstreamClient and reshapes the payload into the response envelope.
Services are built once at startup by build_services() and shared by all
requests.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from circuit_breaker import BreakerOptions, CircuitBreaker
from config import Settings
from errors import (
    APOD_ERROR,
    EPIC_ERROR,
    IMAGE_LIBRARY_ERROR,
    MARS_ROVER_ERROR,
    NEO_ERROR,
    service_boundary,
)
from upstream import UpstreamClient
from validation import (
    clamp_page_size,
    normalize_page,
    validate_apod_date,
    validate_camera,
    validate_date,
    validate_date_range,
    validate_epic_collection,
    validate_media_type,
    validate_rover,
    validate_search_query,
    validate_sol,
    validate_year,
)

APOD_PATH = "/planetary/apod"
NEO_FEED_PATH = "/neo/rest/v1/feed"
MARS_MANIFEST_PATH = "/mars-photos/api/v1/manifests/{rover}"
MARS_PHOTOS_PATH = "/mars-photos/api/v1/rovers/{rover}/photos"
EPIC_LATEST_PATH = "/EPIC/api/{collection}"
EPIC_DATE_PATH = "/EPIC/api/{collection}/date/{date}"
IMAGE_LIBRARY_SEARCH_PATH = "/search"

EPIC_ARCHIVE_URL = "https://epic.gsfc.nasa.gov/archive"

# ============================================================================
# HELPER: STANDARD RESPONSE FORMAT
# ============================================================================


def success_response(data: Any) -> Dict[str, Any]:
    """Create the standard success envelope."""
    return {"success": True, "data": data}

# ============================================================================
# APOD
# ============================================================================


class ApodService:
    """Astronomy Picture of the Day."""

    def __init__(self, client: UpstreamClient):
        self.client = client

    @service_boundary(APOD_ERROR)
    async def get_apod(self, date: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if date:
            params["date"] = validate_apod_date(date)

        response = await self.client.get(APOD_PATH, params=params)
        data = response.json()

        # Entries with media_type "other" (interactive pages) carry no url
        return success_response({
            "date": data.get("date"),
            "title": data.get("title"),
            "explanation": data.get("explanation"),
            "url": data.get("url"),
            "hdurl": data.get("hdurl"),
            "media_type": data.get("media_type"),
            "copyright": data.get("copyright"),
        })

# ============================================================================
# NEAR EARTH OBJECTS
# ============================================================================


def reshape_neo_feed(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten the date-keyed NEO feed into a date-ordered list.

    Only the first close-approach entry of each object is kept.
    """
    by_date = payload.get("near_earth_objects") or {}
    days = []
    for day in sorted(by_date):
        objects = by_date[day] or []
        days.append({
            "date": day,
            "count": len(objects),
            "objects": [
                {
                    "id": neo["id"],
                    "name": neo["name"],
                    "estimated_diameter": neo.get("estimated_diameter"),
                    "is_potentially_hazardous": neo.get("is_potentially_hazardous_asteroid", False),
                    "close_approach_data": (neo.get("close_approach_data") or [None])[0],
                }
                for neo in objects
            ],
        })

    return {
        "element_count": payload.get("element_count", 0),
        "near_earth_objects": days,
    }


class NeoService:
    """Near Earth Object feed, at most 7 days per query."""

    def __init__(self, client: UpstreamClient):
        self.client = client

    @service_boundary(NEO_ERROR)
    async def get_near_earth_objects(self, start_date: str, end_date: str) -> Dict[str, Any]:
        start_date, end_date = validate_date_range(start_date, end_date)

        response = await self.client.get(
            NEO_FEED_PATH,
            params={"start_date": start_date, "end_date": end_date},
        )
        return success_response(reshape_neo_feed(response.json()))

# ============================================================================
# MARS ROVER PHOTOS
# ============================================================================


class MarsRoverService:
    """
    Mars Rover photos.

    With neither sol nor earth_date given, the rover manifest is queried
    first and its max_date is used, so callers get the latest photos the
    rover has sent back.
    """

    def __init__(self, client: UpstreamClient):
        self.client = client

    async def latest_earth_date(self, rover: str) -> str:
        response = await self.client.get(MARS_MANIFEST_PATH.format(rover=rover))
        return response.json()["photo_manifest"]["max_date"]

    @service_boundary(MARS_ROVER_ERROR)
    async def get_photos(
        self,
        rover: str,
        sol: Optional[int] = None,
        earth_date: Optional[str] = None,
        camera: Optional[str] = None,
        page: Optional[int] = 1,
    ) -> Dict[str, Any]:
        rover = validate_rover(rover)
        if earth_date:
            validate_date(earth_date)
        if sol is not None:
            validate_sol(sol)
        if camera:
            camera = validate_camera(camera)
        page = normalize_page(page)

        if sol is None and not earth_date:
            earth_date = await self.latest_earth_date(rover)

        params: Dict[str, Any] = {"page": page}
        if sol is not None:
            params["sol"] = sol
        if earth_date:
            params["earth_date"] = earth_date
        if camera:
            params["camera"] = camera

        response = await self.client.get(MARS_PHOTOS_PATH.format(rover=rover), params=params)
        return success_response(response.json())

# ============================================================================
# EPIC (Earth Polychromatic Imaging Camera)
# ============================================================================


def reshape_epic_image(item: Dict[str, Any], collection: str) -> Dict[str, Any]:
    image = {
        "identifier": item.get("identifier"),
        "caption": item.get("caption"),
        "image": item.get("image"),
        "version": item.get("version"),
        "centroid_coordinates": item.get("centroid_coordinates"),
        "dscovr_j2000_position": item.get("dscovr_j2000_position"),
        "lunar_j2000_position": item.get("lunar_j2000_position"),
        "sun_j2000_position": item.get("sun_j2000_position"),
        "attitude_quaternions": item.get("attitude_quaternions"),
        "date": item.get("date"),
        "coords": {
            "centroid_coordinates": item.get("centroid_coordinates"),
        },
    }

    # "2015-10-31 00:36:33" -> archive/natural/2015/10/31
    if item.get("image") and item.get("date"):
        year, month, day = item["date"].split()[0].split("-")
        base_url = f"{EPIC_ARCHIVE_URL}/{collection}/{year}/{month}/{day}"
        image["image_url"] = f"{base_url}/png/{item['image']}.png"
        image["thumbnail_url"] = f"{base_url}/thumbs/{item['image']}.jpg"

    return image


class EpicService:
    def __init__(self, client: UpstreamClient):
        self.client = client

    @service_boundary(EPIC_ERROR)
    async def get_images(self, date: Optional[str] = None, collection: str = "natural") -> Dict[str, Any]:
        collection = validate_epic_collection(collection)
        if date:
            path = EPIC_DATE_PATH.format(collection=collection, date=validate_date(date))
        else:
            path = EPIC_LATEST_PATH.format(collection=collection)

        response = await self.client.get(path)
        images: List[Dict[str, Any]] = [
            reshape_epic_image(item, collection) for item in response.json()
        ]
        return success_response(images)

# ============================================================================
# IMAGE AND VIDEO LIBRARY
# ============================================================================


class ImageLibraryService:
    """Search on images-api.nasa.gov. That host takes no API key."""

    def __init__(self, client: UpstreamClient):
        self.client = client

    @service_boundary(IMAGE_LIBRARY_ERROR)
    async def search(
        self,
        query: str,
        media_type: Optional[str] = None,
        page: Optional[int] = 1,
        page_size: Optional[int] = 100,
        year_start: Optional[str] = None,
        year_end: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "q": validate_search_query(query),
            "page": normalize_page(page),
            "page_size": clamp_page_size(page_size),
        }
        if media_type:
            params["media_type"] = validate_media_type(media_type)
        if year_start:
            params["year_start"] = validate_year(year_start)
        if year_end:
            params["year_end"] = validate_year(year_end)

        response = await self.client.get(IMAGE_LIBRARY_SEARCH_PATH, params=params)
        return success_response(response.json())

# ============================================================================
# SERVICE CONTAINER
# ============================================================================


@dataclass
class NasaServices:
    apod: ApodService
    neo: NeoService
    mars_rover: MarsRoverService
    epic: EpicService
    image_library: ImageLibraryService

    def clients(self) -> List[UpstreamClient]:
        return [
            self.apod.client,
            self.neo.client,
            self.mars_rover.client,
            self.epic.client,
            self.image_library.client,
        ]

    def breaker_snapshots(self) -> List[Dict[str, Any]]:
        return [client.breaker.snapshot() for client in self.clients()]

    async def aclose(self) -> None:
        for client in self.clients():
            await client.aclose()


def build_services(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NasaServices:
    """
    Construct every service with its own client and breaker.

    Each service gets a separate breaker so an outage of one NASA API does
    not block the others.
    """
    options = BreakerOptions(
        failure_threshold=settings.breaker_failure_threshold,
        success_threshold=settings.breaker_success_threshold,
        cooldown_period_ms=settings.breaker_cooldown_ms,
    )

    def nasa_client(name: str) -> UpstreamClient:
        return UpstreamClient(
            settings.nasa_base_url,
            api_key=settings.nasa_api_key,
            timeout_ms=settings.request_timeout_ms,
            breaker=CircuitBreaker(options, name=name),
            name=name,
            transport=transport,
        )

    image_library_client = UpstreamClient(
        settings.image_library_base_url,
        api_key=None,
        timeout_ms=settings.request_timeout_ms,
        breaker=CircuitBreaker(options, name="image-library"),
        name="image-library",
        transport=transport,
    )

    return NasaServices(
        apod=ApodService(nasa_client("apod")),
        neo=NeoService(nasa_client("neo")),
        mars_rover=MarsRoverService(nasa_client("mars-rover")),
        epic=EpicService(nasa_client("epic")),
        image_library=ImageLibraryService(image_library_client),
    )

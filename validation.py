"""
Parameter validation and normalization for NASA queries.

Pure functions: each returns the normalized value or raises ValidationError
with a message that can be shown to the caller as-is.
"""

import re
from datetime import date, datetime
from typing import Optional, Tuple

from errors import (
    DATE_RANGE_EXCEEDED,
    INVALID_DATE_FORMAT,
    REQUIRED_PARAMETERS,
    ValidationError,
)

# ============================================================================
# CONSTANTS
# ============================================================================

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$", re.ASCII)
YEAR_PATTERN = re.compile(r"^\d{4}$", re.ASCII)

MAX_DATE_RANGE_DAYS = 7
MAX_PAGE_SIZE = 100
DEFAULT_PAGE = 1

# First APOD entry
APOD_START_DATE = date(1995, 6, 16)

VALID_ROVERS = ["curiosity", "opportunity", "spirit"]
VALID_CAMERAS = ["FHAZ", "RHAZ", "MAST", "CHEMCAM", "MAHLI", "MARDI", "NAVCAM"]
VALID_MEDIA_TYPES = ["image", "video", "audio"]
VALID_EPIC_COLLECTIONS = ["natural", "enhanced"]

# ============================================================================
# DATES
# ============================================================================


def _parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def is_valid_date(value: str) -> bool:
    """
    True if value is YYYY-MM-DD and names a real calendar day.

    2024-02-30 and 2024-13-01 match the pattern but are rejected.
    """
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        return False
    try:
        return _parse_date(value).isoformat() == value
    except ValueError:
        return False


def validate_date(value: str) -> str:
    if not is_valid_date(value):
        raise ValidationError(INVALID_DATE_FORMAT)
    return value


def days_between(start: str, end: str) -> int:
    """Absolute number of whole days between two valid dates."""
    return abs((_parse_date(end) - _parse_date(start)).days)


def validate_date_range(
    start_date: Optional[str],
    end_date: Optional[str],
    max_days: int = MAX_DATE_RANGE_DAYS,
) -> Tuple[str, str]:
    if not start_date or not end_date:
        raise ValidationError(REQUIRED_PARAMETERS)
    validate_date(start_date)
    validate_date(end_date)
    if days_between(start_date, end_date) > max_days:
        raise ValidationError(DATE_RANGE_EXCEEDED)
    return start_date, end_date


def validate_apod_date(value: str, today: Optional[date] = None) -> str:
    """Format check plus the window APOD actually has pictures for."""
    validate_date(value)
    day = _parse_date(value)
    today = today or date.today()
    if day < APOD_START_DATE:
        raise ValidationError("APOD started on June 16, 1995")
    if day > today:
        raise ValidationError("Cannot retrieve APOD for future dates")
    return value

# ============================================================================
# MARS ROVER
# ============================================================================


def validate_rover(rover: str) -> str:
    name = (rover or "").strip().lower()
    if name not in VALID_ROVERS:
        raise ValidationError(
            f"Invalid rover name. Must be one of: {', '.join(VALID_ROVERS)}"
        )
    return name


def validate_camera(camera: str) -> str:
    name = (camera or "").strip().upper()
    if name not in VALID_CAMERAS:
        raise ValidationError(
            f"Invalid camera. Must be one of: {', '.join(VALID_CAMERAS)}"
        )
    return name


def validate_sol(sol: int) -> int:
    if isinstance(sol, bool) or not isinstance(sol, int) or sol < 0:
        raise ValidationError("Sol must be a non-negative integer")
    return sol

# ============================================================================
# PAGINATION
# ============================================================================


def normalize_page(page: Optional[int]) -> int:
    if page is None:
        return DEFAULT_PAGE
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise ValidationError("Page must be a positive integer")
    return page


def clamp_page_size(page_size: Optional[int], maximum: int = MAX_PAGE_SIZE) -> int:
    """Default to the maximum; anything larger is silently clamped."""
    if page_size is None:
        return maximum
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise ValidationError("Page size must be a positive integer")
    return min(page_size, maximum)

# ============================================================================
# IMAGE LIBRARY / EPIC
# ============================================================================


def validate_search_query(query: Optional[str]) -> str:
    text = (query or "").strip()
    if not text:
        raise ValidationError("Search query is required")
    return text


def validate_media_type(media_type: str) -> str:
    value = (media_type or "").strip().lower()
    if value not in VALID_MEDIA_TYPES:
        raise ValidationError(
            f"Invalid media type. Must be one of: {', '.join(VALID_MEDIA_TYPES)}"
        )
    return value


def validate_year(year: str) -> str:
    if not isinstance(year, str) or not YEAR_PATTERN.match(year):
        raise ValidationError("Year must be a 4-digit number")
    return year


def validate_epic_collection(collection: str) -> str:
    value = (collection or "").strip().lower()
    if value not in VALID_EPIC_COLLECTIONS:
        raise ValidationError("Image collection must be natural or enhanced")
    return value

"""
Runtime configuration and logging setup.

All settings come from environment variables so the service can be deployed
without a config file.
"""

import os
import sys
from dataclasses import dataclass, field
from typing import List

from loguru import logger

DEMO_KEY = "DEMO_KEY"

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:5175",
]

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {name}:{function}:{line} | {message}"


@dataclass(frozen=True)
class Settings:
    nasa_api_key: str = DEMO_KEY
    nasa_base_url: str = "https://api.nasa.gov"
    image_library_base_url: str = "https://images-api.nasa.gov"
    request_timeout_ms: int = 10_000
    breaker_failure_threshold: int = 5
    breaker_success_threshold: int = 2
    breaker_cooldown_ms: int = 30_000
    environment: str = "production"
    log_level: str = "INFO"
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    port: int = 8000

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _list_env(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_settings() -> Settings:
    """Build settings from the current environment."""
    return Settings(
        # An empty key in the environment also falls back to the public demo key
        nasa_api_key=os.getenv("NASA_API_KEY") or DEMO_KEY,
        nasa_base_url=os.getenv("NASA_API_BASE_URL", "https://api.nasa.gov"),
        image_library_base_url=os.getenv("NASA_IMAGE_LIBRARY_URL", "https://images-api.nasa.gov"),
        request_timeout_ms=_int_env("NASA_API_TIMEOUT_MS", 10_000),
        breaker_failure_threshold=_int_env("BREAKER_FAILURE_THRESHOLD", 5),
        breaker_success_threshold=_int_env("BREAKER_SUCCESS_THRESHOLD", 2),
        breaker_cooldown_ms=_int_env("BREAKER_COOLDOWN_MS", 30_000),
        environment=os.getenv("APP_ENV", "production"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        cors_origins=_list_env("CORS_ORIGINS", DEFAULT_CORS_ORIGINS),
        port=_int_env("PORT", 8000),
    )


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with the service's stderr format."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=LOG_FORMAT,
        backtrace=False,
        diagnose=False,
    )

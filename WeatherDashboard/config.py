"""Configuration loaded from the environment (and a .env file if present)."""
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from openweather_provider import DEFAULT_BASE_URL

DEFAULT_CACHE_MINUTES = 15.0


@dataclass(frozen=True)
class DashboardConfig:
    api_key: Optional[str]
    cache_ttl_minutes: float = DEFAULT_CACHE_MINUTES
    base_url: str = DEFAULT_BASE_URL
    lang: str = "es"
    units: str = "metric"

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_minutes * 60


def load_config() -> DashboardConfig:
    """
    Read settings from the environment.

    A missing API key is not fatal here: it is reported to the first caller
    of the weather service as a configuration error.
    """
    load_dotenv()
    api_key = os.getenv("OPENWEATHER_API_KEY") or None
    if not api_key:
        logging.warning("OPENWEATHER_API_KEY not set; weather lookups will fail until it is configured")

    config = DashboardConfig(
        api_key=api_key,
        cache_ttl_minutes=_parse_minutes(os.getenv("WEATHER_CACHE_EXPIRY_MINUTES")),
        base_url=os.getenv("WEATHER_API_BASE_URL", DEFAULT_BASE_URL),
        lang=os.getenv("WEATHER_LANG", "es"),
        units=os.getenv("WEATHER_UNITS", "metric"),
    )
    logging.info(
        "Configuration loaded: cache_ttl=%smin lang=%s units=%s",
        config.cache_ttl_minutes,
        config.lang,
        config.units,
    )
    return config


def _parse_minutes(raw: Optional[str]) -> float:
    if not raw:
        return DEFAULT_CACHE_MINUTES
    try:
        minutes = float(raw)
    except ValueError:
        logging.warning(f"Invalid WEATHER_CACHE_EXPIRY_MINUTES={raw!r}, using {DEFAULT_CACHE_MINUTES}")
        return DEFAULT_CACHE_MINUTES
    if minutes <= 0:
        logging.warning(f"WEATHER_CACHE_EXPIRY_MINUTES must be positive (got {raw}), using {DEFAULT_CACHE_MINUTES}")
        return DEFAULT_CACHE_MINUTES
    return minutes

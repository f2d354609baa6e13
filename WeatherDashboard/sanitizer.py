"""City-name sanitization applied before any network call or cache lookup."""
import re

MAX_CITY_LENGTH = 100
CACHE_KEY_PREFIX = "current-"

_UNSAFE_CHARS = re.compile(r"[<>\"']")


def sanitize(raw: str) -> str:
    """
    Trim whitespace, drop ``< > " '`` and cap the length at 100 characters.

    Never fails. An empty result is valid; rejecting it is up to the caller.
    Whitespace is trimmed after the removal and again after truncation so that
    sanitizing twice gives the same result as sanitizing once.
    """
    cleaned = _UNSAFE_CHARS.sub("", raw).strip()
    return cleaned[:MAX_CITY_LENGTH].rstrip()


def cache_key(city: str) -> str:
    """Cache key for an already-sanitized city name (case-insensitive)."""
    return f"{CACHE_KEY_PREFIX}{city.lower()}"

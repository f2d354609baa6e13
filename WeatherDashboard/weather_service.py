"""Weather service with input sanitization, caching and concurrent fetching."""
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Optional

from response_normalizer import normalize
from result_cache import CacheStats, ResultCache
from sanitizer import cache_key, sanitize
from weather_data import WeatherRecord
from weather_provider import ErrorKind, WeatherProviderBase, WeatherProviderError, WeatherServiceError

INVALID_CITY_MESSAGE = "Nombre de ciudad inválido."
MISSING_CONFIG_MESSAGE = "Configuración de API incompleta. Contacta al administrador."


class WeatherService:
    """
    Service that turns a city name into a cached, normalized WeatherRecord.

    Lookups are served from the cache while fresh. On a miss, the current
    conditions and the forecast are fetched concurrently and both must succeed.
    The two fetch workers are reused across lookups so each keeps its own
    HTTP session; call ``close()`` (or use the service as a context manager)
    to release them.
    """

    def __init__(self, provider: WeatherProviderBase, cache: Optional[ResultCache] = None):
        """
        Initialize weather service.

        Args:
            provider: Weather provider to fetch raw payloads from
            cache: Result cache owned by this service (a default one if omitted)
        """
        self.provider = provider
        self.cache = cache if cache is not None else ResultCache()
        self._pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="weather-fetch")

    def __enter__(self) -> "WeatherService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def get_current_weather(self, city_name: str) -> WeatherRecord:
        """
        Get current conditions and a 5-day forecast for a city.

        Returns:
            WeatherRecord: Normalized weather record (may be cached)

        Raises:
            WeatherProviderError: VALIDATION or CONFIGURATION kind before any I/O
            WeatherServiceError: Any failure of the fetch/normalize pipeline
        """
        if not city_name or not isinstance(city_name, str):
            raise WeatherProviderError(INVALID_CITY_MESSAGE, ErrorKind.VALIDATION)

        if not self.provider.has_credentials:
            raise WeatherProviderError(MISSING_CONFIG_MESSAGE, ErrorKind.CONFIGURATION)

        city = sanitize(city_name)
        key = cache_key(city)

        cached = self.cache.get(key)
        if cached is not None:
            logging.info(f"Using cached weather data for: {city}")
            return cached

        try:
            logging.info(f"Fetching weather data for: {city}")
            current_future = self._pool.submit(self.provider.get_current_payload, city)
            forecast_future = self._pool.submit(self.provider.get_forecast_payload, city)
            wait([current_future, forecast_future])

            record = normalize(current_future.result(), forecast_future.result())
        except Exception as e:
            logging.error(f"Failed to fetch weather data for {city!r}: {e}")
            raise WeatherServiceError.wrap(e) from e

        self.cache.set(key, record)
        logging.info(f"Weather data for {city} fetched and cached")
        return record

    def clear_cache(self) -> None:
        self.cache.clear()
        logging.info("Weather cache cleared")

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def close(self) -> None:
        self._pool.shutdown(wait=True)
        self.provider.close()

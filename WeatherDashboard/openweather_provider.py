"""OpenWeather 2.5 API provider (current weather + 5 day / 3 hour forecast)."""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from retrying_fetcher import RetryingFetcher
from weather_provider import ErrorKind, WeatherProviderBase, WeatherProviderError

DEFAULT_BASE_URL = "https://api.openweathermap.org/data/2.5"
INVALID_RESPONSE_MESSAGE = "Respuesta inválida del servicio meteorológico."


def encode_city(city: str) -> str:
    """Percent-encode a city name the way browsers' encodeURIComponent does."""
    return quote(city, safe="!*'()")


class OpenWeatherProvider(WeatherProviderBase):
    """
    Weather provider using the free OpenWeather Current Weather and Forecast APIs.

    https://openweathermap.org/current
    https://openweathermap.org/forecast5
    """

    def __init__(
        self,
        api_key: Optional[str],
        fetcher: Optional[RetryingFetcher] = None,
        base_url: str = DEFAULT_BASE_URL,
        units: str = "metric",
        lang: str = "es",
    ):
        """
        Initialize OpenWeather provider.

        Args:
            api_key: OpenWeather API key (may be missing; requests are then refused)
            fetcher: Transport with timeout and retry policy
            base_url: API root, without trailing slash
            units: Temperature units ("metric", "imperial", or "standard")
            lang: Language code for descriptions (e.g., "es", "en")
        """
        self.api_key = api_key
        self.fetcher = fetcher or RetryingFetcher()
        self.base_url = base_url.rstrip("/")
        self.units = units
        self.lang = lang

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def close(self) -> None:
        self.fetcher.close()

    def current_url(self, city: str) -> str:
        return self._build_url("weather", city)

    def forecast_url(self, city: str) -> str:
        return self._build_url("forecast", city)

    def get_current_payload(self, city: str) -> Dict[str, Any]:
        logging.info(f"Requesting current weather for: {city}")
        return self._get_json(self.current_url(city))

    def get_forecast_payload(self, city: str) -> Dict[str, Any]:
        logging.info(f"Requesting forecast for: {city}")
        return self._get_json(self.forecast_url(city))

    def _build_url(self, endpoint: str, city: str) -> str:
        return (
            f"{self.base_url}/{endpoint}?q={encode_city(city)}"
            f"&appid={self.api_key}&units={self.units}&lang={self.lang}"
        )

    def _get_json(self, url: str) -> Dict[str, Any]:
        response = self.fetcher.fetch_with_retry(url)
        try:
            data = response.json()
        except ValueError as e:
            logging.error(f"Non-JSON response body: {response.text[:200]}")
            raise WeatherProviderError(INVALID_RESPONSE_MESSAGE, ErrorKind.PROCESSING) from e

        if isinstance(data, dict):
            logging.debug(f"API response data keys: {list(data.keys())}")
        return data

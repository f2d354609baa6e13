"""State holder the dashboard UI binds to: data, loading flag and error message."""
import logging
from typing import Optional

from weather_data import WeatherRecord
from weather_provider import WeatherProviderError
from weather_service import WeatherService

DEFAULT_ERROR_MESSAGE = "No se pudieron obtener los datos meteorológicos."


class WeatherController:
    """Entry point for the presentation layer; never raises on lookup failures."""

    def __init__(self, service: WeatherService):
        self.service = service
        self.data: Optional[WeatherRecord] = None
        self.loading = False
        self.error: Optional[str] = None

    def fetch_weather(self, city: str) -> None:
        """Look up ``city`` and update ``data`` or ``error``. Blank input is ignored."""
        if not city or not city.strip():
            return

        self.loading = True
        self.error = None
        try:
            self.data = self.service.get_current_weather(city)
        except WeatherProviderError as err:
            logging.warning(f"Weather lookup for {city!r} failed: {err}")
            self.error = str(err) or DEFAULT_ERROR_MESSAGE
            self.data = None
        finally:
            self.loading = False

    def clear_error(self) -> None:
        self.error = None

"""Weather domain model - immutable records independent of any API."""
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Location:
    name: str = "Desconocido"
    country: str = "N/A"
    lat: float = 0.0
    lon: float = 0.0


@dataclass(frozen=True)
class CurrentConditions:
    """Current conditions, already converted to dashboard units."""
    temperature: int = 0  # °C
    feels_like: int = 0  # °C
    humidity: int = 0  # percentage
    pressure: int = 0  # hPa
    wind_speed: int = 0  # km/h
    wind_direction: int = 0  # degrees
    visibility: int = 0  # km
    uv_index: int = 0  # not available on the free tier
    condition: str = "Unknown"  # e.g., "Clouds", "Rain", "Clear"
    description: str = "Sin descripción"  # e.g., "nubes dispersas"
    icon: str = "01d"


@dataclass(frozen=True)
class TemperatureRange:
    min: int = 0
    max: int = 0


@dataclass(frozen=True)
class ForecastDay:
    """Daily summary aggregated from the 3-hour forecast samples of one date."""
    date: str  # ISO date, UTC
    temperature: TemperatureRange = field(default_factory=TemperatureRange)
    condition: str = "Unknown"
    description: str = "Sin datos"
    icon: str = "01d"
    humidity: int = 0  # percentage
    wind_speed: int = 0  # km/h
    pop: int = 0  # probability of precipitation, percentage

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "temperature": {"min": self.temperature.min, "max": self.temperature.max},
            "condition": self.condition,
            "description": self.description,
            "icon": self.icon,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
            "pop": self.pop,
        }


@dataclass(frozen=True)
class WeatherRecord:
    """Normalized weather record handed to the presentation layer."""
    location: Location
    current: CurrentConditions
    forecast: Tuple[ForecastDay, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase field names the dashboard UI expects."""
        current = self.current
        return {
            "location": {
                "name": self.location.name,
                "country": self.location.country,
                "lat": self.location.lat,
                "lon": self.location.lon,
            },
            "current": {
                "temperature": current.temperature,
                "feelsLike": current.feels_like,
                "humidity": current.humidity,
                "pressure": current.pressure,
                "windSpeed": current.wind_speed,
                "windDirection": current.wind_direction,
                "visibility": current.visibility,
                "uvIndex": current.uv_index,
                "condition": current.condition,
                "description": current.description,
                "icon": current.icon,
            },
            "forecast": [day.to_dict() for day in self.forecast],
        }

"""Maps raw OpenWeather payloads onto the WeatherRecord domain model."""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Tuple, Union

from weather_data import CurrentConditions, ForecastDay, Location, TemperatureRange, WeatherRecord
from weather_provider import ErrorKind, WeatherProviderError

FORECAST_DAYS = 5
MS_TO_KMH = 3.6
PROCESSING_MESSAGE = "Error al procesar datos meteorológicos."

_NUMBER = (int, float)
_TEXT = (str,)


class FieldSpec(NamedTuple):
    """Where a value lives in the upstream payload and what to use when it doesn't."""
    path: Tuple[Union[str, int], ...]
    default: Any
    types: Tuple[type, ...]


# Current Weather API (/weather)
CURRENT_FIELDS: Dict[str, FieldSpec] = {
    "name": FieldSpec(("name",), "Desconocido", _TEXT),
    "country": FieldSpec(("sys", "country"), "N/A", _TEXT),
    "lat": FieldSpec(("coord", "lat"), 0.0, _NUMBER),
    "lon": FieldSpec(("coord", "lon"), 0.0, _NUMBER),
    "temp": FieldSpec(("main", "temp"), 0.0, _NUMBER),
    "feels_like": FieldSpec(("main", "feels_like"), 0.0, _NUMBER),
    "humidity": FieldSpec(("main", "humidity"), 0, _NUMBER),
    "pressure": FieldSpec(("main", "pressure"), 0, _NUMBER),
    "wind_speed": FieldSpec(("wind", "speed"), 0.0, _NUMBER),  # m/s
    "wind_deg": FieldSpec(("wind", "deg"), 0, _NUMBER),
    "visibility": FieldSpec(("visibility",), 0, _NUMBER),  # meters
    "condition": FieldSpec(("weather", 0, "main"), "Unknown", _TEXT),
    "description": FieldSpec(("weather", 0, "description"), "Sin descripción", _TEXT),
    "icon": FieldSpec(("weather", 0, "icon"), "01d", _TEXT),
}

# One entry of the 5 day / 3 hour forecast (/forecast -> list[])
SAMPLE_FIELDS: Dict[str, FieldSpec] = {
    "dt": FieldSpec(("dt",), None, _NUMBER),
    "temp": FieldSpec(("main", "temp"), None, _NUMBER),
    "humidity": FieldSpec(("main", "humidity"), 0, _NUMBER),
    "wind_speed": FieldSpec(("wind", "speed"), 0.0, _NUMBER),  # m/s
    "pop": FieldSpec(("pop",), 0.0, _NUMBER),  # 0..1
    "condition": FieldSpec(("weather", 0, "main"), "Unknown", _TEXT),
    "description": FieldSpec(("weather", 0, "description"), "Sin descripción", _TEXT),
    "icon": FieldSpec(("weather", 0, "icon"), "01d", _TEXT),
}

FORECAST_LIST = FieldSpec(("list",), [], (list,))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def lookup(payload: Any, spec: FieldSpec) -> Any:
    """
    Resolve ``spec.path`` inside ``payload``.

    Missing keys, out-of-range indices, None, empty strings and values of the
    wrong type all resolve to ``spec.default``.
    """
    value = payload
    for step in spec.path:
        if isinstance(step, int):
            if not isinstance(value, list) or len(value) <= step:
                return spec.default
            value = value[step]
        else:
            if not isinstance(value, dict):
                return spec.default
            value = value.get(step)

    if isinstance(value, bool) or not isinstance(value, spec.types) or value == "":
        return spec.default
    return value


def extract(payload: Any, fields: Dict[str, FieldSpec]) -> Dict[str, Any]:
    return {name: lookup(payload, spec) for name, spec in fields.items()}


def normalize(current_payload: Any, forecast_payload: Any) -> WeatherRecord:
    """
    Build a WeatherRecord from the current-conditions and forecast payloads.

    Raises:
        WeatherProviderError: With kind PROCESSING if the payloads cannot be mapped
    """
    try:
        forecast = process_forecast(lookup(forecast_payload, FORECAST_LIST))
        values = extract(current_payload, CURRENT_FIELDS)

        location = Location(
            name=values["name"],
            country=values["country"],
            lat=float(values["lat"]),
            lon=float(values["lon"]),
        )
        current = CurrentConditions(
            temperature=round_half_up(values["temp"]),
            feels_like=round_half_up(values["feels_like"]),
            humidity=round_half_up(values["humidity"]),
            pressure=round_half_up(values["pressure"]),
            wind_speed=round_half_up(values["wind_speed"] * MS_TO_KMH),
            wind_direction=round_half_up(values["wind_deg"]) % 360,
            visibility=round_half_up(values["visibility"] / 1000),
            condition=values["condition"],
            description=values["description"],
            icon=values["icon"],
        )
    except WeatherProviderError:
        raise
    except Exception as e:
        logging.error(f"Failed to transform API response: {e}", exc_info=True)
        raise WeatherProviderError(PROCESSING_MESSAGE, ErrorKind.PROCESSING) from e

    return WeatherRecord(location=location, current=current, forecast=tuple(forecast))


def process_forecast(samples: Any) -> List[ForecastDay]:
    """
    Collapse 3-hour forecast samples into at most five daily summaries.

    Samples are grouped by the UTC calendar date of their ``dt`` timestamp.
    Upstream sends them sorted by time, so the groups come out in date order
    without re-sorting.
    """
    if not isinstance(samples, list) or not samples:
        return []

    daily: Dict[str, List[Dict[str, Any]]] = {}
    for sample in samples:
        values = extract(sample, SAMPLE_FIELDS)
        if values["dt"] is None:
            continue
        date = datetime.fromtimestamp(values["dt"], tz=timezone.utc).date().isoformat()
        daily.setdefault(date, []).append(values)

    days = [summarize_day(date, day_samples) for date, day_samples in daily.items()]
    return days[:FORECAST_DAYS]


def summarize_day(date: str, samples: List[Dict[str, Any]]) -> ForecastDay:
    """Aggregate the extracted samples of a single date."""
    if not samples:
        return empty_forecast_day(date)

    temps = [s["temp"] for s in samples if s["temp"] is not None]
    # representative sample for the icon and condition text
    middle = samples[len(samples) // 2]
    count = len(samples)

    return ForecastDay(
        date=date,
        temperature=TemperatureRange(
            min=round_half_up(min(temps)) if temps else 0,
            max=round_half_up(max(temps)) if temps else 0,
        ),
        condition=middle["condition"],
        description=middle["description"],
        icon=middle["icon"],
        humidity=round_half_up(sum(s["humidity"] for s in samples) / count),
        wind_speed=round_half_up(sum(s["wind_speed"] for s in samples) / count * MS_TO_KMH),
        pop=round_half_up(max(s["pop"] for s in samples) * 100),
    )


def empty_forecast_day(date: str) -> ForecastDay:
    return ForecastDay(
        date=date,
        temperature=TemperatureRange(min=0, max=0),
        condition="Unknown",
        description="Sin datos",
        icon="01d",
        humidity=0,
        wind_speed=0,
        pop=0,
    )

"""Terminal front end for the weather dashboard data layer."""
import argparse
import json
import logging
import sys
from typing import List, Optional

from config import DashboardConfig, load_config
from openweather_provider import OpenWeatherProvider
from result_cache import ResultCache
from retrying_fetcher import RetryingFetcher
from weather_controller import WeatherController
from weather_data import ForecastDay, WeatherRecord
from weather_service import WeatherService

DEFAULT_CITY = "Madrid"


def positive_float(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive (got {raw})")
    return value


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("weather-dashboard", description="Current weather and 5-day forecast by city")
    parser.add_argument("cities", nargs="*", default=[DEFAULT_CITY], metavar="CITY")
    parser.add_argument("--json", action="store_true", help="Print records as JSON")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--timeout", type=float, default=10.0, help="HTTP timeout in seconds")
    parser.add_argument("--max-retries", type=int, default=3)
    parser.add_argument("--cache-ttl-minutes", type=positive_float, default=None,
                        help="Overrides WEATHER_CACHE_EXPIRY_MINUTES")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def setup_logging(log_file: Optional[str], verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def build_controller(config: DashboardConfig, args: argparse.Namespace) -> WeatherController:
    ttl_minutes = args.cache_ttl_minutes if args.cache_ttl_minutes is not None else config.cache_ttl_minutes
    fetcher = RetryingFetcher(timeout=args.timeout, max_retries=args.max_retries)
    provider = OpenWeatherProvider(
        api_key=config.api_key,
        fetcher=fetcher,
        base_url=config.base_url,
        units=config.units,
        lang=config.lang,
    )
    service = WeatherService(provider=provider, cache=ResultCache(ttl_seconds=ttl_minutes * 60))
    logging.info("Weather service ready (cache ttl=%smin)", ttl_minutes)
    return WeatherController(service)


def format_current_line(record: WeatherRecord) -> str:
    location = record.location
    current = record.current
    return (
        f"{location.name}, {location.country}: {current.temperature:+d}°C "
        f"(sensación {current.feels_like:+d}°C) {current.description}  "
        f"Hum {current.humidity}%  Viento {current.wind_speed} km/h  "
        f"Pres {current.pressure} hPa  Vis {current.visibility} km"
    )


def format_forecast_line(day: ForecastDay) -> str:
    return (
        f"  {day.date}  {day.temperature.min:+d}/{day.temperature.max:+d}°C  "
        f"{day.description:<20.20}  Hum {day.humidity}%  "
        f"Viento {day.wind_speed} km/h  Lluvia {day.pop}%"
    )


def render(record: WeatherRecord, as_json: bool) -> str:
    if as_json:
        return json.dumps(record.to_dict(), ensure_ascii=False, indent=2)
    lines = [format_current_line(record)]
    lines.extend(format_forecast_line(day) for day in record.forecast)
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    controller = build_controller(load_config(), args)

    failures = 0
    with controller.service:
        for city in args.cities:
            if not city.strip():
                continue
            controller.fetch_weather(city)
            if controller.error:
                print(controller.error, file=sys.stderr)
                controller.clear_error()
                failures += 1
            elif controller.data is not None:
                print(render(controller.data, args.json))

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())

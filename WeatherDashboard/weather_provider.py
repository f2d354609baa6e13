"""Weather provider abstraction - allows swapping different weather APIs."""
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict


class ErrorKind(Enum):
    """Classification of every failure the acquisition pipeline can surface."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    SERVER = "server"
    HTTP = "http"
    NETWORK = "network"
    CONNECTION = "connection"
    PROCESSING = "processing"
    UNKNOWN = "unknown"


class WeatherProviderError(Exception):
    """Exception raised when fetching or processing weather data fails.

    The message is always safe to show to the user.
    """

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        super().__init__(message)
        self.kind = kind


class WeatherServiceError(WeatherProviderError):
    """Pipeline failure rewrapped at the service boundary."""

    PREFIX = "Error del servicio meteorológico: "

    @classmethod
    def wrap(cls, error: Exception) -> "WeatherServiceError":
        kind = error.kind if isinstance(error, WeatherProviderError) else ErrorKind.UNKNOWN
        return cls(f"{cls.PREFIX}{error}", kind)


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    @property
    @abstractmethod
    def has_credentials(self) -> bool:
        """Whether the provider is configured with an API credential."""

    def close(self) -> None:
        """Release network resources held by the provider."""

    @abstractmethod
    def get_current_payload(self, city: str) -> Dict[str, Any]:
        """
        Fetch the raw current-conditions payload for a sanitized city name.

        Raises:
            WeatherProviderError: If the provider fails to fetch data
        """

    @abstractmethod
    def get_forecast_payload(self, city: str) -> Dict[str, Any]:
        """
        Fetch the raw 5-day / 3-hour forecast payload for a sanitized city name.

        Raises:
            WeatherProviderError: If the provider fails to fetch data
        """

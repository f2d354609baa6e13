"""HTTP fetching with per-attempt timeouts, status classification and backoff."""
import logging
import threading
import time
from typing import Callable, List, NamedTuple, Optional

import requests
import urllib3

from weather_provider import ErrorKind, WeatherProviderError

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_SECONDS = 1.0
DEFAULT_USER_AGENT = "WeatherDashboard/1.0"
CHUNK_SIZE = 8192

NOT_FOUND_MESSAGE = "Ciudad no encontrada. Verifica el nombre e intenta nuevamente."
AUTH_MESSAGE = "Clave API inválida. Contacta al administrador."
RATE_LIMIT_MESSAGE = "Límite de solicitudes excedido. Intenta más tarde."
SERVER_MESSAGE = "Error del servidor meteorológico. Intenta más tarde."
TIMEOUT_MESSAGE = "Tiempo de espera agotado. Verifica tu conexión a internet."
CONNECTION_MESSAGE = "Error de conexión después de múltiples intentos."


class Classification(NamedTuple):
    """Outcome of classifying an HTTP status code."""
    kind: Optional[ErrorKind]  # None for a successful response
    retryable: bool
    message: str

    @property
    def ok(self) -> bool:
        return self.kind is None


def classify(status_code: int, reason: str = "") -> Classification:
    """
    Map an HTTP status code to an error kind and retry decision.

    404, 401 and 429 are terminal. 5xx and any other non-2xx status may be
    retried.
    """
    if 200 <= status_code < 300:
        return Classification(None, False, "")
    if status_code == 404:
        return Classification(ErrorKind.NOT_FOUND, False, NOT_FOUND_MESSAGE)
    if status_code == 401:
        return Classification(ErrorKind.AUTH, False, AUTH_MESSAGE)
    if status_code == 429:
        return Classification(ErrorKind.RATE_LIMIT, False, RATE_LIMIT_MESSAGE)
    if status_code >= 500:
        return Classification(ErrorKind.SERVER, True, SERVER_MESSAGE)
    message = f"Error HTTP {status_code}: {reason}" if reason else f"Error HTTP {status_code}"
    return Classification(ErrorKind.HTTP, True, message)


class DeadlineExceeded(Exception):
    """An attempt ran past its wall-clock deadline while receiving the body."""


class RetryingFetcher:
    """
    Issues GET requests and retries transient failures with exponential backoff.

    Each attempt, from connecting until the last body byte, must finish within
    ``timeout`` seconds of wall-clock time. The body is streamed and the
    deadline is checked between reads; an attempt that runs over is aborted by
    closing its connection and counts against the retry budget.

    Every thread gets its own requests session, created on first use.
    """

    def __init__(
        self,
        session_factory: Optional[Callable[[], requests.Session]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the fetcher.

        Args:
            session_factory: Builds a session for a worker thread (requests.Session by default)
            timeout: Per-attempt wall-clock timeout in seconds
            max_retries: Default number of attempts per fetch
            backoff_seconds: Base delay; attempt ``i`` waits ``backoff_seconds * 2**i``
            user_agent: Client identifier sent with every request
            sleep: Delay function (injectable for tests)
        """
        self._session_factory = session_factory or requests.Session
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.headers = {
            "Accept": "application/json",
            "User-Agent": user_agent,
        }
        self._sleep = sleep

        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def __enter__(self) -> "RetryingFetcher":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close every session this fetcher has created."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
            self._local = threading.local()
        for session in sessions:
            session.close()

    def _session(self) -> requests.Session:
        sess = getattr(self._local, "session", None)
        if sess is None:
            sess = self._session_factory()
            self._local.session = sess
            with self._sessions_lock:
                self._sessions.append(sess)
        return sess

    def fetch_with_retry(self, url: str, max_retries: Optional[int] = None) -> requests.Response:
        """
        Fetch ``url``, retrying network errors, timeouts and retryable statuses.

        Returns:
            requests.Response: The first 2xx response, with its body already loaded

        Raises:
            WeatherProviderError: Immediately for terminal statuses (404, 401, 429),
                or with kind CONNECTION once every attempt has failed
        """
        attempts = self.max_retries if max_retries is None else max_retries
        last_error: Optional[WeatherProviderError] = None

        for attempt in range(attempts):
            logging.info(f"Fetch attempt {attempt + 1}/{attempts}: {self._redact(url)}")
            deadline = time.monotonic() + self.timeout
            try:
                response = self._session().get(url, headers=self.headers, timeout=self.timeout, stream=True)
                result = classify(response.status_code, getattr(response, "reason", "") or "")
                if result.ok:
                    self._load_body(response, deadline)
                else:
                    response.close()
            except (requests.exceptions.Timeout, urllib3.exceptions.TimeoutError, DeadlineExceeded) as e:
                logging.warning(f"Attempt {attempt + 1} timed out after {self.timeout}s: {e}")
                last_error = WeatherProviderError(TIMEOUT_MESSAGE, ErrorKind.TIMEOUT)
            except (requests.exceptions.RequestException, urllib3.exceptions.HTTPError, OSError) as e:
                logging.warning(f"Attempt {attempt + 1} network error: {e}")
                last_error = WeatherProviderError(f"Error de red: {e}", ErrorKind.NETWORK)
            else:
                if result.ok:
                    logging.info(f"API response status: {response.status_code}")
                    return response

                if not result.retryable:
                    logging.error(f"Non-retryable response {response.status_code}, stopping retries")
                    raise WeatherProviderError(result.message, result.kind)

                logging.warning(f"Attempt {attempt + 1} failed with status {response.status_code}")
                last_error = WeatherProviderError(result.message, result.kind)

            if attempt < attempts - 1:
                delay = self.backoff_seconds * (2 ** attempt)
                logging.info(f"Retrying in {delay}s...")
                self._sleep(delay)

        logging.error(f"Fetch failed after {attempts} attempts: {last_error}")
        raise WeatherProviderError(CONNECTION_MESSAGE, ErrorKind.CONNECTION) from last_error

    def _load_body(self, response: requests.Response, deadline: float) -> None:
        """
        Read a streamed body into ``response`` before ``deadline``.

        ``read1`` returns as soon as any bytes arrive, so a server trickling
        the body cannot hold a single read past the deadline check.
        """
        chunks = []
        try:
            while True:
                if time.monotonic() > deadline:
                    raise DeadlineExceeded(f"body not received within {self.timeout}s")
                chunk = response.raw.read1(CHUNK_SIZE, decode_content=True)
                if not chunk:
                    break
                chunks.append(chunk)
        except Exception:
            # drops the connection instead of returning it to the pool
            response.close()
            raise

        response._content = b"".join(chunks)
        response._content_consumed = True
        response.close()

    @staticmethod
    def _redact(url: str) -> str:
        """Hide the appid query value in log output."""
        head, sep, tail = url.partition("appid=")
        if not sep:
            return url
        _, amp, rest = tail.partition("&")
        return f"{head}appid=***{amp}{rest}"

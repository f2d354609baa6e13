"""Tests for the retrying HTTP fetcher."""
import io
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import Mock, call

import pytest
import requests
from retrying_fetcher import CONNECTION_MESSAGE, RetryingFetcher, classify
from weather_provider import ErrorKind, WeatherProviderError

URL = "https://api.example.test/weather?q=Madrid&appid=secret&units=metric"


def make_response(status_code, reason="", body=b"{}"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    stream = io.BytesIO(body)
    response.raw.read1.side_effect = lambda amt, decode_content=True: stream.read(amt)
    return response


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def sleep():
    return Mock()


@pytest.fixture
def fetcher(session, sleep):
    return RetryingFetcher(session_factory=lambda: session, timeout=10, max_retries=3, sleep=sleep)


@pytest.mark.parametrize("status, kind, retryable", [
    (404, ErrorKind.NOT_FOUND, False),
    (401, ErrorKind.AUTH, False),
    (429, ErrorKind.RATE_LIMIT, False),
    (500, ErrorKind.SERVER, True),
    (503, ErrorKind.SERVER, True),
    (400, ErrorKind.HTTP, True),
    (302, ErrorKind.HTTP, True),
])
def test_classify_error_statuses(status, kind, retryable):
    result = classify(status)
    assert result.kind == kind
    assert result.retryable is retryable
    assert not result.ok
    assert result.message


def test_classify_success():
    assert classify(200).ok
    assert classify(204).ok


def test_classify_generic_http_message():
    assert classify(418, "I'm a teapot").message == "Error HTTP 418: I'm a teapot"
    assert classify(418).message == "Error HTTP 418"


def test_success_on_first_attempt(fetcher, session, sleep):
    ok = make_response(200)
    session.get.return_value = ok

    assert fetcher.fetch_with_retry(URL) is ok
    session.get.assert_called_once_with(
        URL,
        headers={"Accept": "application/json", "User-Agent": "WeatherDashboard/1.0"},
        timeout=10,
        stream=True,
    )
    assert ok._content == b"{}"
    sleep.assert_not_called()


def test_succeeds_after_transient_failures_with_backoff(fetcher, session, sleep):
    ok = make_response(200)
    session.get.side_effect = [
        requests.exceptions.ConnectionError("reset"),
        make_response(502),
        ok,
    ]

    assert fetcher.fetch_with_retry(URL) is ok
    assert session.get.call_count == 3
    assert sleep.call_args_list == [call(1.0), call(2.0)]


def test_backoff_doubles_for_larger_budget(session, sleep):
    fetcher = RetryingFetcher(session_factory=lambda: session, max_retries=5, sleep=sleep)
    ok = make_response(200)
    session.get.side_effect = [make_response(500)] * 4 + [ok]

    assert fetcher.fetch_with_retry(URL) is ok
    assert session.get.call_count == 5
    assert sleep.call_args_list == [call(1.0), call(2.0), call(4.0), call(8.0)]


def test_not_found_is_not_retried(fetcher, session, sleep):
    session.get.return_value = make_response(404)

    with pytest.raises(WeatherProviderError) as exc_info:
        fetcher.fetch_with_retry(URL)

    assert exc_info.value.kind == ErrorKind.NOT_FOUND
    assert "Ciudad no encontrada" in str(exc_info.value)
    assert session.get.call_count == 1
    sleep.assert_not_called()


@pytest.mark.parametrize("status, kind", [
    (401, ErrorKind.AUTH),
    (429, ErrorKind.RATE_LIMIT),
])
def test_terminal_statuses_short_circuit(fetcher, session, sleep, status, kind):
    session.get.side_effect = [make_response(500), make_response(status), make_response(200)]

    with pytest.raises(WeatherProviderError) as exc_info:
        fetcher.fetch_with_retry(URL)

    assert exc_info.value.kind == kind
    assert session.get.call_count == 2


def test_exhausted_retries_raise_connection_error(fetcher, session, sleep):
    session.get.return_value = make_response(503)

    with pytest.raises(WeatherProviderError) as exc_info:
        fetcher.fetch_with_retry(URL)

    assert exc_info.value.kind == ErrorKind.CONNECTION
    assert str(exc_info.value) == CONNECTION_MESSAGE
    assert exc_info.value.__cause__.kind == ErrorKind.SERVER
    assert session.get.call_count == 3
    # no wait after the final attempt
    assert sleep.call_args_list == [call(1.0), call(2.0)]


def test_timeouts_count_against_retry_budget(fetcher, session, sleep):
    session.get.side_effect = requests.exceptions.Timeout("read timed out")

    with pytest.raises(WeatherProviderError) as exc_info:
        fetcher.fetch_with_retry(URL)

    assert exc_info.value.kind == ErrorKind.CONNECTION
    assert exc_info.value.__cause__.kind == ErrorKind.TIMEOUT
    assert session.get.call_count == 3


def test_timeout_then_success(fetcher, session, sleep):
    ok = make_response(200)
    session.get.side_effect = [requests.exceptions.ConnectTimeout("slow"), ok]

    assert fetcher.fetch_with_retry(URL) is ok
    assert sleep.call_args_list == [call(1.0)]


def test_max_retries_override(fetcher, session, sleep):
    session.get.return_value = make_response(500)

    with pytest.raises(WeatherProviderError):
        fetcher.fetch_with_retry(URL, max_retries=1)

    assert session.get.call_count == 1
    sleep.assert_not_called()


def test_redact_hides_api_key():
    redacted = RetryingFetcher._redact(URL)
    assert "secret" not in redacted
    assert redacted.endswith("appid=***&units=metric")
    assert RetryingFetcher._redact("https://example.test/") == "https://example.test/"


def test_each_thread_gets_its_own_session(sleep):
    barrier = threading.Barrier(2, timeout=5)
    created = []

    def make_session():
        session = Mock()

        def get(url, **kwargs):
            barrier.wait()
            return make_response(200)

        session.get.side_effect = get
        created.append(session)
        return session

    fetcher = RetryingFetcher(session_factory=make_session, sleep=sleep)
    threads = [threading.Thread(target=fetcher.fetch_with_retry, args=(URL,)) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(created) == 2
    assert [s.get.call_count for s in created] == [1, 1]
    fetcher.close()
    for session in created:
        session.close.assert_called_once_with()


def test_session_reused_within_a_thread(sleep):
    factory = Mock(side_effect=lambda: Mock(get=Mock(side_effect=lambda url, **kw: make_response(200))))

    with RetryingFetcher(session_factory=factory, sleep=sleep) as fetcher:
        fetcher.fetch_with_retry(URL)
        fetcher.fetch_with_retry(URL)

    assert factory.call_count == 1


class SlowHandler(BaseHTTPRequestHandler):
    """Serves a small JSON body; /slow trickles it one byte every 0.3s."""

    BODY = b'{"ok": true}'

    def do_GET(self):
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.BODY)))
        self.end_headers()
        try:
            if self.path.startswith("/slow"):
                for byte in self.BODY:
                    self.wfile.write(bytes([byte]))
                    self.wfile.flush()
                    time.sleep(0.3)
            else:
                self.wfile.write(self.BODY)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, *args):
        pass


@pytest.fixture
def local_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), SlowHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_slow_body_is_cut_off_at_the_deadline(local_server, sleep):
    with RetryingFetcher(timeout=1.0, max_retries=1, sleep=sleep) as fetcher:
        start = time.monotonic()
        with pytest.raises(WeatherProviderError) as exc_info:
            fetcher.fetch_with_retry(f"{local_server}/slow")
        elapsed = time.monotonic() - start

    assert exc_info.value.kind == ErrorKind.CONNECTION
    assert exc_info.value.__cause__.kind == ErrorKind.TIMEOUT
    # the full body would take about 3.6s to arrive
    assert elapsed < 2.5


def test_slow_body_timeouts_are_retried(local_server, sleep):
    with RetryingFetcher(timeout=0.5, max_retries=2, sleep=sleep) as fetcher:
        with pytest.raises(WeatherProviderError) as exc_info:
            fetcher.fetch_with_retry(f"{local_server}/slow")

    assert exc_info.value.__cause__.kind == ErrorKind.TIMEOUT
    assert sleep.call_args_list == [call(1.0)]


def test_streamed_body_is_available_as_json(local_server, sleep):
    with RetryingFetcher(timeout=5.0, max_retries=1, sleep=sleep) as fetcher:
        response = fetcher.fetch_with_retry(f"{local_server}/fast")

    assert response.status_code == 200
    assert response.json() == {"ok": True}

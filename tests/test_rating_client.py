"""Remote rating client retry, timeout and error classification tests."""

from __future__ import annotations

import json
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Iterator, List

import pytest
import requests

from logic.retry import RetryPolicy
from models.errors import (
    PayloadValidationError,
    ResponseFormatError,
    TransientNetworkError,
    Unauthorized,
)
from tools.image_normalizer import NormalizedImage
from tools.rating_client import RemoteRatingClient

RATING = {
    "outfit_vibe": "Y2K",
    "look_score": 8.2,
    "look_comment": "Shape is good, shoes look heavy.",
    "color_score": 7.1,
    "color_comment": "Pink and silver work together.",
    "suggestions": ["Swap to white leather sneakers", "Add a denim vest"],
    "observations": "Upright posture helps the cropped top.",
}


class FakeResponse:
    def __init__(self, status_code: int, body: Any = None, text: str | None = None) -> None:
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else json.dumps(body)

    @property
    def content(self) -> bytes:
        return self.text.encode("utf-8")

    def close(self) -> None:
        self.closed = True


class FakeSession:
    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[dict] = []

    def post(self, url, json=None, headers=None, timeout=None, stream=False):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout, "stream": stream})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


IMAGE = NormalizedImage(base64="/9j/AAAA", mime_type="image/jpeg", width=10, height=10)


def _client(session: FakeSession, sleeps: List[float], timeout: float = 45.0) -> RemoteRatingClient:
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleeps.append)
    return RemoteRatingClient("https://rater.test/api/rate-outfit", retry_policy=policy, timeout_seconds=timeout, session=session)


def test_successful_rating_sends_bearer_and_payload() -> None:
    session = FakeSession(FakeResponse(200, {"success": True, "rating": RATING}))
    fields = _client(session, []).rate(IMAGE, "token-1")

    assert fields.outfit_vibe == "Y2K"
    assert fields.look_score == 8.2
    assert fields.suggestions[0] == "Swap to white leather sneakers"
    call = session.calls[0]
    assert call["headers"]["Authorization"] == "Bearer token-1"
    assert call["json"] == {"image": "/9j/AAAA", "mimeType": "image/jpeg"}
    assert 0 < call["timeout"] <= 45.0


def test_server_errors_are_retried_three_times() -> None:
    sleeps: List[float] = []
    session = FakeSession(FakeResponse(500, {"success": False, "error": "boom"}))

    with pytest.raises(TransientNetworkError):
        _client(session, sleeps).rate(IMAGE, "token-1")

    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_unauthorized_is_not_retried() -> None:
    session = FakeSession(FakeResponse(401, {"success": False, "error": "jwt expired"}))

    with pytest.raises(Unauthorized):
        _client(session, []).rate(IMAGE, "token-1")

    assert len(session.calls) == 1


@pytest.mark.parametrize("token", [None, "", "   "])
def test_missing_token_fails_without_network_call(token) -> None:
    session = FakeSession(FakeResponse(200, {"success": True, "rating": RATING}))

    with pytest.raises(Unauthorized):
        _client(session, []).rate(IMAGE, token)

    assert session.calls == []


def test_payload_too_large_is_terminal() -> None:
    session = FakeSession(FakeResponse(413, text="Request Entity Too Large"))

    with pytest.raises(PayloadValidationError):
        _client(session, []).rate(IMAGE, "token-1")

    assert len(session.calls) == 1


def test_oversized_image_is_rejected_before_sending() -> None:
    session = FakeSession(FakeResponse(200, {"success": True, "rating": RATING}))
    huge = NormalizedImage(base64="A" * (4 * 1024 * 1024), mime_type="image/jpeg", width=1, height=1)

    with pytest.raises(PayloadValidationError):
        _client(session, []).rate(huge, "token-1")

    assert session.calls == []


def test_json_object_is_extracted_from_surrounding_text() -> None:
    body = "Here you go:\n```json\n" + json.dumps({"success": True, "rating": RATING}) + "\n```"
    session = FakeSession(FakeResponse(200, text=body))

    fields = _client(session, []).rate(IMAGE, "token-1")

    assert fields.color_score == 7.1


def test_non_json_body_is_a_format_error_and_not_retried() -> None:
    session = FakeSession(FakeResponse(200, text="<html>gateway</html>"))

    with pytest.raises(ResponseFormatError):
        _client(session, []).rate(IMAGE, "token-1")

    assert len(session.calls) == 1


def test_success_false_is_a_format_error() -> None:
    session = FakeSession(FakeResponse(200, {"success": False, "error": "model refused"}))

    with pytest.raises(ResponseFormatError, match="model refused"):
        _client(session, []).rate(IMAGE, "token-1")


def test_connection_error_then_success() -> None:
    sleeps: List[float] = []
    session = FakeSession(
        requests.ConnectionError("reset"),
        FakeResponse(200, {"success": True, "rating": RATING}),
    )

    fields = _client(session, sleeps).rate(IMAGE, "token-1")

    assert fields.outfit_vibe == "Y2K"
    assert len(session.calls) == 2
    assert sleeps == [1.0]


def test_timeouts_are_retried_within_the_deadline() -> None:
    clock = FakeClock()
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, sleep=clock.sleep, clock=clock)
    session = FakeSession(requests.Timeout("slow"))
    client = RemoteRatingClient(
        "https://rater.test/api/rate-outfit",
        retry_policy=policy,
        timeout_seconds=2.5,
        session=session,
        clock=clock,
    )

    with pytest.raises(TransientNetworkError):
        client.rate(IMAGE, "token-1")

    # The third attempt would start after the 2.5s budget is spent.
    assert len(session.calls) == 2
    assert session.calls[1]["timeout"] == pytest.approx(1.5)


class _RatingHandler(BaseHTTPRequestHandler):
    """Answers with a valid envelope, optionally one byte at a time."""

    def do_POST(self) -> None:  # noqa: N802
        self.rfile.read(int(self.headers.get("Content-Length", 0)))
        body = json.dumps({"success": True, "rating": RATING}).encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        try:
            if self.server.drip_interval is None:
                self.wfile.write(body)
                return
            for index in range(len(body)):
                if self.server.stopping.is_set():
                    return
                self.wfile.write(body[index : index + 1])
                self.wfile.flush()
                time.sleep(self.server.drip_interval)
        except OSError:
            return

    def log_message(self, format, *args) -> None:  # noqa: A002
        pass


@pytest.fixture()
def rating_server() -> Iterator[ThreadingHTTPServer]:
    server = ThreadingHTTPServer(("127.0.0.1", 0), _RatingHandler)
    server.daemon_threads = True
    server.drip_interval = None
    server.stopping = threading.Event()
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.stopping.set()
    server.shutdown()
    server.server_close()


def _live_client(server: ThreadingHTTPServer, timeout: float) -> RemoteRatingClient:
    host, port = server.server_address[:2]
    session = requests.Session()
    session.trust_env = False
    return RemoteRatingClient(
        f"http://{host}:{port}/api/rate-outfit",
        retry_policy=RetryPolicy(max_attempts=1),
        timeout_seconds=timeout,
        session=session,
    )


def test_live_endpoint_returns_rating(rating_server) -> None:
    fields = _live_client(rating_server, timeout=5.0).rate(IMAGE, "token-1")

    assert fields.outfit_vibe == "Y2K"


def test_slowly_streamed_body_is_cut_off_at_the_deadline(rating_server) -> None:
    rating_server.drip_interval = 0.05
    client = _live_client(rating_server, timeout=0.5)

    started = time.monotonic()
    with pytest.raises(TransientNetworkError, match="time budget"):
        client.rate(IMAGE, "token-1")
    elapsed = time.monotonic() - started

    # The full body would take well over ten seconds to arrive.
    assert elapsed < 1.5


@pytest.mark.parametrize(
    "body",
    [
        [RATING],
        {"success": True},
        {"success": True, "rating": {**RATING, "look_score": 14}},
        {"success": "sometimes", "rating": RATING},
    ],
)
def test_malformed_envelopes_are_format_errors(body) -> None:
    session = FakeSession(FakeResponse(200, body))

    with pytest.raises(ResponseFormatError):
        _client(session, []).rate(IMAGE, "token-1")
    assert len(session.calls) == 1

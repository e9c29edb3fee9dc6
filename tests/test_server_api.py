"""HTTP contract tests for the rating endpoint."""

from __future__ import annotations

import base64

import pytest
from fastapi.testclient import TestClient

from models.errors import ResponseFormatError, TransientNetworkError
from server import api
from tools.identity import AuthUser, StaticIdentityProvider


class FakeStylist:
    def __init__(self, fields=None, error: Exception | None = None) -> None:
        self.fields = fields
        self.error = error
        self.calls = []

    def rate(self, image_b64, mime_type):
        self.calls.append(mime_type)
        if self.error:
            raise self.error
        return self.fields


@pytest.fixture()
def make_client():
    def _make(stylist, verifier=None) -> TestClient:
        api.app.dependency_overrides[api.get_stylist] = lambda: stylist
        api.app.dependency_overrides[api.get_token_verifier] = lambda: verifier
        return TestClient(api.app)

    yield _make
    api.app.dependency_overrides.clear()


def _body(image_bytes: bytes = b"\xff\xd8\xff\xe0jpeg-bytes") -> dict:
    return {"image": base64.b64encode(image_bytes).decode("ascii"), "mimeType": "image/jpeg"}


AUTH = {"Authorization": "Bearer token-abc"}


def test_missing_credential_is_rejected(make_client, rating_fields) -> None:
    stylist = FakeStylist(rating_fields)
    response = make_client(stylist).post("/api/rate-outfit", json=_body())

    assert response.status_code == 401
    assert response.json()["success"] is False
    assert stylist.calls == []


def test_verifier_rejects_unknown_token(make_client, rating_fields) -> None:
    verifier = StaticIdentityProvider(AuthUser(id="user-123"), token="something-else")
    response = make_client(FakeStylist(rating_fields), verifier).post("/api/rate-outfit", json=_body(), headers=AUTH)

    assert response.status_code == 401


def test_successful_rating_envelope(make_client, rating_fields) -> None:
    verifier = StaticIdentityProvider(AuthUser(id="user-123"), token="token-abc")
    response = make_client(FakeStylist(rating_fields), verifier).post("/api/rate-outfit", json=_body(), headers=AUTH)

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["rating"]["outfit_vibe"] == "Streetwear"
    assert payload["rating"]["suggestions"][0] == "Tuck in the white tee"


def test_oversized_payload_is_413(make_client, rating_fields) -> None:
    stylist = FakeStylist(rating_fields)
    big = _body(b"\x00" * (3 * 1024 * 1024))
    response = make_client(stylist).post("/api/rate-outfit", json=big, headers=AUTH)

    assert response.status_code == 413
    assert stylist.calls == []


def test_data_url_prefix_is_400(make_client, rating_fields) -> None:
    body = {"image": "data:image/jpeg;base64,AAAA", "mimeType": "image/jpeg"}
    response = make_client(FakeStylist(rating_fields)).post("/api/rate-outfit", json=body, headers=AUTH)

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.parametrize(
    "error",
    [ResponseFormatError("no JSON object found"), TransientNetworkError("model timeout")],
)
def test_model_failures_are_502(make_client, error) -> None:
    response = make_client(FakeStylist(error=error)).post("/api/rate-outfit", json=_body(), headers=AUTH)

    assert response.status_code == 502
    assert response.json()["success"] is False


def test_healthcheck(make_client) -> None:
    response = make_client(FakeStylist()).get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"

"""Shared fixtures and fakes for the rater test suite."""

from __future__ import annotations

import io
from typing import Callable, List, Optional

import pytest
from PIL import Image

from models.errors import PersistenceError, Unauthorized
from models.rating_record import PendingSubmission, RatingFields, RatingRecord
from tools.identity import AuthUser, StaticIdentityProvider
from tools.rating_store import SavedRating


def encode_image(width: int, height: int, fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    color = (10, 120, 200, 128) if mode == "RGBA" else (10, 120, 200)
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture()
def image_bytes() -> Callable[..., bytes]:
    return encode_image


@pytest.fixture()
def rating_fields() -> RatingFields:
    return RatingFields(
        outfit_vibe="Streetwear",
        look_score=7.8,
        look_comment="Fit is clean, tuck the shirt.",
        color_score=6.4,
        color_comment="Neutral base works, add one bold color.",
        suggestions=["Tuck in the white tee", "Add a dark green bomber jacket", "Add a silver chain"],
        observations="Relaxed posture suits the loose fit.",
    )


def make_record(record_id: int, look_score: float = 7.0, color_score: float = 6.0, vibe: str = "Minimalist") -> RatingRecord:
    return RatingRecord(
        id=record_id,
        image_url="data:image/jpeg;base64,AAAA",
        created_at=f"2025-01-0{record_id % 9 + 1}T10:00:00+00:00",
        outfit_vibe=vibe,
        look_score=look_score,
        look_comment="Shape is good.",
        color_score=color_score,
        color_comment="Colors are calm.",
        suggestions=["Try black corduroy pants"],
        observations="",
    )


def make_submission(vibe: str = "Formal", placeholder_id: Optional[int] = None) -> PendingSubmission:
    return PendingSubmission(
        image_url="data:image/jpeg;base64,AAAA",
        rating=RatingFields(
            outfit_vibe=vibe,
            look_score=8.0,
            look_comment="Clean lines.",
            color_score=7.0,
            color_comment="Good contrast.",
            suggestions=["Add a navy wool tie"],
            observations="",
        ),
        placeholder_id=placeholder_id,
    )


class FakeRatingClient:
    """Stands in for RemoteRatingClient; records tokens it was called with."""

    def __init__(self, fields: RatingFields, error: Exception | None = None) -> None:
        self.fields = fields
        self.error = error
        self.tokens: List[Optional[str]] = []

    def rate(self, image, access_token):
        if not access_token:
            raise Unauthorized("no token")
        self.tokens.append(access_token)
        if self.error:
            raise self.error
        return self.fields


class FlakyStore:
    """In-memory RatingStore that fails the first ``failures`` inserts."""

    def __init__(self, failures: int = 0, history: Optional[List[RatingRecord]] = None) -> None:
        self.failures = failures
        self.rows: List[tuple[str, PendingSubmission]] = []
        self.attempts = 0
        self.history = history or []
        self._next_id = 100

    def insert(self, user_id: str, submission: PendingSubmission) -> SavedRating:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("store offline")
        self.rows.append((user_id, submission))
        self._next_id += 1
        return SavedRating(
            id=self._next_id,
            image_url=f"https://cdn.example.test/ratings/{self._next_id}.jpg",
            created_at="2025-02-01T12:00:00+00:00",
        )

    def list_for_user(self, user_id: str) -> List[RatingRecord]:
        return list(self.history)


@pytest.fixture()
def user() -> AuthUser:
    return AuthUser(id="user-123", email="someone@example.com", display_name="Sam")


@pytest.fixture()
def identity(user: AuthUser) -> StaticIdentityProvider:
    return StaticIdentityProvider(user=user, token="token-abc")


@pytest.fixture()
def no_sleep() -> List[float]:
    return []

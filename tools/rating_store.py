"""Rating storage abstractions with SQLite and Supabase implementations."""
from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from supabase import create_client

from models.errors import PersistenceError
from models.rating_record import PendingSubmission, RatingRecord, utc_now_iso

LOGGER = logging.getLogger(__name__)

RATINGS_TABLE = "ratings"


@dataclass(frozen=True)
class SavedRating:
    """Server-assigned values returned by an insert."""

    id: int
    image_url: str
    created_at: str


class RatingStore:
    """Persistence interface for rating rows keyed by a generated id and user id."""

    def insert(self, user_id: str, submission: PendingSubmission) -> SavedRating:
        raise NotImplementedError

    def list_for_user(self, user_id: str) -> List[RatingRecord]:
        raise NotImplementedError


class SQLiteRatingStore(RatingStore):
    """Local SQLite-backed store, used offline and in tests."""

    def __init__(self, database_path: str | Path = "data/ratings.db") -> None:
        self.database_path = Path(database_path)
        if self.database_path.parent and not self.database_path.parent.exists():
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ratings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    image_url TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    outfit_vibe TEXT,
                    look_score REAL,
                    look_comment TEXT,
                    color_score REAL,
                    color_comment TEXT,
                    suggestions TEXT,
                    observations TEXT
                );
                """
            )

    def insert(self, user_id: str, submission: PendingSubmission) -> SavedRating:
        row = submission.to_row()
        created_at = utc_now_iso()
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO ratings (
                        user_id, image_url, created_at, outfit_vibe, look_score, look_comment,
                        color_score, color_comment, suggestions, observations
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user_id,
                        row["image_url"],
                        created_at,
                        row["outfit_vibe"],
                        row["look_score"],
                        row["look_comment"],
                        row["color_score"],
                        row["color_comment"],
                        json.dumps(row["suggestions"]),
                        row["observations"],
                    ),
                )
                new_id = cursor.lastrowid
        except sqlite3.Error as exc:
            raise PersistenceError(f"SQLite insert failed: {exc}") from exc
        return SavedRating(id=int(new_id), image_url=row["image_url"], created_at=created_at)

    def list_for_user(self, user_id: str) -> List[RatingRecord]:
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM ratings WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                    (user_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"SQLite read failed: {exc}") from exc
        return [RatingRecord.from_row(dict(row)) for row in rows]


class SupabaseRatingStore(RatingStore):
    """Hosted ``ratings`` table accessed through the Supabase client."""

    def __init__(self, client: Any = None, url: str | None = None, key: str | None = None) -> None:
        if client is None:
            if not url or not key:
                raise ValueError("supabase url and key are required")
            client = create_client(url, key)
        self.client = client

    def insert(self, user_id: str, submission: PendingSubmission) -> SavedRating:
        payload: Dict[str, Any] = {"user_id": user_id, **submission.to_row()}
        try:
            response = self.client.table(RATINGS_TABLE).insert(payload).execute()
        except Exception as exc:
            raise PersistenceError(f"Supabase insert failed: {exc}") from exc

        rows = getattr(response, "data", None) or []
        if not rows:
            raise PersistenceError("Supabase insert returned no row")
        saved = rows[0]
        return SavedRating(
            id=int(saved["id"]),
            image_url=str(saved.get("image_url") or payload["image_url"]),
            created_at=str(saved.get("created_at") or utc_now_iso()),
        )

    def list_for_user(self, user_id: str) -> List[RatingRecord]:
        try:
            response = (
                self.client.table(RATINGS_TABLE)
                .select("*")
                .eq("user_id", user_id)
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as exc:
            raise PersistenceError(f"Supabase read failed: {exc}") from exc
        return [RatingRecord.from_row(row) for row in (response.data or [])]


__all__ = ["RatingStore", "SavedRating", "SQLiteRatingStore", "SupabaseRatingStore"]

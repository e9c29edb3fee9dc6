"""Durable FIFO of rating submissions awaiting a successful store write."""
from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from models.errors import OutfitRaterError
from models.rating_record import PendingSubmission
from rater_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)


@dataclass
class DrainResult:
    """Outcome of one drain pass."""

    persisted: List[Any] = field(default_factory=list)
    remaining: int = 0
    error: Optional[BaseException] = None

    @property
    def halted(self) -> bool:
        return self.error is not None


class PendingQueue:
    """Interface for the durable overflow queue."""

    def enqueue(self, item: PendingSubmission) -> None:
        raise NotImplementedError

    def peek_all(self) -> List[PendingSubmission]:
        raise NotImplementedError

    def remove_first(self) -> Optional[PendingSubmission]:
        raise NotImplementedError

    def __len__(self) -> int:
        return len(self.peek_all())

    def drain(self, persist: Callable[[PendingSubmission], Any]) -> DrainResult:
        """Replay items front to back, stopping at the first failure.

        Each successfully persisted item is removed before the next is tried.
        On failure the failing item and everything behind it stay queued in
        their original order.
        """

        result = DrainResult()
        while True:
            items = self.peek_all()
            if not items:
                break
            head = items[0]
            try:
                outcome = persist(head)
            except OutfitRaterError as exc:
                result.error = exc
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "pending_drain_halted",
                    remaining=len(items),
                    error=type(exc).__name__,
                )
                break
            self.remove_first()
            result.persisted.append(outcome)
        result.remaining = len(self)
        if result.persisted:
            log_event(
                LOGGER,
                logging.INFO,
                "pending_drain_progress",
                persisted=len(result.persisted),
                remaining=result.remaining,
            )
        return result


class JSONPendingQueue(PendingQueue):
    """Queue stored as one JSON list, rewritten atomically on every change."""

    def __init__(self, path: str | Path = "data/pending_ratings.json") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _load(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            quarantine = self.path.with_name(f"{self.path.name}.corrupt-{int(time.time())}")
            os.replace(self.path, quarantine)
            LOGGER.warning("Pending queue file unreadable; moved aside", extra={"quarantine": str(quarantine)})
            return []
        if not isinstance(raw, list):
            LOGGER.warning("Pending queue file is not a list; ignoring")
            return []
        valid = [item for item in raw if self._replayable(item)]
        if len(valid) != len(raw):
            self._save(valid)
        return valid

    @staticmethod
    def _replayable(raw: Any) -> bool:
        try:
            PendingSubmission.from_dict(raw)
        except (KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Dropping unreplayable pending item", extra={"error": str(exc)})
            return False
        return True

    def _save(self, items: List[Dict[str, Any]]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as handle:
                json.dump(items, handle)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def enqueue(self, item: PendingSubmission) -> None:
        with self._lock:
            items = self._load()
            items.append(item.to_dict())
            self._save(items)

    def peek_all(self) -> List[PendingSubmission]:
        with self._lock:
            return [PendingSubmission.from_dict(raw) for raw in self._load()]

    def remove_first(self) -> Optional[PendingSubmission]:
        with self._lock:
            items = self._load()
            if not items:
                return None
            head = items.pop(0)
            self._save(items)
        return PendingSubmission.from_dict(head)


class SQLitePendingQueue(PendingQueue):
    """SQLite-backed queue, one row per item ordered by insertion."""

    def __init__(self, db_path: str | Path = "data/pending_ratings.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS pending_ratings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    payload TEXT NOT NULL,
                    enqueued_at REAL
                )
                """
            )

    def enqueue(self, item: PendingSubmission) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO pending_ratings(payload, enqueued_at) VALUES (?, ?)",
                (json.dumps(item.to_dict()), time.time()),
            )

    def peek_all(self) -> List[PendingSubmission]:
        with self._connect() as conn:
            rows = conn.execute("SELECT payload FROM pending_ratings ORDER BY id ASC").fetchall()
        return [PendingSubmission.from_dict(json.loads(row["payload"])) for row in rows]

    def remove_first(self) -> Optional[PendingSubmission]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, payload FROM pending_ratings ORDER BY id ASC LIMIT 1"
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM pending_ratings WHERE id = ?", (row["id"],))
        return PendingSubmission.from_dict(json.loads(row["payload"]))

    def __len__(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS ct FROM pending_ratings").fetchone()
        return int(row["ct"]) if row else 0


__all__ = ["DrainResult", "PendingQueue", "JSONPendingQueue", "SQLitePendingQueue"]

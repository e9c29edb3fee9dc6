"""Session-scoped application state driven by explicit commands."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from logic.stats import calculate_user_stats
from memory.optimistic_cache import OptimisticCache
from models.rating_record import PendingSubmission, RatingRecord
from models.user_stats import UserStats
from tools.identity import AuthUser


@dataclass(frozen=True)
class Insert:
    record: RatingRecord


@dataclass(frozen=True)
class Reconcile:
    placeholder_id: int
    durable_id: int
    durable_image_url: str
    durable_created_at: str


@dataclass(frozen=True)
class Enqueue:
    submission: PendingSubmission


@dataclass(frozen=True)
class Drain:
    persisted: int
    remaining: int


@dataclass(frozen=True)
class LoadHistory:
    user: AuthUser
    records: Sequence[RatingRecord]


@dataclass(frozen=True)
class ClearSession:
    pass


Command = Union[Insert, Reconcile, Enqueue, Drain, LoadHistory, ClearSession]


@dataclass(frozen=True)
class Notification:
    """A non-blocking message for the UI (the toast of the web client)."""

    level: str
    message: str


@dataclass
class SessionState:
    """Everything the views read: user, ratings, derived stats and toasts.

    All mutation goes through :meth:`apply`; stats are recomputed from the full
    list after every command that changes it. The lock keeps a single writer
    if the state is shared across threads.
    """

    user: Optional[AuthUser] = None
    cache: OptimisticCache = field(default_factory=OptimisticCache)
    stats: Optional[UserStats] = None
    loading: bool = True
    pending_count: int = 0
    notifications: List[Notification] = field(default_factory=list)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False, repr=False, compare=False)

    @property
    def ratings(self) -> List[RatingRecord]:
        return self.cache.records

    def notify(self, level: str, message: str) -> None:
        with self._lock:
            self.notifications.append(Notification(level=level, message=message))

    def pop_notifications(self) -> List[Notification]:
        with self._lock:
            drained, self.notifications = self.notifications, []
            return drained

    def apply(self, command: Command) -> bool:
        """Apply one command; returns whether the rating list changed."""

        with self._lock:
            changed = False
            if isinstance(command, Insert):
                self.cache.insert(command.record)
                changed = True
            elif isinstance(command, Reconcile):
                changed = self.cache.reconcile(
                    command.placeholder_id,
                    command.durable_id,
                    command.durable_image_url,
                    command.durable_created_at,
                )
            elif isinstance(command, Enqueue):
                self.pending_count += 1
            elif isinstance(command, Drain):
                self.pending_count = command.remaining
            elif isinstance(command, LoadHistory):
                self.user = command.user
                self.cache.replace_all(command.records)
                self.loading = False
                changed = True
            elif isinstance(command, ClearSession):
                self.user = None
                self.cache.clear()
                self.stats = None
                self.pending_count = 0
                self.loading = False
                return True
            else:
                raise TypeError(f"unknown command {command!r}")

            if changed:
                self.stats = calculate_user_stats(self.cache.records)
            return changed


__all__ = [
    "ClearSession",
    "Command",
    "Drain",
    "Enqueue",
    "Insert",
    "LoadHistory",
    "Notification",
    "Reconcile",
    "SessionState",
]

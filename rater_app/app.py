"""Outfit Rater app bootstrap."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from logic.retry import RetryPolicy
from logic.submission import SubmissionOutcome, SubmissionPipeline
from memory.pending_queue import DrainResult, JSONPendingQueue, PendingQueue, SQLitePendingQueue
from memory.session_state import ClearSession, LoadHistory, SessionState
from models.errors import OutfitRaterError, PersistenceError, Unauthorized
from models.user_stats import UserStats
from rater_app.config import RaterConfig
from rater_app.logging_config import configure_logging, get_logger, log_event
from tools.identity import AuthUser, IdentityProvider, StaticIdentityProvider, SupabaseIdentityProvider
from tools.image_normalizer import ImageSource
from tools.rating_client import RemoteRatingClient
from tools.rating_store import RatingStore, SQLiteRatingStore, SupabaseRatingStore

LOGGER = get_logger(__name__)

SIGN_IN_AGAIN_MESSAGE = "Your session expired. Please sign in again."


class OutfitRaterApp:
    """Wires identity, rating client, store and pending queue around one session state."""

    def __init__(
        self,
        config: RaterConfig | None = None,
        *,
        identity: IdentityProvider | None = None,
        store: RatingStore | None = None,
        pending_queue: PendingQueue | None = None,
        rating_client: RemoteRatingClient | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config or RaterConfig.from_env()
        configure_logging()

        retry_kwargs = {"max_attempts": self.config.retry_attempts, "base_delay": self.config.retry_base_delay}
        if sleep is not None:
            retry_kwargs["sleep"] = sleep
        self.retry_policy = RetryPolicy(**retry_kwargs)

        self.identity = identity or self._build_identity()
        self.store = store or self._build_store()
        self.pending_queue = pending_queue or self._build_pending_queue()
        self.rating_client = rating_client or RemoteRatingClient(
            endpoint_url=self.config.rating_endpoint_url,
            retry_policy=self.retry_policy,
            timeout_seconds=self.config.request_timeout_seconds,
        )
        self.state = SessionState()
        self.requires_sign_in = False
        self.pipeline = SubmissionPipeline(
            state=self.state,
            identity=self.identity,
            rating_client=self.rating_client,
            store=self.store,
            pending_queue=self.pending_queue,
            persist_policy=self.retry_policy,
            max_image_width=self.config.max_image_width,
            image_quality=self.config.image_quality,
        )
        self._unsubscribe = self.identity.subscribe(self._on_auth_change)
        current = self.identity.current_user()
        if current is not None:
            self.start_session(current)
        else:
            self.state.loading = False

    def _supabase_client_owner(self) -> Optional[SupabaseIdentityProvider]:
        return self.identity if isinstance(self.identity, SupabaseIdentityProvider) else None

    def _build_identity(self) -> IdentityProvider:
        if self.config.supabase_url and self.config.supabase_anon_key:
            return SupabaseIdentityProvider(url=self.config.supabase_url, key=self.config.supabase_anon_key)
        return StaticIdentityProvider()

    def _build_store(self) -> RatingStore:
        if self.config.rating_store_backend.lower() == "supabase":
            owner = self._supabase_client_owner()
            if owner is not None:
                # Share the authenticated client so row-level security sees the user.
                return SupabaseRatingStore(client=owner.client)
            return SupabaseRatingStore(url=self.config.supabase_url, key=self.config.supabase_anon_key)
        return SQLiteRatingStore(self.config.rating_db_path or "data/ratings.db")

    def _build_pending_queue(self) -> PendingQueue:
        if self.config.pending_queue_backend.lower() == "sqlite":
            return SQLitePendingQueue(self.config.pending_queue_path or "data/pending_ratings.db")
        return JSONPendingQueue(self.config.pending_queue_path or "data/pending_ratings.json")

    def _on_auth_change(self, user: Optional[AuthUser]) -> None:
        if user is None:
            self.state.apply(ClearSession())
            return
        self.start_session(user)

    @property
    def stats(self) -> Optional[UserStats]:
        return self.state.stats

    def start_session(self, user: AuthUser) -> DrainResult:
        """Load the user's history and replay anything left in the pending queue."""

        self.state.loading = True
        self.requires_sign_in = False
        try:
            history = self.store.list_for_user(user.id)
        except PersistenceError as exc:
            log_event(LOGGER, logging.ERROR, "history_load_failed", error=str(exc))
            history = []
            self.state.notify("error", "Could not load your past ratings.")
        self.state.apply(LoadHistory(user=user, records=history))
        log_event(LOGGER, logging.INFO, "session_started", rating_count=len(history))
        return self.pipeline.drain_pending()

    def on_connectivity_restored(self) -> DrainResult:
        """Hook for the platform's online event."""

        return self.pipeline.drain_pending()

    def rate_outfit(self, source: ImageSource) -> SubmissionOutcome:
        """Rate a captured or uploaded photo.

        Unauthorized flags the app for re-authentication; every other rater
        error adds a dismissible notification. Both are re-raised.
        """

        try:
            return self.pipeline.submit(source)
        except Unauthorized:
            self.requires_sign_in = True
            self.state.notify("error", SIGN_IN_AGAIN_MESSAGE)
            raise
        except OutfitRaterError as exc:
            self.state.notify("error", str(exc) or "Failed to get rating.")
            log_event(LOGGER, logging.WARNING, "rating_failed", error=type(exc).__name__)
            raise

    def close(self) -> None:
        self._unsubscribe()


__all__ = ["OutfitRaterApp", "SIGN_IN_AGAIN_MESSAGE"]

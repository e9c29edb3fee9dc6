"""Optimistic submission flow: rate, show immediately, persist or queue."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from logic.retry import RetryPolicy
from memory.pending_queue import DrainResult, PendingQueue
from memory.session_state import Drain, Enqueue, Insert, Reconcile, SessionState
from models.errors import PersistenceError, Unauthorized
from models.rating_record import PendingSubmission, PlaceholderIds, RatingRecord
from rater_app.logging_config import get_logger, log_event, operation_context
from tools.identity import AuthUser, IdentityProvider
from tools.image_normalizer import ImageSource, make_thumbnail, normalize_image
from tools.rating_client import RemoteRatingClient
from tools.rating_store import RatingStore, SavedRating

LOGGER = get_logger(__name__)

SAVE_OK_MESSAGE = "Outfit saved successfully!"
SAVE_QUEUED_MESSAGE = "Saving failed. Will retry automatically."


@dataclass
class SubmissionOutcome:
    record: RatingRecord
    saved: Optional[SavedRating] = None
    queued: bool = False
    error: Optional[BaseException] = None


def _read_source(source: ImageSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, Path)):
        return Path(source).read_bytes()
    return source.read()


class SubmissionPipeline:
    """Runs one rating from photo to durable row.

    The record is inserted into the session list before the store write starts,
    and persistence failures are absorbed by the pending queue so the rating
    never disappears from the list once the model has answered.
    """

    def __init__(
        self,
        state: SessionState,
        identity: IdentityProvider,
        rating_client: RemoteRatingClient,
        store: RatingStore,
        pending_queue: PendingQueue,
        persist_policy: RetryPolicy | None = None,
        placeholder_ids: PlaceholderIds | None = None,
        max_image_width: int = 1024,
        image_quality: float = 0.85,
    ) -> None:
        self.state = state
        self.identity = identity
        self.rating_client = rating_client
        self.store = store
        self.pending_queue = pending_queue
        self.persist_policy = persist_policy or RetryPolicy(max_attempts=3, base_delay=1.0)
        self.placeholder_ids = placeholder_ids or PlaceholderIds()
        self.max_image_width = max_image_width
        self.image_quality = image_quality

    def _require_user(self) -> AuthUser:
        user = self.identity.current_user()
        if user is None:
            raise Unauthorized("sign in to rate outfits")
        return user

    def submit(self, source: ImageSource) -> SubmissionOutcome:
        """Rate ``source`` and record the result.

        Raises whatever the normalizer or rating client raise; persistence
        errors are never raised.
        """

        user = self._require_user()
        with operation_context("submission:submit") as correlation_id:
            raw = _read_source(source)
            image = normalize_image(raw, max_width=self.max_image_width, quality=self.image_quality)
            # Fetch the token right before the call; sessions refresh it.
            rating = self.rating_client.rate(image, self.identity.get_access_token())

            thumbnail = make_thumbnail(raw)
            placeholder_id = self.placeholder_ids.next_id()
            record = RatingRecord.from_fields(placeholder_id, thumbnail, rating)
            record.user_id = user.id
            self.state.apply(Insert(record))

            submission = PendingSubmission(image_url=thumbnail, rating=rating, placeholder_id=placeholder_id)
            try:
                saved = self._persist(user, submission)
            except PersistenceError as exc:
                self.pending_queue.enqueue(submission)
                self.state.apply(Enqueue(submission))
                self.state.notify("error", SAVE_QUEUED_MESSAGE)
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "rating_save_queued",
                    placeholder_id=placeholder_id,
                    error=str(exc),
                    correlation_id=correlation_id,
                )
                return SubmissionOutcome(record=record, queued=True, error=exc)

            self.state.notify("success", SAVE_OK_MESSAGE)
            log_event(
                LOGGER,
                logging.INFO,
                "rating_saved",
                rating_id=saved.id,
                placeholder_id=placeholder_id,
                correlation_id=correlation_id,
            )
            return SubmissionOutcome(record=record, saved=saved)

    def _persist(self, user: AuthUser, submission: PendingSubmission) -> SavedRating:
        saved = self.persist_policy.run(
            lambda: self.store.insert(user.id, submission), operation="persist_rating"
        )
        if submission.placeholder_id is not None:
            self.state.apply(
                Reconcile(
                    placeholder_id=submission.placeholder_id,
                    durable_id=saved.id,
                    durable_image_url=saved.image_url,
                    durable_created_at=saved.created_at,
                )
            )
        return saved

    def drain_pending(self) -> DrainResult:
        """Replay queued submissions; stops at the first failed item."""

        user = self.identity.current_user()
        if user is None:
            return DrainResult(remaining=len(self.pending_queue))

        with operation_context("submission:drain"):
            def replay(item: PendingSubmission) -> SavedRating:
                saved = self._persist(user, item)
                if saved.id not in self.state.cache:
                    # Queued in an earlier session; show it now with its durable id.
                    restored = RatingRecord.from_fields(saved.id, saved.image_url, item.rating, saved.created_at)
                    restored.user_id = user.id
                    self.state.apply(Insert(restored))
                return saved

            result = self.pending_queue.drain(replay)
            self.state.apply(Drain(persisted=len(result.persisted), remaining=result.remaining))
            if result.persisted and not result.halted:
                self.state.notify("success", f"Saved {len(result.persisted)} pending outfit(s).")
            return result


__all__ = ["SubmissionPipeline", "SubmissionOutcome", "SAVE_OK_MESSAGE", "SAVE_QUEUED_MESSAGE"]

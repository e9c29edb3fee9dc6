"""Retry policy with exponential backoff shared by every remote call."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from models.errors import is_retryable
from rater_app.logging_config import get_logger, log_event

LOGGER = get_logger(__name__)
T = TypeVar("T")


@dataclass
class RetryPolicy:
    """Run a callable up to ``max_attempts`` times.

    The delay before attempt ``n + 1`` is ``base_delay * 2 ** (n - 1)``. Errors
    rejected by ``is_retryable`` propagate immediately. When a monotonic
    ``deadline`` is given the policy never sleeps past it and stops retrying
    once it is reached.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    is_retryable: Callable[[BaseException], bool] = is_retryable
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff to wait after the given 1-based failed attempt."""

        return self.base_delay * (2 ** (attempt - 1))

    def run(
        self,
        fn: Callable[[], T],
        *,
        deadline: Optional[float] = None,
        operation: str = "call",
    ) -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn()
            except Exception as exc:
                if not self.is_retryable(exc) or attempt == self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                if deadline is not None and self.clock() + delay >= deadline:
                    log_event(
                        LOGGER,
                        logging.WARNING,
                        "retry_deadline_reached",
                        operation=operation,
                        attempt=attempt,
                    )
                    raise
                log_event(
                    LOGGER,
                    logging.INFO,
                    "retry_scheduled",
                    operation=operation,
                    attempt=attempt,
                    delay_seconds=delay,
                    error=type(exc).__name__,
                )
                self.sleep(delay)
        raise AssertionError("unreachable")  # pragma: no cover


__all__ = ["RetryPolicy"]

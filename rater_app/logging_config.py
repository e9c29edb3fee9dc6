"""Structured logging helpers for the Outfit Rater app.

Every record is rendered as one JSON object carrying the active correlation
id, so a single rating can be followed from the capture through the model
call to the store write or queue entry. Image payloads, credentials and
email addresses never reach the output.
"""

from __future__ import annotations

import contextlib
import contextvars
import json
import logging
import os
import re
import time
import uuid
from typing import Any, Dict, Iterator

CORRELATION_ID = contextvars.ContextVar("correlation_id", default=None)

# Attributes every LogRecord has; anything else on a record came from ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
}
_SENSITIVE_KEYS = frozenset(
    {"email", "password", "access_token", "token", "authorization", "image", "image_url", "base64"}
)
_EMAIL_PATTERN = re.compile(r"[\w.+\-]+@[\w\-]+(?:\.[\w\-]+)+")
_BEARER_PATTERN = re.compile(r"(?i)bearer\s+\S+")
_MAX_STRING_LENGTH = 256


class JsonFormatter(logging.Formatter):
    """One JSON object per record: level, logger, event, correlation id, extras."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        rendered = super().format(record)
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None) or rendered,
            "message": rendered,
            "correlation_id": getattr(record, "correlation_id", None) or CORRELATION_ID.get(),
        }
        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RESERVED_ATTRS and key not in payload
        }
        payload.update(redact_for_log(extras))
        return json.dumps(payload, default=str)


def configure_logging(level: int | str | None = None) -> None:
    """Install the JSON handler on the root logger (``LOG_LEVEL`` or INFO)."""

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level or os.getenv("LOG_LEVEL", "INFO"), handlers=[handler], force=True)


def _scrub(text: str) -> str:
    if text.startswith("data:"):
        return "[redacted-data-url]"
    text = _BEARER_PATTERN.sub("Bearer [redacted]", text)
    text = _EMAIL_PATTERN.sub("[redacted-email]", text)
    if len(text) > _MAX_STRING_LENGTH:
        # Long unbroken strings are almost always base64 image data.
        return f"{text[:_MAX_STRING_LENGTH]}...[truncated {len(text) - _MAX_STRING_LENGTH} chars]"
    return text


def redact_for_log(payload: Any) -> Any:
    """Recursively scrub credentials, image payloads and emails."""

    if payload is None or isinstance(payload, (bool, int, float)):
        return payload
    if isinstance(payload, str):
        return _scrub(payload)
    if isinstance(payload, dict):
        return {
            key: "[redacted]" if str(key).lower() in _SENSITIVE_KEYS else redact_for_log(value)
            for key, value in payload.items()
        }
    if isinstance(payload, (list, tuple, set)):
        return [redact_for_log(item) for item in payload]
    return _scrub(str(payload))


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def ensure_correlation_id(correlation_id: str | None = None) -> str:
    """Return the active correlation id, adopting ``correlation_id`` or minting one."""

    if correlation_id:
        CORRELATION_ID.set(correlation_id)
        return correlation_id
    current = CORRELATION_ID.get()
    if current:
        return current
    minted = uuid.uuid4().hex
    CORRELATION_ID.set(minted)
    return minted


@contextlib.contextmanager
def correlation_context(correlation_id: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the duration of the block, then restore the previous one."""

    token = CORRELATION_ID.set(correlation_id or CORRELATION_ID.get() or uuid.uuid4().hex)
    try:
        yield CORRELATION_ID.get()
    finally:
        CORRELATION_ID.reset(token)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    """Log ``event`` with redacted structured fields.

    Field names must not collide with LogRecord attributes (``name``, ``args``,
    ``message`` and so on); ``logging`` rejects those in ``extra``.
    """

    correlation_id = fields.pop("correlation_id", None) or ensure_correlation_id()
    exc_info = fields.pop("exc_info", None)
    logger.log(
        level,
        event,
        exc_info=exc_info,
        extra={"event": event, "correlation_id": correlation_id, **redact_for_log(fields)},
    )


@contextlib.contextmanager
def operation_context(name: str, **attributes: Any) -> Iterator[str]:
    """Scope a correlation id around one logical operation.

    Logs ``operation_started`` on entry and ``operation_finished`` with the
    outcome and duration on exit; exceptions propagate unchanged.
    """

    logger = logging.getLogger(__name__)
    with correlation_context(attributes.pop("correlation_id", None)) as correlation_id:
        log_event(logger, logging.DEBUG, "operation_started", operation=name, correlation_id=correlation_id, **attributes)
        started = time.perf_counter()
        outcome = "ok"
        try:
            yield correlation_id
        except Exception as exc:
            outcome = type(exc).__name__
            raise
        finally:
            log_event(
                logger,
                logging.DEBUG,
                "operation_finished",
                operation=name,
                outcome=outcome,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                correlation_id=correlation_id,
            )


__all__ = [
    "JsonFormatter",
    "configure_logging",
    "correlation_context",
    "ensure_correlation_id",
    "get_logger",
    "log_event",
    "redact_for_log",
    "operation_context",
]

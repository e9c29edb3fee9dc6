"""Error taxonomy shared by the rating client, stores and pipeline."""

from __future__ import annotations


class OutfitRaterError(Exception):
    """Base class for failures surfaced by the rater."""

    retryable: bool = False


class Unauthorized(OutfitRaterError):
    """Missing or expired credential; the user must sign in again."""


class PayloadValidationError(OutfitRaterError):
    """Malformed or oversized input; the user must supply different input."""


# Shorter alias matching the taxonomy name. Kept distinct from pydantic's.
ValidationError = PayloadValidationError


class TransientNetworkError(OutfitRaterError):
    """Timeout, connection failure or 5xx; safe to retry."""

    retryable = True


class ResponseFormatError(OutfitRaterError):
    """The remote model returned text that does not contain a rating object."""


class PersistenceError(OutfitRaterError):
    """The backing store rejected or could not receive a write."""

    retryable = True


class DecodeError(PayloadValidationError):
    """The supplied bytes could not be decoded as an image."""


def is_retryable(exc: BaseException) -> bool:
    """Default retry predicate: only errors flagged as retryable."""

    return isinstance(exc, OutfitRaterError) and exc.retryable


__all__ = [
    "OutfitRaterError",
    "Unauthorized",
    "PayloadValidationError",
    "ValidationError",
    "TransientNetworkError",
    "ResponseFormatError",
    "PersistenceError",
    "DecodeError",
    "is_retryable",
]

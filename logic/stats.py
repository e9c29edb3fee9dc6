"""Summary statistics recomputed from a user's rating list."""

from __future__ import annotations

from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from models.rating_record import RatingRecord
from models.user_stats import UserStats


def round_one_decimal(value: float) -> float:
    """Round half-up to one decimal place, like ``Number.toFixed(1)``."""

    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def calculate_user_stats(ratings: Iterable[RatingRecord]) -> UserStats:
    """Recompute totals, mean scores and category frequency from scratch."""

    records = list(ratings or [])
    if not records:
        return UserStats()

    style_frequency: Counter[str] = Counter()
    total_style = 0.0
    total_color = 0.0
    for record in records:
        style_frequency[record.outfit_vibe] += 1
        total_style += record.look_score or 0.0
        total_color += record.color_score or 0.0

    count = len(records)
    return UserStats(
        total_ratings=count,
        average_style_score=round_one_decimal(total_style / count),
        average_color_score=round_one_decimal(total_color / count),
        style_frequency=dict(style_frequency),
    )


__all__ = ["calculate_user_stats", "round_one_decimal"]

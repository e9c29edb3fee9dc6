"""Derived per-user statistics."""

from dataclasses import dataclass, field
from typing import Dict


@dataclass
class UserStats:
    total_ratings: int = 0
    average_style_score: float = 0.0
    average_color_score: float = 0.0
    style_frequency: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        """Camel-case payload used by the profile view."""

        return {
            "totalRatings": self.total_ratings,
            "averageStyleScore": self.average_style_score,
            "averageColorScore": self.average_color_score,
            "styleFrequency": dict(self.style_frequency),
        }

"""Model package exports."""

from models.errors import *  # noqa: F401,F403
from models.rating_record import PendingSubmission, PlaceholderIds, RatingFields, RatingRecord
from models.user_stats import UserStats

__all__ = ["PendingSubmission", "PlaceholderIds", "RatingFields", "RatingRecord", "UserStats"]

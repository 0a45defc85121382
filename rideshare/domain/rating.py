"""
Rating aggregation.

A user's reputation is an incremental running mean::

    rating' = (rating x count + value) / (count + 1)

Past individual ratings are never revisited, so the result is order
independent for a fixed set of values applied one after another.  Concurrent
updates of the same user must be serialised by the caller.
"""

from .entities import User
from .errors import RatingOutOfRangeError

MIN_RATING = 1.0
MAX_RATING = 5.0


def validate_rating(value: float) -> None:
    if not MIN_RATING <= value <= MAX_RATING:
        raise RatingOutOfRangeError(
            f"Rating must be between {MIN_RATING:g} and {MAX_RATING:g}"
        )


def apply_rating(user: User, value: float) -> User:
    """Fold *value* into ``user.rating`` / ``user.rating_count`` in place."""
    if user.rating_count <= 0:
        # The default rating is a placeholder, not an observation.
        user.rating = float(value)
        user.rating_count = 1
    else:
        total = user.rating * user.rating_count + value
        user.rating_count += 1
        user.rating = total / user.rating_count
    return user

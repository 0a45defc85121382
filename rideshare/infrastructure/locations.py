"""
Free-text location suggestions.

Resolves what a user types into coordinates from a built-in gazetteer of
UAE places.  A query matches a place when it is a substring of the place
name, when a word of one starts with the other, or when the two are within
two edits of each other.  Pricing and matching only ever see the resulting
coordinates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from rideshare.domain.entities import Location

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 5
MAX_TYPO_DISTANCE = 2


@dataclass(frozen=True)
class LocationSuggestion:
    address: str
    latitude: float
    longitude: float

    @property
    def location(self) -> Location:
        return Location(self.latitude, self.longitude)


KNOWN_PLACES: dict[str, LocationSuggestion] = {
    # Abu Dhabi
    "abu dhabi": LocationSuggestion("Abu Dhabi, UAE", 24.4539, 54.3773),
    "abu dhabi corniche": LocationSuggestion("Abu Dhabi Corniche, UAE", 24.4672, 54.3567),
    "abu dhabi mall": LocationSuggestion("Abu Dhabi Mall, UAE", 24.4979, 54.3809),
    "sheikh zayed grand mosque": LocationSuggestion(
        "Sheikh Zayed Grand Mosque, Abu Dhabi, UAE", 24.4128, 54.4750
    ),
    # Reem Island
    "reem island": LocationSuggestion("Reem Island, Abu Dhabi, UAE", 24.4991, 54.4017),
    "reem mall": LocationSuggestion("Reem Mall, Reem Island, Abu Dhabi, UAE", 24.5038, 54.4066),
    "reem village": LocationSuggestion(
        "Reem Village, Reem Island, Abu Dhabi, UAE", 24.4924, 54.3972
    ),
    # Yas Island
    "yas island": LocationSuggestion("Yas Island, Abu Dhabi, UAE", 24.4959, 54.6056),
    "yas mall": LocationSuggestion("Yas Mall, Abu Dhabi, UAE", 24.4913, 54.6068),
    "ferrari world": LocationSuggestion(
        "Ferrari World, Yas Island, Abu Dhabi, UAE", 24.4831, 54.6036
    ),
    # Dubai
    "dubai": LocationSuggestion("Dubai, UAE", 25.2048, 55.2708),
    "dubai mall": LocationSuggestion("Dubai Mall, Dubai, UAE", 25.1972, 55.2744),
    "burj khalifa": LocationSuggestion("Burj Khalifa, Dubai, UAE", 25.1972, 55.2740),
    "dubai marina": LocationSuggestion("Dubai Marina, Dubai, UAE", 25.0763, 55.1304),
}


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance, single-row dynamic programme."""
    costs = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        previous, costs[0] = costs[0], i
        for j, cb in enumerate(b, start=1):
            current = min(
                costs[j] + 1,
                costs[j - 1] + 1,
                previous + (ca != cb),
            )
            previous, costs[j] = costs[j], current
    return costs[-1]


def _matches(key: str, query: str) -> bool:
    if query in key:
        return True
    for word in key.split():
        if word.startswith(query) or query.startswith(word):
            return True
    if len(key) > 3 and len(query) > 3:
        return edit_distance(key, query) <= MAX_TYPO_DISTANCE
    return False


class LocationSuggestionService:
    def __init__(self, places: Optional[dict[str, LocationSuggestion]] = None):
        self.places = places if places is not None else KNOWN_PLACES

    def _matching(self, query: Optional[str]) -> list[tuple[str, LocationSuggestion]]:
        if not query or not query.strip():
            return []
        normalized = query.lower().strip()
        logger.debug("Location suggestions for %r", normalized)

        found = []
        for key, place in self.places.items():
            if _matches(key, normalized):
                found.append((key, place))
                if len(found) >= MAX_SUGGESTIONS:
                    break
        return found

    def suggest(self, query: Optional[str]) -> list[LocationSuggestion]:
        return [place for _, place in self._matching(query)]

    def resolve(self, query: Optional[str]) -> Optional[Location]:
        """Coordinates of the closest known place, if any."""
        found = self._matching(query)
        if not found:
            return None
        normalized = query.lower().strip()
        _, best = min(found, key=lambda item: edit_distance(item[0], normalized))
        return best.location

"""Utility for detecting Italian city names in free text."""

import re
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class CityMatch:
    """A city found in text, with the offset of its first mention."""

    name: str
    position: int

    @property
    def display_name(self) -> str:
        return " ".join(part.capitalize() for part in self.name.split())


# Common Italian cities, lower-case
ITALIAN_CITIES: frozenset[str] = frozenset(
    {
        "roma", "milano", "napoli", "torino", "palermo", "genova", "bologna",
        "firenze", "bari", "catania", "venezia", "verona", "messina", "padova",
        "trieste", "taranto", "brescia", "prato", "reggio calabria", "modena",
        "parma", "livorno", "cagliari", "foggia", "reggio emilia", "salerno",
        "perugia", "monza", "rimini", "matera", "lecce", "siracusa", "sassari",
        "bergamo", "pescara", "trento", "treviso", "vicenza", "bolzano",
        "novara", "ancona", "ferrara", "ravenna", "la spezia", "terni", "pisa",
    }
)

_WORD = r"[a-zàèéìòù]+"

# Preposition-anchored mentions, e.g. "a matera", "andare in sicilia"
DESTINATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"\ba\s+({_WORD}(?:\s+{_WORD})*)"),
    re.compile(rf"\bin\s+({_WORD}(?:\s+{_WORD})*)"),
    re.compile(rf"\bper\s+({_WORD}(?:\s+{_WORD})*)"),
    re.compile(rf"\bvisitare\s+({_WORD}(?:\s+{_WORD})*)"),
    re.compile(rf"\bandare\s+(?:a|in)\s+({_WORD}(?:\s+{_WORD})*)"),
)


def _city_pattern(city: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-zàèéìòù]){re.escape(city)}(?![a-zàèéìòù])")


def known_cities(extra: Iterable[Optional[str]] = ()) -> set[str]:
    """The gazetteer unioned with trip-specific destinations."""
    cities = set(ITALIAN_CITIES)
    for city in extra:
        if city and isinstance(city, str) and city.strip():
            cities.add(city.strip().lower())
    return cities


def detect_cities(text: str, extra: Iterable[Optional[str]] = ()) -> list[CityMatch]:
    """
    Find every known city mentioned in the text.

    Known names are searched directly, on word boundaries. Preposition-anchored
    phrases ("a reggio", "andare in ...") additionally accept the leading word
    of a multi-word city name.

    Args:
        text: Free text, any case
        extra: Additional city names (trip destinations)

    Returns:
        Distinct matches ordered by their first position in the text
    """
    if not text:
        return []

    text_lower = text.lower()
    cities = known_cities(extra)
    found: dict[str, int] = {}

    for pattern in DESTINATION_PATTERNS:
        for match in pattern.finditer(text_lower):
            phrase = match.group(1).strip()
            if any(_city_pattern(city).search(phrase) for city in cities):
                # Contained names are picked up by the direct search below
                continue
            # A truncated multi-word name, e.g. "a reggio" for "reggio emilia"
            head = phrase.split()[0]
            if len(head) > 3 and any(city.startswith(f"{head} ") for city in cities):
                found.setdefault(head, match.start(1))

    for city in sorted(cities, key=len, reverse=True):
        city_match = _city_pattern(city).search(text_lower)
        if city_match:
            found[city] = min(found.get(city, city_match.start()), city_match.start())

    return sorted(
        (CityMatch(name=name, position=pos) for name, pos in found.items()),
        key=lambda m: (m.position, -len(m.name)),
    )

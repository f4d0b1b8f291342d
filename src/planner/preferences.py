"""Extraction of destinations, time constraints and requests from free-text preferences."""

import logging
import re
from datetime import time
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence

from models.constraints import (
    ConstraintSet,
    EndBy,
    Meal,
    MealAt,
    NotAfter,
    StartAt,
    TimeMention,
    Until,
)
from utils.city_detector import CityMatch, detect_cities

logger = logging.getLogger(__name__)

_CLOCK = r"(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?"
_PERIOD = r"(?:\s*(?:di|del|della)\s+(?P<period>mattina|pomeriggio|sera))?"
_MEALS = r"(?P<meal>colazione|pranzo|cena|aperitivo)"


def _meal_gap(limit: int) -> str:
    # Text between a meal and its time: same sentence, no other time or meal
    return rf"(?:(?!colazione|pranzo|cena|aperitivo)[^.;!?\d]){{0,{limit}}}?"


# (pattern, builder) in emission order
TIME_TEMPLATES: tuple[tuple[re.Pattern[str], Callable[[time, re.Match], object]], ...] = (
    (
        re.compile(rf"\bentro\s+(?:le\s+)?{_CLOCK}{_PERIOD}"),
        lambda t, m: EndBy(time=t),
    ),
    (
        re.compile(rf"\bprima\s+(?:delle\s+)?{_CLOCK}{_PERIOD}"),
        lambda t, m: EndBy(time=t),
    ),
    (
        re.compile(rf"\bfino\s+(?:alle\s+)?{_CLOCK}{_PERIOD}"),
        lambda t, m: Until(time=t),
    ),
    (
        re.compile(rf"\bnon\s+(?:dopo|oltre)\s+(?:le\s+)?{_CLOCK}{_PERIOD}"),
        lambda t, m: NotAfter(time=t),
    ),
    (
        re.compile(
            r"\b(?:a\s+partire\s+dalle|dalle|prima\s+attivit[àa]\s+(?:alle|dalle)"
            r"|inizi(?:a|are|amo)(?:\s+la\s+giornata)?\s+(?:alle|dalle)"
            rf"|partenza\s+alle|cominci(?:a|are|amo)\s+alle)\s+{_CLOCK}{_PERIOD}"
        ),
        lambda t, m: StartAt(time=t),
    ),
    (
        re.compile(
            rf"\b{_MEALS}\b{_meal_gap(40)}\b"
            rf"(?:alle|ore|verso\s+le|per\s+le)\s+{_CLOCK}{_PERIOD}"
        ),
        lambda t, m: MealAt(meal=Meal.from_label(m.group("meal")), time=t),
    ),
    (
        re.compile(rf"\b(?:alle|ore)\s+{_CLOCK}{_PERIOD}{_meal_gap(20)}\b{_MEALS}\b"),
        lambda t, m: MealAt(meal=Meal.from_label(m.group("meal")), time=t),
    ),
    (
        re.compile(rf"\b(?:alle|ore)\s+{_CLOCK}{_PERIOD}"),
        lambda t, m: TimeMention(time=t),
    ),
)

REQUEST_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bvorrei\s+([^,.;]+)"),
    re.compile(r"\bvoglio\s+([^,.;]+)"),
    re.compile(r"\bdesidero\s+([^,.;]+)"),
    re.compile(r"\bmi\s+piacerebbe\s+([^,.;]+)"),
    re.compile(r"\bcerco\s+([^,.;]+)"),
    re.compile(r"\baggiungi\s+([^,.;]+)"),
    re.compile(r"\bincludi\s+([^,.;]+)"),
)

NUMBER_WORDS: Mapping[str, int] = MappingProxyType(
    {
        "un": 1, "uno": 1, "una": 1, "un'": 1,
        "due": 2, "tre": 3, "quattro": 4, "cinque": 5,
        "sei": 6, "sette": 7, "otto": 8, "nove": 9, "dieci": 10,
    }
)
_NUMBER = r"(\d+|un'|uno|una|un|due|tre|quattro|cinque|sei|sette|otto|nove|dieci)"

LIMITED_PATTERN = re.compile(r"\b(?:solo|solamente|soltanto|unicamente)\s+([^.;!?]+)")
EXPLICIT_COUNT_PATTERN = re.compile(rf"(?<![\w']){_NUMBER}\s*attivit[àa]\b")
LEADING_COUNT_PATTERN = re.compile(rf"^{_NUMBER}(?:\s|$)")
CLAUSE_SEPARATOR = re.compile(r"\s*,\s*|\s+e\s+|\s+ed\s+")
BARE_MEAL_PATTERN = re.compile(
    rf"^(?:(?:una|un|la|il|l')\s*)?{_MEALS}"
    rf"(?:\s+(?:alle|ore|verso\s+le|per\s+le)\s+{_CLOCK}{_PERIOD})?\s*[.!]?$"
)


def _to_time(hour_text: str, minute_text: Optional[str], period: Optional[str]) -> Optional[time]:
    hour = int(hour_text)
    minute = int(minute_text) if minute_text else 0
    if period in ("pomeriggio", "sera") and hour < 12:
        hour += 12
    if hour > 23 or minute > 59:
        return None
    return time(hour, minute)


def _overlaps(span: tuple[int, int], claimed: list[tuple[int, int]]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in claimed)


def _parse_count(word: str) -> int:
    if word.isdigit():
        return max(1, int(word))
    return NUMBER_WORDS.get(word, 1)


class PreferenceParser:
    """
    Turns a free-text preference string into a ConstraintSet.

    Parsing never raises: unmatched text is skipped and blank input yields
    an empty ConstraintSet.
    """

    def __init__(self, main_destination: Optional[str], trip_destinations: Sequence[str] = ()):
        self.main_destination = (main_destination or "").strip()
        self.trip_destinations = [d for d in trip_destinations if isinstance(d, str)]

    def parse(self, additional_preferences: Optional[str]) -> ConstraintSet:
        if not additional_preferences or not additional_preferences.strip():
            return ConstraintSet()

        logger.info(f"Analysing additional preferences: {additional_preferences[:100]}")
        text = additional_preferences.lower().replace("\u2019", "'")

        specific_destination, destinations = self._extract_destinations(text)
        is_limited, count = self._extract_limits(text)

        constraints = ConstraintSet(
            specific_destination=specific_destination,
            time_constraints=tuple(self._extract_time_constraints(text)),
            specific_requests=tuple(self._extract_requests(text, additional_preferences)),
            destinations_to_visit=tuple(destinations),
            is_limited_request=is_limited,
            requested_activity_count=count,
        )
        logger.debug(f"Preference analysis result: {constraints}")
        return constraints

    def _extract_destinations(self, text: str) -> tuple[Optional[str], list[str]]:
        main = self.main_destination.lower()
        matches: list[CityMatch] = detect_cities(
            text, [*self.trip_destinations, self.main_destination]
        )
        others = [m for m in matches if m.name != main]
        destinations = [m.display_name for m in others]
        specific = destinations[0] if destinations else None
        return specific, destinations

    def _extract_time_constraints(self, text: str) -> list:
        constraints: list = []
        claimed: list[tuple[int, int]] = []

        for pattern, build in TIME_TEMPLATES:
            for match in pattern.finditer(text):
                if _overlaps(match.span(), claimed):
                    continue
                at = _to_time(match.group("hour"), match.group("minute"), match.group("period"))
                if at is None:
                    logger.debug(f"Ignoring out-of-range time in '{match.group(0)}'")
                    continue
                claimed.append(match.span())
                constraint = build(at, match)
                if constraint not in constraints:
                    constraints.append(constraint)

        return constraints

    def _extract_requests(self, text: str, original: str) -> list[str]:
        requests: list[str] = []
        for pattern in REQUEST_PATTERNS:
            for match in pattern.finditer(text):
                request = match.group(1).strip()
                if request and request not in requests:
                    requests.append(request)

        if not requests:
            requests.append(original.strip())
        return requests

    def _extract_limits(self, text: str) -> tuple[bool, int]:
        match = LIMITED_PATTERN.search(text)
        if match:
            fragment = match.group(1).strip()
            explicit = EXPLICIT_COUNT_PATTERN.search(fragment) or LEADING_COUNT_PATTERN.search(fragment)
            if explicit:
                return True, _parse_count(explicit.group(1))
            clauses = [c for c in CLAUSE_SEPARATOR.split(fragment) if c.strip()]
            return True, max(1, len(clauses))

        explicit = EXPLICIT_COUNT_PATTERN.search(text)
        if explicit:
            return True, _parse_count(explicit.group(1))

        if BARE_MEAL_PATTERN.match(text.strip()):
            return True, 1

        return False, 1


def analyze_preferences(
    additional_preferences: Optional[str],
    main_destination: Optional[str],
    trip_destinations: Sequence[str] = (),
) -> ConstraintSet:
    """Shortcut for ``PreferenceParser(...).parse(...)``."""
    return PreferenceParser(main_destination, trip_destinations).parse(additional_preferences)

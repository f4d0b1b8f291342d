"""Parsing, repair and time adjustment of model-generated activity lists."""

import json
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from itertools import groupby
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Sequence

from pydantic import ValidationError

from models import Activity, ConstraintSet, Meal, MealAt, TripDay
from planner.errors import ParseError

logger = logging.getLogger(__name__)

FENCED_JSON_PATTERN = re.compile(r"```json\s*([\s\S]*?)\s*```")
BARE_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
BARE_TIME_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")

# Hour ranges [start, end) used to classify food activities by meal
MEAL_WINDOWS: Mapping[Meal, tuple[int, int]] = MappingProxyType(
    {
        Meal.breakfast: (5, 11),
        Meal.lunch: (11, 16),
        Meal.aperitivo: (16, 19),
        Meal.dinner: (19, 24),
    }
)

DEFAULT_NOTES: Mapping[str, str] = MappingProxyType(
    {
        "food": "Gustare la cucina locale presso {location}",
        "sightseeing": "Visita a {location}, un'attrazione imperdibile",
        "culture": "Esperienza culturale a {location}",
        "shopping": "Shopping presso {location}",
        "nature": "Esperienza nella natura a {location}",
    }
)
FALLBACK_NOTE = "Attività di tipo {type} a {location}"

DAY_END = time(23, 59)


@dataclass(frozen=True)
class RepairPolicy:
    """
    How the reconciler treats incomplete or inconsistent activities.

    ``lenient`` patches missing fields with placeholders and logs a warning.
    ``strict`` raises ParseError instead of repairing required fields.
    ``day_overflow`` decides what happens to activities cascaded past the end
    of their day: ``roll`` keeps them, ``clamp`` truncates at 23:59 and drops
    those that can no longer start, ``reject`` raises ParseError.
    """

    mode: Literal["lenient", "strict"] = "lenient"
    day_overflow: Literal["roll", "clamp", "reject"] = "roll"
    default_duration: timedelta = timedelta(minutes=90)
    buffer: timedelta = timedelta(minutes=30)
    first_slot_hour: int = 9
    slot_spacing_hours: int = 2
    slot_cycle: int = 4
    default_type: str = "sightseeing"
    default_location: str = "Da definire"

    @classmethod
    def lenient(cls, **overrides) -> "RepairPolicy":
        return cls(mode="lenient", **overrides)

    @classmethod
    def strict(cls, **overrides) -> "RepairPolicy":
        return cls(mode="strict", **overrides)

    @classmethod
    def from_settings(cls, settings) -> "RepairPolicy":
        return cls(mode=settings.repair_mode, day_overflow=settings.day_overflow)

    @property
    def is_strict(self) -> bool:
        return self.mode == "strict"

    def fallback_start(self, day_date: date, index: int) -> datetime:
        hour = self.first_slot_hour + (index % self.slot_cycle) * self.slot_spacing_hours
        return _at(day_date, time(0, 0)) + timedelta(hours=hour)


def _at(day_date: date, clock: time) -> datetime:
    return datetime.combine(day_date, clock, tzinfo=timezone.utc)


def extract_activities_payload(response: str) -> list:
    """
    Pull the ``activities`` array out of a raw model response.

    The first fenced json block is preferred; without one the first
    ``{...}`` span is used.

    Raises:
        ParseError: No JSON object found, invalid JSON, or no activities array
    """
    fenced = FENCED_JSON_PATTERN.search(response or "")
    if fenced:
        raw = fenced.group(1)
    else:
        bare = BARE_OBJECT_PATTERN.search(response or "")
        if not bare:
            raise ParseError("Invalid response format", "No JSON object found in model response")
        raw = bare.group(0)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError("Invalid response format", str(e)) from e

    if not isinstance(data, dict) or not isinstance(data.get("activities"), list):
        raise ParseError("Invalid response format", "Missing 'activities' array")

    return data["activities"]


def parse_time_value(value: Any, day_date: Optional[date]) -> Optional[datetime]:
    """
    Interpret a model-provided time as an aware UTC datetime.

    Accepts ISO timestamps (``Z`` suffix included) and bare ``HH:MM`` strings,
    which are anchored to ``day_date``. Returns None when the value cannot be
    interpreted.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        bare = BARE_TIME_PATTERN.match(value)
        if bare:
            if day_date is None:
                return None
            hour, minute = int(bare.group(1)), int(bare.group(2))
            if hour > 23 or minute > 59:
                return None
            return _at(day_date, time(hour, minute))
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def meal_category(activity: Activity) -> Optional[Meal]:
    """The meal a food activity falls into, judged by its start hour."""
    hour = activity.start_time.hour
    for meal, (start, end) in MEAL_WINDOWS.items():
        if start <= hour < end:
            return meal
    return None


def default_notes(activity_type: str, location: str) -> str:
    template = DEFAULT_NOTES.get(activity_type.lower(), FALLBACK_NOTE)
    return template.format(type=activity_type, location=location)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _moved(activity: Activity, start: datetime) -> Activity:
    return activity.model_copy(
        update={"start_time": start, "end_time": start + activity.duration}
    )


class ScheduleReconciler:
    """
    Turns a raw list of model activities into a consistent schedule.

    Reconciling its own output again with the same constraints changes
    nothing.
    """

    def __init__(self, days: Sequence[TripDay], policy: Optional[RepairPolicy] = None):
        if not days:
            raise ValueError("At least one trip day is required")
        self.days = list(days)
        self.days_by_id = {day.id: day for day in self.days}
        self.policy = policy or RepairPolicy.lenient()

    def reconcile(
        self,
        raw_activities: Sequence[Any],
        constraints: Optional[ConstraintSet] = None,
    ) -> list[Activity]:
        constraints = constraints or ConstraintSet()
        logger.info(f"Processing {len(raw_activities)} activities")

        activities = [
            self.repair(raw, index)
            for index, raw in enumerate(raw_activities)
            if self._accepts(raw, index)
        ]
        activities.sort(key=lambda a: a.start_time)

        scheduled: list[Activity] = []
        for day_date, group in groupby(
            sorted(activities, key=lambda a: a.day_date), key=lambda a: a.day_date
        ):
            scheduled.extend(self.schedule_day(day_date, list(group), constraints))

        scheduled.sort(key=lambda a: a.start_time)
        logger.info(f"Processed {len(scheduled)} activities")
        return scheduled

    def _accepts(self, raw: Any, index: int) -> bool:
        if isinstance(raw, dict):
            return True
        if self.policy.is_strict:
            raise ParseError("Invalid activity", f"Activity {index + 1} is not an object")
        logger.warning(f"Skipping activity {index + 1}: not an object")
        return False

    def _missing(self, field: str, index: int) -> None:
        if self.policy.is_strict:
            raise ParseError("Invalid activity", f"Activity {index + 1} is missing '{field}'")
        logger.warning(f"Activity {index + 1} is missing '{field}', using a default")

    def repair(self, raw: dict, index: int) -> Activity:
        """Validate one raw activity, backfilling what the policy allows."""
        policy = self.policy

        day_id = None if raw.get("day_id") is None else str(raw.get("day_id"))
        day = self.days_by_id.get(day_id)
        if day is None:
            if policy.is_strict:
                raise ParseError("Invalid activity", f"Unknown day_id: {day_id}")
            logger.warning(f"Invalid day_id {day_id}, assigning to the first available day")
            day = self.days[0]
        day_date = day.day_date

        name = raw.get("name")
        if _is_blank(name):
            self._missing("name", index)
            name = f"Attività {index + 1}"

        activity_type = raw.get("type")
        if _is_blank(activity_type):
            self._missing("type", index)
            activity_type = policy.default_type

        location = raw.get("location")
        if _is_blank(location):
            self._missing("location", index)
            location = policy.default_location

        start = parse_time_value(raw.get("start_time"), day_date)
        end = parse_time_value(raw.get("end_time"), day_date)
        if start is None or end is None:
            self._missing("start_time/end_time", index)
            start = policy.fallback_start(day_date, index)
            end = start + policy.default_duration

        if end <= start:
            if policy.is_strict:
                raise ParseError("Invalid activity", f"Activity '{name}' ends before it starts")
            logger.warning(f"Invalid end time for activity '{name}', adjusting")
            end = start + policy.default_duration

        notes = raw.get("notes")
        if _is_blank(notes):
            notes = default_notes(str(activity_type), str(location))

        priority = raw.get("priority")
        if isinstance(priority, bool) or priority not in (1, 2, 3):
            priority = 3

        cost = raw.get("cost")
        if isinstance(cost, bool) or not isinstance(cost, (int, float)):
            cost = None

        try:
            return Activity(
                day_id=day.id,
                day_date=day_date,
                name=str(name),
                type=str(activity_type),
                start_time=start,
                end_time=end,
                location=str(location),
                priority=priority,
                cost=cost,
                currency=raw.get("currency") or "EUR",
                notes=str(notes),
                status=raw.get("status") or "planned",
            )
        except ValidationError as e:
            raise ParseError("Invalid activity", str(e)) from e

    def schedule_day(
        self,
        day_date: date,
        activities: list[Activity],
        constraints: ConstraintSet,
    ) -> list[Activity]:
        """
        Apply start and meal anchors to one day, then remove overlaps.

        Meal-anchored activities are pinned at their anchor times. The rest
        keep their relative order: with a StartAt the first of them moves to
        the requested time and the others follow it, then each one is pushed
        past whatever it still overlaps.
        """
        activities = sorted(activities, key=lambda a: a.start_time)
        anchors = self._match_meals(activities, constraints.meal_anchors)

        pinned = []
        for anchor, index in anchors.items():
            activity = activities[index]
            target = _at(day_date, anchor.time)
            if activity.start_time != target:
                logger.info(f"Moving '{activity.name}' to {anchor.meal.label} at {anchor.time}")
                activity = _moved(activity, target)
            pinned.append(activity)
        pinned = cascade(sorted(pinned, key=lambda a: a.start_time), self.policy.buffer)

        anchored = set(anchors.values())
        rest = [a for i, a in enumerate(activities) if i not in anchored]
        start_at = constraints.start_at
        if start_at is not None and rest:
            target = _at(day_date, start_at.time)
            if rest[0].start_time != target:
                logger.info(f"Moving '{rest[0].name}' to the requested start {start_at.time}")
                rest[0] = _moved(rest[0], target)
            rest = cascade(rest, self.policy.buffer)

        placed = list(pinned)
        for activity in rest:
            activity = _place(activity, placed, self.policy.buffer)
            placed.append(activity)

        placed.sort(key=lambda a: a.start_time)
        return self._apply_overflow(day_date, placed)

    def _match_meals(
        self,
        activities: list[Activity],
        meal_anchors: Sequence[MealAt],
    ) -> dict[MealAt, int]:
        """Index of the activity each meal anchor applies to."""
        matches: dict[MealAt, int] = {}
        taken: set[int] = set()

        for anchor in meal_anchors:
            target_time = anchor.time
            candidates = [
                i for i, activity in enumerate(activities)
                if i not in taken and self._serves_meal(activity, anchor.meal, target_time)
            ]
            if not candidates:
                logger.info(f"No activity matches {anchor.meal.label} at {target_time}")
                continue
            # Prefer an activity already at the anchor time
            at_time = [i for i in candidates if activities[i].start_time.time() == target_time]
            index = (at_time or candidates)[0]
            matches[anchor] = index
            taken.add(index)

        return matches

    @staticmethod
    def _serves_meal(activity: Activity, meal: Meal, anchor_time: Optional[time] = None) -> bool:
        # Whole words only: "Cenacolo" is not a dinner
        if re.search(rf"(?<![a-zàèéìòù]){meal.label}(?![a-zàèéìòù])", activity.name.lower()):
            return True
        if activity.type.lower() != "food":
            return False
        return meal_category(activity) == meal or activity.start_time.time() == anchor_time

    def _apply_overflow(self, day_date: date, activities: list[Activity]) -> list[Activity]:
        limit = _at(day_date, DAY_END)
        overflowing = [a for a in activities if a.end_time > limit]
        if not overflowing:
            return activities

        names = ", ".join(a.name for a in overflowing)
        policy = self.policy.day_overflow
        if policy == "reject":
            raise ParseError("Schedule does not fit in the day", f"{day_date}: {names}")
        if policy == "roll":
            logger.warning(f"Activities run past the end of {day_date}: {names}")
            return activities

        kept = []
        for activity in activities:
            if activity.start_time >= limit:
                logger.warning(f"Dropping '{activity.name}': cannot start before the end of {day_date}")
                continue
            if activity.end_time > limit:
                activity = activity.model_copy(update={"end_time": limit})
            kept.append(activity)
        return kept


def cascade(activities: Sequence[Activity], buffer: timedelta = timedelta(minutes=30)) -> list[Activity]:
    """
    Push every activity that starts at or before the previous one's end to
    ``previous end + buffer``, keeping its duration. Input must be sorted.
    """
    result: list[Activity] = []
    for activity in activities:
        if result and activity.start_time <= result[-1].end_time:
            activity = _moved(activity, result[-1].end_time + buffer)
        result.append(activity)
    return result


def _overlaps(activity: Activity, other: Activity) -> bool:
    return activity.start_time <= other.end_time and other.start_time <= activity.end_time


def _place(activity: Activity, placed: Sequence[Activity], buffer: timedelta) -> Activity:
    """Push ``activity`` past every placed activity it touches or overlaps."""
    while True:
        blocker = next((p for p in placed if _overlaps(activity, p)), None)
        if blocker is None:
            return activity
        activity = _moved(activity, blocker.end_time + buffer)


def process_activities(
    raw_activities: Sequence[Any],
    days: Sequence[TripDay],
    constraints: Optional[ConstraintSet] = None,
    policy: Optional[RepairPolicy] = None,
) -> list[Activity]:
    return ScheduleReconciler(days, policy).reconcile(raw_activities, constraints)


def parse_activities_from_response(
    response: str,
    days: Sequence[TripDay],
    constraints: Optional[ConstraintSet] = None,
    policy: Optional[RepairPolicy] = None,
) -> list[Activity]:
    """Extract, repair and schedule the activities in a raw model response."""
    logger.debug(f"Parsing model response: {response[:200] if response else response}")
    return process_activities(extract_activities_payload(response), days, constraints, policy)

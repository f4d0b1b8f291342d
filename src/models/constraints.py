"""Structured constraints extracted from free-text trip preferences."""

import datetime as dt
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def format_time(value: dt.time) -> str:
    return value.strftime("%H:%M")


class Meal(str, Enum):
    breakfast = "breakfast"
    lunch = "lunch"
    dinner = "dinner"
    aperitivo = "aperitivo"

    @property
    def label(self) -> str:
        """Italian name, as used in preferences and activity names."""
        return MEAL_LABELS[self]

    @classmethod
    def from_label(cls, label: str) -> "Meal":
        for meal, meal_label in MEAL_LABELS.items():
            if meal_label == label:
                return meal
        raise ValueError(f"Unknown meal: {label}")


MEAL_LABELS: Mapping[Meal, str] = MappingProxyType(
    {
        Meal.breakfast: "colazione",
        Meal.lunch: "pranzo",
        Meal.dinner: "cena",
        Meal.aperitivo: "aperitivo",
    }
)


class _TimeConstraint(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: dt.time

    def describe(self) -> str:
        raise NotImplementedError


class StartAt(_TimeConstraint):
    kind: Literal["start_at"] = "start_at"

    def describe(self) -> str:
        return f"La prima attività deve iniziare alle {format_time(self.time)}"


class EndBy(_TimeConstraint):
    kind: Literal["end_by"] = "end_by"

    def describe(self) -> str:
        return f"Tutte le attività devono terminare entro le {format_time(self.time)}"


class Until(_TimeConstraint):
    kind: Literal["until"] = "until"

    def describe(self) -> str:
        return f"Le attività possono svolgersi fino alle {format_time(self.time)}"


class NotAfter(_TimeConstraint):
    kind: Literal["not_after"] = "not_after"

    def describe(self) -> str:
        return (
            "Nessuna attività deve iniziare o svolgersi dopo le "
            f"{format_time(self.time)}"
        )


class MealAt(_TimeConstraint):
    kind: Literal["meal_at"] = "meal_at"
    meal: Meal

    def describe(self) -> str:
        return f"Includere {self.meal.label} alle {format_time(self.time)}"


class TimeMention(_TimeConstraint):
    """A clock time mentioned without a recognised directive."""

    kind: Literal["mention"] = "mention"

    def describe(self) -> str:
        return f"Importante orario menzionato: {format_time(self.time)}"


TimeConstraint = Annotated[
    Union[StartAt, EndBy, Until, NotAfter, MealAt, TimeMention],
    Field(discriminator="kind"),
]


class ConstraintSet(BaseModel):
    """Everything the preference parser extracted for one generation request."""

    model_config = ConfigDict(frozen=True)

    specific_destination: Optional[str] = None
    time_constraints: tuple[TimeConstraint, ...] = ()
    specific_requests: tuple[str, ...] = ()
    destinations_to_visit: tuple[str, ...] = ()
    is_limited_request: bool = False
    requested_activity_count: int = Field(default=1, ge=1)

    @property
    def start_at(self) -> Optional[StartAt]:
        for constraint in self.time_constraints:
            if isinstance(constraint, StartAt):
                return constraint
        return None

    @property
    def meal_anchors(self) -> list[MealAt]:
        return [c for c in self.time_constraints if isinstance(c, MealAt)]

    def describe_time_constraints(self) -> list[str]:
        return [c.describe() for c in self.time_constraints]

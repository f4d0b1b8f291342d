from .activity import Activity, TripDay
from .constraints import (
    ConstraintSet,
    EndBy,
    Meal,
    MealAt,
    NotAfter,
    StartAt,
    TimeConstraint,
    TimeMention,
    Until,
)
from .request import GenerateActivitiesRequest, TripData, TripPreferences

__all__ = [
    "Activity",
    "ConstraintSet",
    "EndBy",
    "GenerateActivitiesRequest",
    "Meal",
    "MealAt",
    "NotAfter",
    "StartAt",
    "TimeConstraint",
    "TimeMention",
    "TripData",
    "TripDay",
    "TripPreferences",
    "Until",
]

"""Activity and trip-day models exchanged with the caller."""

from datetime import date, datetime
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TripDay(BaseModel):
    """A day of the trip the activities are generated for."""

    id: str
    day_date: date

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value):
        return str(value) if value is not None else value

    @field_validator("day_date", mode="before")
    @classmethod
    def _date_from_timestamp(cls, value):
        # Days are often stored as full timestamps
        if isinstance(value, str) and "T" in value:
            return value.split("T", 1)[0]
        if isinstance(value, datetime):
            return value.date()
        return value


class Activity(BaseModel):
    """A reconciled activity, ready to be persisted by the caller."""

    model_config = ConfigDict(validate_assignment=True)

    day_id: str
    day_date: date
    name: str
    type: str
    start_time: datetime
    end_time: datetime
    location: str
    priority: int = Field(default=3, ge=1, le=3)
    cost: Optional[Union[int, float]] = None
    currency: str = "EUR"
    notes: Optional[str] = None
    status: str = "planned"

    @property
    def duration(self):
        return self.end_time - self.start_time

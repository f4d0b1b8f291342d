"""Request body of the activity-generation endpoint."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .activity import TripDay


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TripData(_CamelModel):
    destination: Optional[str] = None
    destinations: list[str] = Field(default_factory=list)

    @field_validator("destinations", mode="before")
    @classmethod
    def _destination_names(cls, value):
        if not isinstance(value, list):
            return []
        names = []
        for item in value:
            if isinstance(item, dict):
                item = item.get("name")
            if isinstance(item, str) and item.strip():
                names.append(item)
        return names


class TripPreferences(_CamelModel):
    interests: list[str] = Field(default_factory=list)
    additional_preferences: str = Field(default="", alias="additionalPreferences")
    trip_type: str = Field(default="general", alias="tripType")
    pace: str = "moderate"
    preferred_times: list[str] = Field(default_factory=list, alias="preferredTimes")

    @field_validator("additional_preferences", "trip_type", "pace", mode="before")
    @classmethod
    def _none_as_default(cls, value, info):
        if value is None:
            return cls.model_fields[info.field_name].default
        return value


class GenerateActivitiesRequest(_CamelModel):
    """Missing ``tripId``/``days`` are reported by the generator, not by pydantic."""

    trip_id: Optional[str] = Field(default=None, alias="tripId")
    trip_data: TripData = Field(default_factory=TripData, alias="tripData")
    preferences: TripPreferences = Field(default_factory=TripPreferences)
    days: list[TripDay] = Field(default_factory=list)

    @field_validator("trip_id", mode="before")
    @classmethod
    def _trip_id_as_str(cls, value):
        if value is None or value == "":
            return None
        return str(value)

    @field_validator("trip_data", "preferences", "days", mode="before")
    @classmethod
    def _null_as_empty(cls, value, info):
        if value is None:
            return [] if info.field_name == "days" else {}
        return value

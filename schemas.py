from datetime import date, datetime, time
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from conflicts import parse_hour_window
from models import BookingStatus, PlaceType, Weekday


# --- Places ---

class PlaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    images: List[str] = Field(default_factory=list)
    capacity: int = Field(ge=1)
    available_from: Optional[date] = None
    available_to: Optional[date] = None
    type: PlaceType = PlaceType.SALON
    default_days: Optional[List[Weekday]] = None
    default_hours: Optional[str] = None

    @field_validator("default_hours")
    @classmethod
    def check_hours(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parse_hour_window(value)
        return value

    @model_validator(mode="after")
    def check_window(self):
        if self.available_from and self.available_to and self.available_to < self.available_from:
            raise ValueError("available_to must be on or after available_from")
        return self


class PlaceUpdate(BaseModel):
    """Partial update; fields left out keep their stored value."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    images: Optional[List[str]] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    available_from: Optional[date] = None
    available_to: Optional[date] = None
    type: Optional[PlaceType] = None
    default_days: Optional[List[Weekday]] = None
    default_hours: Optional[str] = None

    @field_validator("default_hours")
    @classmethod
    def check_hours(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            parse_hour_window(value)
        return value


class PlaceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    images: List[str]
    capacity: int
    available_from: Optional[date]
    available_to: Optional[date]
    type: PlaceType
    active: bool
    default_days: List[str]
    default_hours: str
    created_at: datetime
    updated_at: datetime


class PlaceFilter(BaseModel):
    type: Optional[PlaceType] = None
    capacity: Optional[int] = Field(default=None, ge=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None


# --- Bookings ---

class BookingCreate(BaseModel):
    place_id: int
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    event_name: str = Field(min_length=1, max_length=255)

    @model_validator(mode="after")
    def check_ranges(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class BookingPatch(BaseModel):
    """Typed partial update for a booking.

    A field that is omitted or null keeps the stored value; the merged
    result is validated as a whole by the reservation service.
    """

    place_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    event_name: Optional[str] = Field(default=None, min_length=1, max_length=255)

    def changes(self) -> dict:
        return {key: value for key, value in self.model_dump().items() if value is not None}


class BookingRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    place_id: int
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    status: BookingStatus
    event_name: str
    created_at: datetime
    updated_at: datetime


class BookedSlot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    event_name: str


# --- Envelopes ---

class Envelope(BaseModel):
    success: bool = True
    data: Any = None
    message: Optional[str] = None

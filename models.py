from datetime import date, datetime, time, timezone
from enum import Enum
from typing import List, Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import JSON, Column, Index

from conflicts import WEEKDAY_NAMES, AvailabilityPolicy, parse_hour_window

DEFAULT_DAYS = list(WEEKDAY_NAMES[:5])
DEFAULT_HOURS = "09:00-17:00"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlaceType(str, Enum):
    SALON = "salon"
    AUDITORIO = "auditorio"
    SALA_DE_REUNION = "sala de reunion"
    SALA_DE_CONFERENCIA = "sala de conferencia"


class Weekday(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


class BookingStatus(str, Enum):
    BOOKED = "booked"
    CANCELLED = "cancelled"


class Place(SQLModel, table=True):
    __tablename__ = "places"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    description: str
    images: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    capacity: int
    available_from: Optional[date] = None
    available_to: Optional[date] = None
    type: PlaceType = Field(default=PlaceType.SALON, index=True)
    active: bool = True
    default_days: List[str] = Field(
        default_factory=lambda: list(DEFAULT_DAYS), sa_column=Column(JSON, nullable=False)
    )
    default_hours: str = DEFAULT_HOURS
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    deleted_at: Optional[datetime] = Field(default=None, index=True)

    def availability_policy(self) -> AvailabilityPolicy:
        opens, closes = parse_hour_window(self.default_hours)
        return AvailabilityPolicy(
            opens=opens,
            closes=closes,
            days=frozenset(self.default_days or DEFAULT_DAYS),
            available_from=self.available_from,
            available_to=self.available_to,
        )


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    __table_args__ = (
        # Conflict lookups always filter on place, status and date window
        Index("ix_bookings_place_status_dates", "place_id", "status", "start_date", "end_date"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    place_id: int = Field(foreign_key="places.id", index=True)
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    status: BookingStatus = Field(default=BookingStatus.BOOKED)
    event_name: str = Field(max_length=255)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

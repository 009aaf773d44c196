"""Interval conflict engine and place availability predicate.

A booking occupies a closed date range and, on each of those dates, the same
closed time-of-day window. Two bookings conflict when their date ranges
overlap *and* their time windows overlap; the two tests are independent, so
a booking from 14:00 to 16:00 on the 15th-17th blocks 15:00-17:00 on the 16th.
Boundary equality counts as overlap on both axes.

Nothing in this module touches the database. Callers load the comparison set
and pass it in.
"""

import re
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import FrozenSet, Iterable, Iterator, List, Optional, Protocol, Tuple, TypeVar

HOUR_WINDOW_PATTERN = re.compile(r"^\d{2}:\d{2}-\d{2}:\d{2}$")

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)

T = TypeVar("T")


class Reservation(Protocol):
    id: Optional[int]
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    status: str


@dataclass(frozen=True)
class Slot:
    """The date range and daily time window a booking asks for."""

    start_date: date
    end_date: date
    start_time: time
    end_time: time

    def dates(self) -> Iterator[date]:
        current = self.start_date
        while current <= self.end_date:
            yield current
            current += timedelta(days=1)


@dataclass(frozen=True)
class AvailabilityPolicy:
    opens: time
    closes: time
    days: FrozenSet[str] = frozenset(WEEKDAY_NAMES[:5])
    available_from: Optional[date] = None
    available_to: Optional[date] = None


def ranges_overlap(a_start: T, a_end: T, b_start: T, b_end: T) -> bool:
    """Closed-interval overlap: [a_start, a_end] meets [b_start, b_end]."""
    return a_start <= b_end and b_start <= a_end


def slots_overlap(a: Slot, b: Slot) -> bool:
    return ranges_overlap(a.start_date, a.end_date, b.start_date, b.end_date) and ranges_overlap(
        a.start_time, a.end_time, b.start_time, b.end_time
    )


def slot_of(reservation: Reservation) -> Slot:
    return Slot(
        start_date=reservation.start_date,
        end_date=reservation.end_date,
        start_time=reservation.start_time,
        end_time=reservation.end_time,
    )


def find_conflict(
    candidate: Slot,
    existing: Iterable[Reservation],
    exclude_id: Optional[int] = None,
) -> Optional[Reservation]:
    """Return the first booked reservation that overlaps ``candidate``, if any.

    Cancelled reservations and the one whose id equals ``exclude_id`` (the
    reservation being updated) are skipped.
    """
    for reservation in existing:
        if exclude_id is not None and reservation.id == exclude_id:
            continue
        if reservation.status != "booked":
            continue
        if slots_overlap(candidate, slot_of(reservation)):
            return reservation
    return None


def has_conflict(
    candidate: Slot,
    existing: Iterable[Reservation],
    exclude_id: Optional[int] = None,
) -> bool:
    return find_conflict(candidate, existing, exclude_id) is not None


def parse_hour_window(value: str) -> Tuple[time, time]:
    """Parse ``"HH:MM-HH:MM"`` into (opens, closes). Raises ValueError."""
    if not HOUR_WINDOW_PATTERN.match(value or ""):
        raise ValueError("Hours must use the HH:MM-HH:MM format.")
    opens_raw, closes_raw = value.split("-")
    opens = time.fromisoformat(opens_raw)
    closes = time.fromisoformat(closes_raw)
    if opens >= closes:
        raise ValueError("Opening hour must be before closing hour.")
    return opens, closes


def policy_violations(slot: Slot, policy: AvailabilityPolicy) -> List[str]:
    """List the reasons ``slot`` falls outside ``policy``; empty when it conforms."""
    problems = []
    if policy.available_from is not None and slot.start_date < policy.available_from:
        problems.append(f"The place is not available before {policy.available_from.isoformat()}.")
    if policy.available_to is not None and slot.end_date > policy.available_to:
        problems.append(f"The place is not available after {policy.available_to.isoformat()}.")

    closed_days = sorted(
        {WEEKDAY_NAMES[day.weekday()] for day in slot.dates()} - set(policy.days),
        key=WEEKDAY_NAMES.index,
    )
    if closed_days:
        problems.append(f"The place is closed on {', '.join(closed_days)}.")

    if slot.start_time < policy.opens or slot.end_time > policy.closes:
        problems.append(
            f"Bookings must fall between {policy.opens.strftime('%H:%M')} "
            f"and {policy.closes.strftime('%H:%M')}."
        )
    return problems


def conforms_to_policy(slot: Slot, policy: AvailabilityPolicy) -> bool:
    return not policy_violations(slot, policy)

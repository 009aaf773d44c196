from dataclasses import dataclass
from datetime import date, time
from typing import Optional

import pytest

from conflicts import (
    AvailabilityPolicy,
    Slot,
    conforms_to_policy,
    find_conflict,
    has_conflict,
    parse_hour_window,
    policy_violations,
    ranges_overlap,
    slots_overlap,
)


@dataclass
class FakeReservation:
    id: Optional[int]
    start_date: date
    end_date: date
    start_time: time
    end_time: time
    status: str = "booked"


def slot(start_date, end_date, start_time, end_time):
    return Slot(
        date.fromisoformat(start_date),
        date.fromisoformat(end_date),
        time.fromisoformat(start_time),
        time.fromisoformat(end_time),
    )


def reservation(id, start_date, end_date, start_time, end_time, status="booked"):
    s = slot(start_date, end_date, start_time, end_time)
    return FakeReservation(id, s.start_date, s.end_date, s.start_time, s.end_time, status)


EXISTING = reservation(1, "2024-10-15", "2024-10-15", "14:00", "16:00")


class TestRangesOverlap:
    def test_works_for_any_ordered_type(self):
        assert ranges_overlap(1, 5, 3, 8)
        assert not ranges_overlap(1, 2, 3, 4)
        assert ranges_overlap("a", "c", "b", "z")

    def test_touching_endpoints_overlap(self):
        assert ranges_overlap(1, 3, 3, 5)
        assert ranges_overlap(3, 5, 1, 3)

    def test_containment_overlaps(self):
        assert ranges_overlap(1, 10, 4, 5)
        assert ranges_overlap(4, 5, 1, 10)


class TestFindConflict:
    def test_partial_time_overlap_on_same_date_conflicts(self):
        candidate = slot("2024-10-15", "2024-10-15", "15:00", "17:00")
        assert find_conflict(candidate, [EXISTING]) is EXISTING

    def test_same_time_on_another_date_is_free(self):
        candidate = slot("2024-10-16", "2024-10-16", "14:00", "16:00")
        assert find_conflict(candidate, [EXISTING]) is None

    def test_start_equal_to_existing_end_conflicts(self):
        candidate = slot("2024-10-15", "2024-10-15", "16:00", "18:00")
        assert has_conflict(candidate, [EXISTING])

    def test_end_equal_to_existing_start_conflicts(self):
        candidate = slot("2024-10-15", "2024-10-15", "12:00", "14:00")
        assert has_conflict(candidate, [EXISTING])

    def test_disjoint_times_same_date_are_free(self):
        candidate = slot("2024-10-15", "2024-10-15", "16:01", "18:00")
        assert not has_conflict(candidate, [EXISTING])

    def test_cancelled_reservations_are_ignored(self):
        cancelled = reservation(2, "2024-10-15", "2024-10-15", "14:00", "16:00", status="cancelled")
        candidate = slot("2024-10-15", "2024-10-15", "14:00", "16:00")
        assert not has_conflict(candidate, [cancelled])

    def test_excluded_id_is_ignored(self):
        candidate = slot("2024-10-15", "2024-10-15", "14:30", "15:30")
        assert not has_conflict(candidate, [EXISTING], exclude_id=1)
        assert has_conflict(candidate, [EXISTING], exclude_id=99)

    def test_time_window_recurs_over_every_overlapping_date(self):
        multi_day = reservation(3, "2024-10-14", "2024-10-18", "14:00", "16:00")
        candidate = slot("2024-10-16", "2024-10-16", "15:00", "15:30")
        assert has_conflict(candidate, [multi_day])

    def test_multi_day_candidate_spanning_existing_date(self):
        candidate = slot("2024-10-10", "2024-10-20", "09:00", "14:00")
        assert has_conflict(candidate, [EXISTING])

    def test_adjacent_dates_with_overlapping_times_are_free(self):
        candidate = slot("2024-10-16", "2024-10-17", "15:00", "17:00")
        assert not has_conflict(candidate, [EXISTING])

    def test_returns_first_match(self):
        later = reservation(4, "2024-10-15", "2024-10-15", "15:00", "15:30")
        candidate = slot("2024-10-15", "2024-10-15", "15:00", "15:15")
        assert find_conflict(candidate, [EXISTING, later]).id == 1

    def test_slots_overlap_is_symmetric(self):
        a = slot("2024-10-15", "2024-10-16", "10:00", "12:00")
        b = slot("2024-10-16", "2024-10-20", "11:00", "13:00")
        assert slots_overlap(a, b) and slots_overlap(b, a)


class TestHourWindow:
    def test_parses_window(self):
        assert parse_hour_window("09:00-17:00") == (time(9), time(17))

    @pytest.mark.parametrize("value", ["9:00-17:00", "09:00 - 17:00", "", "0900-1700"])
    def test_rejects_bad_format(self, value):
        with pytest.raises(ValueError):
            parse_hour_window(value)

    def test_rejects_inverted_window(self):
        with pytest.raises(ValueError):
            parse_hour_window("17:00-09:00")


class TestAvailabilityPolicy:
    policy = AvailabilityPolicy(
        opens=time(9),
        closes=time(17),
        available_from=date(2024, 10, 1),
        available_to=date(2024, 10, 31),
    )

    def test_weekday_inside_hours_conforms(self):
        # 2024-10-15 is a Tuesday
        assert conforms_to_policy(slot("2024-10-15", "2024-10-15", "09:00", "17:00"), self.policy)

    def test_weekend_day_is_rejected(self):
        problems = policy_violations(slot("2024-10-18", "2024-10-19", "10:00", "11:00"), self.policy)
        assert problems == ["The place is closed on Saturday."]

    def test_hours_outside_window_are_rejected(self):
        assert not conforms_to_policy(slot("2024-10-15", "2024-10-15", "08:30", "10:00"), self.policy)
        assert not conforms_to_policy(slot("2024-10-15", "2024-10-15", "16:00", "17:30"), self.policy)

    def test_dates_outside_range_are_rejected(self):
        problems = policy_violations(slot("2024-10-31", "2024-11-01", "10:00", "11:00"), self.policy)
        assert any("after 2024-10-31" in p for p in problems)
        problems = policy_violations(slot("2024-09-30", "2024-10-01", "10:00", "11:00"), self.policy)
        assert any("before 2024-10-01" in p for p in problems)

    def test_open_ended_range(self):
        policy = AvailabilityPolicy(opens=time(9), closes=time(17))
        assert conforms_to_policy(slot("2030-01-07", "2030-01-07", "10:00", "11:00"), policy)

"""Tests for slot generation and the same-day lead-time filter."""
from datetime import date, datetime

import pytest

from pawbook.availability import (
    BookedInterval,
    booked_intervals,
    filter_same_day,
    generate_slots,
    hours_for,
    slots_for_day,
)
from pawbook.models import BusinessHours
from pawbook.time_model import parse_12_hour, time_to_minutes


class TestGenerateSlots:
    """Standard 09:00-17:00 day with 30 minute appointments."""

    def test_empty_day_has_31_slots(self):
        slots = generate_slots("09:00", "17:00", [], 30)

        assert len(slots) == 31
        assert slots[0] == "9:00 AM"
        assert slots[-1] == "4:30 PM"

    def test_booking_removes_overlapping_starts(self):
        slots = generate_slots("09:00", "17:00", [BookedInterval(600, 630)], 30)

        assert "9:30 AM" in slots
        assert "9:45 AM" not in slots
        assert "10:00 AM" not in slots
        assert "10:15 AM" not in slots
        assert "10:30 AM" in slots

    def test_slots_are_ascending(self):
        slots = generate_slots("09:00", "17:00", [BookedInterval(720, 780)], 45)
        minutes = [time_to_minutes(parse_12_hour(s)) for s in slots]
        assert minutes == sorted(minutes)

    def test_no_slot_overlaps_a_booking(self):
        booked = [BookedInterval(600, 690), BookedInterval(840, 870)]
        slots = generate_slots("09:00", "17:00", booked, 60)

        assert "9:00 AM" in slots
        assert "9:15 AM" not in slots
        assert "11:30 AM" in slots
        assert "1:30 PM" not in slots
        assert "2:30 PM" in slots

    def test_duration_longer_than_day_is_empty(self):
        assert generate_slots("09:00", "10:00", [], 90) == []

    def test_duration_equal_to_day_gives_single_slot(self):
        assert generate_slots("09:00", "10:00", [], 60) == ["9:00 AM"]

    def test_custom_granularity(self):
        slots = generate_slots("09:00", "11:00", [], 30, granularity_minutes=30)
        assert slots == ["9:00 AM", "9:30 AM", "10:00 AM", "10:30 AM"]

    @pytest.mark.parametrize("duration,granularity", [(0, 15), (-30, 15), (30, 0)])
    def test_rejects_non_positive_values(self, duration, granularity):
        with pytest.raises(ValueError):
            generate_slots("09:00", "17:00", [], duration, granularity)


class TestBookedIntervals:

    def test_cancelled_appointments_are_ignored(self, make_appointment):
        appointments = [
            make_appointment(id="a", start_time="10:00", duration_minutes=30),
            make_appointment(id="b", start_time="13:00", duration_minutes=60, status="cancelled"),
        ]

        assert booked_intervals(appointments) == [BookedInterval(600, 630)]


class TestFilterSameDay:

    SLOTS = ["9:00 AM", "9:15 AM", "9:30 AM", "9:45 AM", "10:00 AM"]

    def test_other_dates_pass_through(self):
        now = datetime(2026, 3, 13, 9, 10)
        assert filter_same_day(self.SLOTS, date(2026, 3, 14), now) == self.SLOTS

    def test_today_keeps_only_slots_after_buffer(self):
        now = datetime(2026, 3, 14, 9, 0)

        # Cutoff 9:30; the 9:30 slot itself is not strictly after it
        assert filter_same_day(self.SLOTS, date(2026, 3, 14), now) == ["9:45 AM", "10:00 AM"]

    def test_custom_buffer(self):
        now = datetime(2026, 3, 14, 9, 0)
        result = filter_same_day(self.SLOTS, date(2026, 3, 14), now, buffer_minutes=0)
        assert result == ["9:15 AM", "9:30 AM", "9:45 AM", "10:00 AM"]

    def test_late_in_the_day_leaves_nothing(self):
        now = datetime(2026, 3, 14, 16, 45)
        assert filter_same_day(["4:30 PM"], date(2026, 3, 14), now) == []


class TestSlotsForDay:

    def test_closed_weekday_has_no_slots(self):
        hours = BusinessHours(hours={"monday": ("09:00", "17:00")})
        saturday = date(2026, 3, 14)

        assert hours_for(hours, saturday) is None
        assert slots_for_day(hours, saturday, [], 30) == []

    def test_combines_bookings_and_same_day_filter(self, make_appointment):
        hours = BusinessHours(hours={"saturday": ("09:00", "12:00")})
        appointments = [make_appointment(start_time="10:00", duration_minutes=30)]

        slots = slots_for_day(
            hours,
            date(2026, 3, 14),
            appointments,
            30,
            now=datetime(2026, 3, 14, 9, 0),
        )

        assert slots == ["10:30 AM", "10:45 AM", "11:00 AM", "11:15 AM", "11:30 AM"]

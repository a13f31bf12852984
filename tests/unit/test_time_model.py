"""Tests for wall-clock conversions and interval overlap."""
import pytest

from pawbook.errors import FormatError, ValidationError
from pawbook.time_model import (
    intervals_overlap,
    minutes_to_time,
    normalize_time,
    parse_12_hour,
    time_to_minutes,
    to_12_hour,
)


class TestTimeToMinutes:

    @pytest.mark.parametrize("value,expected", [
        ("00:00", 0),
        ("09:00", 540),
        ("9:30", 570),
        ("17:00", 1020),
        ("23:59", 1439),
        ("09:30:00", 570),
    ])
    def test_valid_times(self, value, expected):
        assert time_to_minutes(value) == expected

    @pytest.mark.parametrize("value", ["", "9", "24:00", "12:60", "ab:cd", "9:5", None])
    def test_malformed_times_raise_format_error(self, value):
        with pytest.raises(FormatError):
            time_to_minutes(value)

    def test_format_error_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            time_to_minutes("noon")


class TestMinutesToTime:

    def test_zero_padded(self):
        assert minutes_to_time(0) == "00:00"
        assert minutes_to_time(545) == "09:05"
        assert minutes_to_time(1439) == "23:59"

    @pytest.mark.parametrize("value", [-1, 1440, 5000])
    def test_out_of_range(self, value):
        with pytest.raises(FormatError):
            minutes_to_time(value)

    def test_round_trip_of_every_quarter_hour(self):
        for minutes in range(0, 1440, 15):
            assert time_to_minutes(minutes_to_time(minutes)) == minutes


class TestTwelveHourDisplay:

    @pytest.mark.parametrize("value,expected", [
        ("00:00", "12:00 AM"),
        ("00:30", "12:30 AM"),
        ("09:00", "9:00 AM"),
        ("12:00", "12:00 PM"),
        ("13:15", "1:15 PM"),
        ("16:30", "4:30 PM"),
    ])
    def test_to_12_hour(self, value, expected):
        assert to_12_hour(value) == expected

    @pytest.mark.parametrize("value,expected", [
        ("12:00 AM", "00:00"),
        ("12:00 PM", "12:00"),
        ("9:30 am", "09:30"),
        ("4:30 PM", "16:30"),
    ])
    def test_parse_12_hour(self, value, expected):
        assert parse_12_hour(value) == expected

    @pytest.mark.parametrize("value", ["13:00 PM", "0:30 AM", "9:30", "9:75 AM"])
    def test_parse_12_hour_rejects_bad_input(self, value):
        with pytest.raises(FormatError):
            parse_12_hour(value)

    def test_normalize_accepts_both_formats(self):
        assert normalize_time("2:45 PM") == "14:45"
        assert normalize_time("9:05") == "09:05"
        assert normalize_time("09:05:00") == "09:05"


class TestIntervalsOverlap:

    def test_partial_overlap(self):
        assert intervals_overlap(540, 600, 570, 630)

    def test_touching_intervals_do_not_overlap(self):
        assert not intervals_overlap(540, 570, 570, 600)
        assert not intervals_overlap(570, 600, 540, 570)

    def test_disjoint(self):
        assert not intervals_overlap(540, 560, 600, 630)

    def test_containment(self):
        assert intervals_overlap(540, 720, 600, 630)
        assert intervals_overlap(600, 630, 540, 720)

    def test_identical(self):
        assert intervals_overlap(600, 630, 600, 630)

    def test_symmetric(self):
        samples = [(540, 600), (570, 630), (600, 630), (630, 660), (500, 700), (600, 600)]
        for a in samples:
            for b in samples:
                assert intervals_overlap(*a, *b) == intervals_overlap(*b, *a)

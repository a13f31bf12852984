"""Wall-clock helpers shared by availability and conflict checks.

All scheduling math is done in minutes since midnight. Stored times are
24-hour ``HH:MM``; customers see ``h:mm AM/PM``.
"""
import re

from pawbook.errors import FormatError

MINUTES_PER_DAY = 24 * 60

_TIME_24H = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")
_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")


def time_to_minutes(hhmm: str) -> int:
    """
    Convert ``HH:MM`` to minutes since midnight.

    Seconds are tolerated (``09:30:00``) because database time columns
    render that way.

    Raises:
        FormatError: If the value is not a valid 24-hour time
    """
    if not isinstance(hhmm, str):
        raise FormatError(f"Invalid time value: {hhmm!r}")

    match = _TIME_24H.match(hhmm)
    if not match:
        raise FormatError(f"Invalid time format: {hhmm!r} (expected HH:MM)")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise FormatError(f"Time out of range: {hhmm!r}")

    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight back to zero-padded ``HH:MM``."""
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise FormatError(f"Minutes out of range for a single day: {minutes}")

    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_12_hour(hhmm: str) -> str:
    """Convert 24h time to 12h display format."""
    total = time_to_minutes(hhmm)
    hour, minute = divmod(total, 60)
    period = "AM" if hour < 12 else "PM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {period}"


def parse_12_hour(display: str) -> str:
    """
    Convert ``h:mm AM/PM`` back to ``HH:MM``.

    12 AM is midnight and 12 PM is noon.
    """
    match = _TIME_12H.match(display or "")
    if not match:
        raise FormatError(f"Invalid 12-hour time: {display!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour < 1 or hour > 12 or minute > 59:
        raise FormatError(f"12-hour time out of range: {display!r}")

    period = match.group(3).upper()
    if period == "AM" and hour == 12:
        hour = 0
    elif period == "PM" and hour != 12:
        hour += 12

    return f"{hour:02d}:{minute:02d}"


def normalize_time(value: str) -> str:
    """Accept either display format and return canonical ``HH:MM``."""
    if value and _TIME_12H.match(value):
        return parse_12_hour(value)
    return minutes_to_time(time_to_minutes(value))


def intervals_overlap(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """
    Check whether two minute ranges share any minute.

    Ranges are half-open, so a slot starting exactly when a booking ends is
    free. Containment is checked explicitly in both directions so the result
    is the same whichever interval is passed first.
    """
    if a_start < b_end and a_end > b_start:
        return True

    # Containment; zero-length ranges sitting inside the other one count
    a_contains_b = a_start <= b_start and a_end >= b_end and b_start < a_end
    b_contains_a = b_start <= a_start and b_end >= a_end and a_start < b_end
    return a_contains_b or b_contains_a

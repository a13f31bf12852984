"""Availability engine: which start times can still be booked.

``generate_slots`` is a pure function of business hours, booked intervals
and the requested duration, so it is safe to recompute on every request.
The same-day lead-time rule needs a clock and therefore lives in
``filter_same_day``, applied by the caller.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, List, NamedTuple, Optional, Tuple

from pawbook import config
from pawbook.models import Appointment, BusinessHours
from pawbook.time_model import (
    intervals_overlap,
    minutes_to_time,
    parse_12_hour,
    time_to_minutes,
    to_12_hour,
)


class BookedInterval(NamedTuple):
    """Minutes ``[start, end)`` occupied by one non-cancelled appointment."""
    start: int
    end: int


def booked_intervals(appointments: Iterable[Appointment]) -> List[BookedInterval]:
    """Convert appointments to intervals, skipping cancelled ones."""
    return [
        BookedInterval(appt.start_minutes, appt.end_minutes)
        for appt in appointments
        if not appt.is_cancelled
    ]


def is_slot_free(
    slot_start: int,
    duration_minutes: int,
    booked: Iterable[BookedInterval]
) -> bool:
    slot_end = slot_start + duration_minutes
    return not any(
        intervals_overlap(slot_start, slot_end, interval.start, interval.end)
        for interval in booked
    )


def generate_slots(
    business_open: str,
    business_close: str,
    booked: Iterable[BookedInterval],
    duration_minutes: int,
    granularity_minutes: int = config.SLOT_GRANULARITY_MINUTES
) -> List[str]:
    """
    Generate bookable start times for one staff member on one day.

    Args:
        business_open: Opening time, HH:MM
        business_close: Closing time, HH:MM
        booked: Intervals already taken
        duration_minutes: Length of the requested appointment
        granularity_minutes: Step between candidate starts

    Returns:
        Display strings ("9:30 AM") in ascending order. Empty when the
        appointment is longer than the business day.

    Algorithm:
        1. Candidates run from open to (close - duration) inclusive
        2. Each candidate is checked against every booked interval
        3. Free candidates are kept in enumeration order
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")

    open_minutes = time_to_minutes(business_open)
    close_minutes = time_to_minutes(business_close)
    last_start = close_minutes - duration_minutes
    booked = list(booked)

    slots = []
    for candidate in range(open_minutes, last_start + 1, granularity_minutes):
        if is_slot_free(candidate, duration_minutes, booked):
            slots.append(to_12_hour(minutes_to_time(candidate)))

    return slots


def filter_same_day(
    slots: List[str],
    target_date: date,
    now: datetime,
    buffer_minutes: int = config.SAME_DAY_BUFFER_MINUTES
) -> List[str]:
    """
    Drop same-day slots that start too soon.

    Only applies when ``target_date`` is today according to ``now``; a slot
    survives when it starts strictly after ``now + buffer``.
    """
    if target_date != now.date():
        return slots

    cutoff = now.replace(tzinfo=None) + timedelta(minutes=buffer_minutes)
    kept = []
    for slot in slots:
        slot_minutes = time_to_minutes(parse_12_hour(slot))
        slot_start = datetime.combine(target_date, datetime.min.time()) + timedelta(
            minutes=slot_minutes
        )
        if slot_start > cutoff:
            kept.append(slot)
    return kept


def hours_for(business_hours: BusinessHours, target_date: date) -> Optional[Tuple[str, str]]:
    """(open, close) for the date's weekday, or None when the salon is closed."""
    return business_hours.for_date(target_date)


def slots_for_day(
    business_hours: BusinessHours,
    target_date: date,
    appointments: Iterable[Appointment],
    duration_minutes: int,
    granularity_minutes: int = config.SLOT_GRANULARITY_MINUTES,
    now: Optional[datetime] = None,
    buffer_minutes: int = config.SAME_DAY_BUFFER_MINUTES
) -> List[str]:
    """Business-hours lookup, slot generation and same-day filter in one call."""
    hours = hours_for(business_hours, target_date)
    if hours is None:
        return []

    business_open, business_close = hours
    slots = generate_slots(
        business_open,
        business_close,
        booked_intervals(appointments),
        duration_minutes,
        granularity_minutes,
    )

    if now is not None:
        slots = filter_same_day(slots, target_date, now, buffer_minutes)

    return slots

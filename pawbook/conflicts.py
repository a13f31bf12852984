"""Double-booking guard.

Detects whether a proposed start time collides with another live
appointment for the same groomer. A conflict is not an error here: the
caller decides whether to block or let the user confirm a double booking.
"""
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from pawbook.models import Appointment
from pawbook.time_model import intervals_overlap


@dataclass(frozen=True)
class ConflictResult:
    """Outcome of a conflict check. ``appointment`` is set when one was found."""
    appointment: Optional[Appointment] = None

    @property
    def has_conflict(self) -> bool:
        return self.appointment is not None

    def __bool__(self) -> bool:
        return self.has_conflict


NO_CONFLICT = ConflictResult()


def check_conflict(
    staff_id: str,
    target_date: date,
    candidate_start: int,
    candidate_duration: int,
    existing: Iterable[Appointment],
    exclude_appointment_id: Optional[str] = None
) -> ConflictResult:
    """
    Find the first appointment overlapping the candidate window.

    Args:
        staff_id: Groomer being booked
        target_date: Day of the candidate appointment
        candidate_start: Start in minutes since midnight
        candidate_duration: Length in minutes
        existing: Appointments to check against (any staff/date; filtered here)
        exclude_appointment_id: Appointment being edited, ignored in the check

    Returns:
        ConflictResult with the first overlapping appointment, or NO_CONFLICT
    """
    candidate_end = candidate_start + candidate_duration

    for appt in existing:
        if appt.staff_id != staff_id or appt.date != target_date:
            continue
        if appt.is_cancelled:
            continue
        if exclude_appointment_id is not None and appt.id == exclude_appointment_id:
            continue

        if intervals_overlap(candidate_start, candidate_end, appt.start_minutes, appt.end_minutes):
            return ConflictResult(appointment=appt)

    return NO_CONFLICT

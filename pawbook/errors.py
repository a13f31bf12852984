"""Error taxonomy for booking operations.

Every error surfaced by the coordinator is a BookingError. Compensation
failures that happened on the way to the error ride along in
``compensation_failures`` so they stay observable without replacing the
primary failure.
"""
from typing import Any, List, Optional


class BookingError(Exception):
    """Base class for failures surfaced to callers of the booking core."""

    code = "BOOKING_ERROR"

    def __init__(self, message: str, compensation_failures: Optional[List[Any]] = None):
        super().__init__(message)
        self.message = message
        self.compensation_failures = list(compensation_failures or [])


class ValidationError(BookingError):
    """Bad or missing input. Nothing was written."""

    code = "VALIDATION_ERROR"


class FormatError(ValidationError):
    """Raised when a time string cannot be parsed."""

    code = "FORMAT_ERROR"


class NotFoundError(BookingError):
    """Raised when the appointment being changed does not exist."""

    code = "NOT_FOUND"


class ConflictError(BookingError):
    """
    A double-booking was detected.

    Carries the conflicting appointment so the caller can ask the user to
    confirm the double booking and retry with an override.
    """

    code = "CONFLICT"

    def __init__(self, message: str, appointment: Any):
        super().__init__(message)
        self.appointment = appointment


class ExternalServiceError(BookingError):
    """POS unreachable or rejected the request after retries."""

    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        compensation_failures: Optional[List[Any]] = None
    ):
        super().__init__(message, compensation_failures)
        self.status_code = status_code


class PersistenceError(BookingError):
    """The booking store failed to apply a write."""

    code = "PERSISTENCE_ERROR"


class ConfigurationError(BookingError):
    """Required deployment settings (POS credentials) are missing."""

    code = "CONFIGURATION_ERROR"


class RateLimited(Exception):
    """
    POS answered 429. Handled inside the gateway retry loop.

    Only surfaces as ExternalServiceError once retries are exhausted.
    """

    def __init__(self, message: str, retry_after: float):
        super().__init__(message)
        self.retry_after = retry_after


class StoreError(Exception):
    """Raised by booking store implementations when a read or write fails."""

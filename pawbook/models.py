"""Domain models for appointments and the POS service catalog.

Pydantic models validate what crosses the store and HTTP boundaries;
the scheduling functions only read plain attributes from them.
"""
import datetime as dt
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pawbook import config
from pawbook.errors import FormatError
from pawbook.time_model import normalize_time, time_to_minutes


def utc_now() -> dt.datetime:
    """Get current UTC timestamp."""
    return dt.datetime.now(dt.UTC)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def coerce_time(value):
    """Normalize either time display format to ``HH:MM`` for pydantic."""
    if isinstance(value, str):
        try:
            return normalize_time(value)
        except FormatError as e:
            raise ValueError(e.message) from e
    return value


def coerce_status(value):
    # Legacy rows were written with capitalised statuses ("Confirmed")
    if isinstance(value, str):
        return value.strip().lower()
    return value


class Appointment(BaseModel):
    """A persisted grooming appointment."""
    id: str = Field(..., min_length=1)
    staff_id: str = Field(..., min_length=1)
    staff_name: Optional[str] = None
    customer_id: str = Field(..., min_length=1)
    customer_name: Optional[str] = None
    customer_contact: Optional[str] = None
    pet_id: str = Field(..., min_length=1)
    pet_name: Optional[str] = None
    services: List[str] = Field(default_factory=list)
    service_ids: List[str] = Field(default_factory=list)
    date: dt.date
    start_time: str
    duration_minutes: int = Field(..., gt=0)
    status: AppointmentStatus = AppointmentStatus.CONFIRMED
    pos_order_id: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)

    @field_validator("start_time", mode="before")
    @classmethod
    def normalize_start_time(cls, v):
        return coerce_time(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return coerce_status(v)

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED


class Service(BaseModel):
    """POS catalog item. ``price`` is integer cents as Clover reports it."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    price: int = Field(default=0, ge=0)
    duration_minutes: Optional[int] = Field(default=None, gt=0)


class Customer(BaseModel):
    """Customer details used for the POS order note."""
    id: str = Field(..., min_length=1)
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def contact(self) -> str:
        return f"{self.email or 'N/A'} | {self.phone or 'N/A'}"


class BookingRequest(BaseModel):
    """
    Input for creating an appointment.

    Fields are optional at the model level so the coordinator can report
    every missing field in one ValidationError instead of failing on the
    first one.
    """
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    customer: Optional[Customer] = None
    pet_id: Optional[str] = None
    pet_name: Optional[str] = None
    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    service_ids: List[str] = Field(default_factory=list)
    status: AppointmentStatus = AppointmentStatus.CONFIRMED

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "staff_id": "EMP123",
                "staff_name": "Jamie",
                "customer": {
                    "id": "cust-1",
                    "first_name": "Dana",
                    "last_name": "Lee",
                    "email": "dana@example.com",
                    "phone": "555-0100"
                },
                "pet_id": "pet-9",
                "pet_name": "Biscuit",
                "date": "2026-03-14",
                "start_time": "10:30",
                "service_ids": ["ITEM-BATH", "ITEM-NAILS"]
            }
        }
    )

    @field_validator("start_time", mode="before")
    @classmethod
    def normalize_start_time(cls, v):
        return coerce_time(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return coerce_status(v)


class AppointmentChanges(BaseModel):
    """Partial update for an existing appointment."""
    date: Optional[dt.date] = None
    start_time: Optional[str] = None
    service_ids: Optional[List[str]] = None
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    status: Optional[AppointmentStatus] = None

    @field_validator("start_time", mode="before")
    @classmethod
    def normalize_start_time(cls, v):
        return coerce_time(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return coerce_status(v)

    @field_validator("service_ids")
    @classmethod
    def validate_service_ids(cls, v):
        """An update may replace services but never clear them."""
        if v is not None and len(v) == 0:
            raise ValueError("At least one service is required")
        return v


class BusinessHours(BaseModel):
    """Weekday -> (open, close). A missing weekday means closed."""
    hours: Dict[str, Tuple[str, str]] = Field(
        default_factory=lambda: dict(config.DEFAULT_BUSINESS_HOURS)
    )

    @model_validator(mode="after")
    def validate_hours(self):
        normalized = {}
        for day, (open_time, close_time) in self.hours.items():
            day_key = day.strip().lower()
            if day_key not in config.WEEKDAYS:
                raise ValueError(f"Unknown weekday: {day}")
            open_time = coerce_time(open_time)
            close_time = coerce_time(close_time)
            if time_to_minutes(open_time) >= time_to_minutes(close_time):
                raise ValueError(
                    f"Opening time must be before closing time on {day_key}"
                )
            normalized[day_key] = (open_time, close_time)
        self.hours = normalized
        return self

    def for_date(self, target_date: dt.date) -> Optional[Tuple[str, str]]:
        """Return (open, close) for the date's weekday, or None when closed."""
        return self.hours.get(config.WEEKDAYS[target_date.weekday()])

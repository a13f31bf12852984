"""Booking store: where appointments are persisted.

The coordinator only sees the ``BookingStore`` protocol. Two
implementations ship with the package:

- InMemoryBookingStore: dict-backed, for tests and local development
- SqlAlchemyBookingStore: relational storage via SQLAlchemy

Implementations raise StoreError on any read/write failure; the
coordinator translates that into PersistenceError.
"""
import threading
from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from pawbook.db_models import AppointmentRecord, Base
from pawbook.errors import StoreError
from pawbook.models import Appointment, utc_now


class BookingStore(Protocol):
    """Persistence operations the coordinator relies on."""

    def insert(self, appointment: Appointment) -> Appointment:
        ...

    def update(self, appointment_id: str, fields: Dict[str, Any]) -> Appointment:
        ...

    def delete(self, appointment_id: str) -> None:
        ...

    def list_by_staff_and_date(self, staff_id: str, target_date: date) -> List[Appointment]:
        ...

    def get(self, appointment_id: str) -> Optional[Appointment]:
        ...


class InMemoryBookingStore:
    """
    Dict-backed store.

    Returns copies so callers can't mutate stored state behind its back.
    """

    def __init__(self, appointments: Optional[List[Appointment]] = None):
        self._rows: Dict[str, Appointment] = {}
        self._lock = threading.Lock()
        for appointment in appointments or []:
            self._rows[appointment.id] = appointment.model_copy(deep=True)

    def insert(self, appointment: Appointment) -> Appointment:
        with self._lock:
            if appointment.id in self._rows:
                raise StoreError(f"Appointment {appointment.id} already exists")
            self._rows[appointment.id] = appointment.model_copy(deep=True)
            return appointment.model_copy(deep=True)

    def update(self, appointment_id: str, fields: Dict[str, Any]) -> Appointment:
        with self._lock:
            current = self._rows.get(appointment_id)
            if current is None:
                raise StoreError(f"Appointment {appointment_id} not found")

            data = current.model_dump()
            data.update(fields)
            data["updated_at"] = utc_now()
            try:
                updated = Appointment(**data)
            except ValueError as e:
                raise StoreError(f"Invalid update for {appointment_id}: {e}") from e

            self._rows[appointment_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, appointment_id: str) -> None:
        with self._lock:
            if self._rows.pop(appointment_id, None) is None:
                raise StoreError(f"Appointment {appointment_id} not found")

    def list_by_staff_and_date(self, staff_id: str, target_date: date) -> List[Appointment]:
        with self._lock:
            rows = [
                appt.model_copy(deep=True)
                for appt in self._rows.values()
                if appt.staff_id == staff_id and appt.date == target_date
            ]
        return sorted(rows, key=lambda appt: appt.start_minutes)

    def get(self, appointment_id: str) -> Optional[Appointment]:
        with self._lock:
            appt = self._rows.get(appointment_id)
            return appt.model_copy(deep=True) if appt else None

    def all(self) -> List[Appointment]:
        with self._lock:
            return [appt.model_copy(deep=True) for appt in self._rows.values()]


# Appointment field -> table column
_COLUMN_FOR_FIELD = {
    "id": "id",
    "staff_id": "employee_id",
    "staff_name": "employee_name",
    "customer_id": "user_id",
    "customer_name": "customer_name",
    "customer_contact": "customer_contact",
    "pet_id": "pet_id",
    "pet_name": "pet_name",
    "services": "service_items",
    "service_ids": "service_ids",
    "date": "appointment_date",
    "start_time": "appointment_time",
    "duration_minutes": "appointment_duration",
    "status": "status",
    "pos_order_id": "c_order_id",
    "created_at": "created_at",
    "updated_at": "updated_at",
}


def _to_record_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    values = {}
    for field_name, value in fields.items():
        column = _COLUMN_FOR_FIELD.get(field_name)
        if column is None:
            raise StoreError(f"Unknown appointment field: {field_name}")
        if hasattr(value, "value"):
            value = value.value
        values[column] = value
    return values


def _to_appointment(record: AppointmentRecord) -> Appointment:
    return Appointment(**{
        field_name: getattr(record, column)
        for field_name, column in _COLUMN_FOR_FIELD.items()
    })


class SqlAlchemyBookingStore:
    """
    Appointments table behind SQLAlchemy.

    Pattern: Thin wrapper around SQLAlchemy sessions, one session per call.
    """

    def __init__(self, database_url: str):
        """
        Initialize store with database connection.

        Args:
            database_url: SQLAlchemy connection string
        """
        self.engine = create_engine(database_url, pool_pre_ping=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def insert(self, appointment: Appointment) -> Appointment:
        record = AppointmentRecord(**_to_record_values(appointment.model_dump()))
        try:
            with self.SessionLocal() as db:
                db.add(record)
                db.commit()
                db.refresh(record)
                return _to_appointment(record)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to insert appointment {appointment.id}: {e}") from e

    def update(self, appointment_id: str, fields: Dict[str, Any]) -> Appointment:
        values = _to_record_values(fields)
        values["updated_at"] = utc_now()
        try:
            with self.SessionLocal() as db:
                record = db.get(AppointmentRecord, appointment_id)
                if record is None:
                    raise StoreError(f"Appointment {appointment_id} not found")
                for column, value in values.items():
                    setattr(record, column, value)
                db.commit()
                db.refresh(record)
                return _to_appointment(record)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update appointment {appointment_id}: {e}") from e

    def delete(self, appointment_id: str) -> None:
        try:
            with self.SessionLocal() as db:
                deleted = db.query(AppointmentRecord).filter(
                    AppointmentRecord.id == appointment_id
                ).delete()
                db.commit()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to delete appointment {appointment_id}: {e}") from e

        if not deleted:
            raise StoreError(f"Appointment {appointment_id} not found")

    def list_by_staff_and_date(self, staff_id: str, target_date: date) -> List[Appointment]:
        try:
            with self.SessionLocal() as db:
                records = db.query(AppointmentRecord).filter(
                    AppointmentRecord.employee_id == staff_id,
                    AppointmentRecord.appointment_date == target_date,
                ).order_by(AppointmentRecord.appointment_time).all()
                return [_to_appointment(record) for record in records]
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list appointments for {staff_id} on {target_date}: {e}") from e

    def get(self, appointment_id: str) -> Optional[Appointment]:
        try:
            with self.SessionLocal() as db:
                record = db.get(AppointmentRecord, appointment_id)
                return _to_appointment(record) if record else None
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load appointment {appointment_id}: {e}") from e

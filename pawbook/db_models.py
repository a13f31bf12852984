"""SQLAlchemy table for persisted appointments."""
from sqlalchemy import JSON, Column, Date, DateTime, Index, Integer, String
from sqlalchemy.orm import declarative_base

from pawbook.models import utc_now

Base = declarative_base()


class AppointmentRecord(Base):
    """One grooming appointment. Column names follow the salon's existing table."""
    __tablename__ = "appointments"

    id = Column(String(64), primary_key=True, index=True)
    employee_id = Column(String(100), nullable=False)
    employee_name = Column(String(200), nullable=True)
    user_id = Column(String(100), nullable=False, index=True)
    customer_name = Column(String(200), nullable=True)
    customer_contact = Column(String(300), nullable=True)
    pet_id = Column(String(100), nullable=False)
    pet_name = Column(String(200), nullable=True)
    service_items = Column(JSON, nullable=False, default=list)
    service_ids = Column(JSON, nullable=False, default=list)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(8), nullable=False)
    appointment_duration = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="confirmed", index=True)
    c_order_id = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        Index("ix_appointments_employee_date", "employee_id", "appointment_date"),
    )

    def __repr__(self):
        return (
            f"<AppointmentRecord(id={self.id}, employee={self.employee_id}, "
            f"date={self.appointment_date}, time={self.appointment_time})>"
        )

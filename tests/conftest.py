"""Shared test fixtures."""
from datetime import date, datetime
from typing import Dict, List

import pytest

from pawbook.config import Settings
from pawbook.coordinator import BookingCoordinator
from pawbook.errors import ExternalServiceError, StoreError
from pawbook.logging_config import setup_structured_logging
from pawbook.models import Appointment, BookingRequest, BusinessHours, Customer, Service
from pawbook.store import InMemoryBookingStore

# Saturday; the fixed clock below sits on the Friday before
BOOKING_DATE = date(2026, 3, 14)
NOW = datetime(2026, 3, 13, 8, 0)


class FakeGateway:
    """In-memory OrderGateway with switchable failures."""

    def __init__(self, services: List[Service]):
        self.services = services
        self.orders: Dict[str, Dict] = {}
        self.line_items: List[tuple] = []
        self.deleted: List[str] = []
        self.fail_create = False
        self.fail_delete = False
        self.fail_line_items = False
        self.fail_catalog = False
        self.business_hours = BusinessHours()
        self._next = 0

    def create_order(self, staff_id, total_cents, note):
        if self.fail_create:
            raise ExternalServiceError("POS unreachable", status_code=503)
        self._next += 1
        order_id = f"ORD{self._next}"
        self.orders[order_id] = {"staff_id": staff_id, "total": total_cents, "note": note}
        return order_id

    def delete_order(self, order_id):
        if self.fail_delete:
            raise ExternalServiceError("POS delete failed", status_code=500)
        self.orders.pop(order_id, None)
        self.deleted.append(order_id)

    def add_line_item(self, order_id, service_id):
        if self.fail_line_items:
            raise ExternalServiceError("line item rejected", status_code=400)
        self.line_items.append((order_id, service_id))
        return {"id": f"LI-{service_id}"}

    def list_services(self, bypass_cache=False):
        if self.fail_catalog:
            raise ExternalServiceError("catalog unavailable", status_code=503)
        return list(self.services)

    def get_business_hours(self):
        return self.business_hours


class FlakyStore(InMemoryBookingStore):
    """InMemoryBookingStore whose writes can be told to fail."""

    def __init__(self, appointments=None):
        super().__init__(appointments)
        self.fail_insert = False
        self.fail_update = False
        self.fail_delete = False
        self.insert_calls = 0

    def insert(self, appointment):
        self.insert_calls += 1
        if self.fail_insert:
            raise StoreError("disk full")
        return super().insert(appointment)

    def update(self, appointment_id, fields):
        if self.fail_update:
            raise StoreError("connection lost")
        return super().update(appointment_id, fields)

    def delete(self, appointment_id):
        if self.fail_delete:
            raise StoreError("connection lost")
        return super().delete(appointment_id)


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    """Route structlog through stdlib logging so caplog sees events."""
    setup_structured_logging(log_level="DEBUG")


@pytest.fixture
def catalog() -> List[Service]:
    """Grooming services as the POS reports them."""
    return [
        Service(id="ITEM-BATH", name="Bath 30 min", price=3500),
        Service(id="ITEM-GROOM", name="Full Groom Standard", price=6500, duration_minutes=90),
        Service(id="ITEM-NAILS", name="Nail Trim", price=1500),
        Service(id="ITEM-GROOM-L", name="Full Groom Large 120 min", price=8500),
        Service(id="ITEM-GROOM-XL", name="Full Groom X-Large 150 min", price=10500),
    ]


@pytest.fixture
def gateway(catalog) -> FakeGateway:
    return FakeGateway(catalog)


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def coordinator(store, gateway) -> BookingCoordinator:
    ids = iter(f"appt-{n}" for n in range(1, 1000))
    return BookingCoordinator(
        store=store,
        gateway=gateway,
        settings=Settings(),
        clock=lambda: NOW,
        id_factory=lambda: next(ids),
    )


@pytest.fixture
def make_appointment():
    """Factory for stored appointments."""
    def _create(**overrides) -> Appointment:
        data = {
            "id": "existing-1",
            "staff_id": "EMP1",
            "staff_name": "Jamie",
            "customer_id": "cust-1",
            "customer_name": "Dana Lee",
            "customer_contact": "dana@example.com | 555-0100",
            "pet_id": "pet-1",
            "pet_name": "Biscuit",
            "services": ["Bath 30 min"],
            "service_ids": ["ITEM-BATH"],
            "date": BOOKING_DATE,
            "start_time": "10:00",
            "duration_minutes": 30,
            "status": "confirmed",
            "pos_order_id": "ORD-OLD",
        }
        data.update(overrides)
        return Appointment(**data)
    return _create


@pytest.fixture
def booking_request():
    """Factory for create requests."""
    def _create(**overrides) -> BookingRequest:
        data = {
            "staff_id": "EMP1",
            "staff_name": "Jamie",
            "customer": Customer(
                id="cust-2",
                first_name="Sam",
                last_name="Rivera",
                email="sam@example.com",
                phone="555-0199",
            ),
            "pet_id": "pet-2",
            "pet_name": "Pickles",
            "date": BOOKING_DATE,
            "start_time": "11:00",
            "service_ids": ["ITEM-BATH", "ITEM-NAILS"],
        }
        data.update(overrides)
        return BookingRequest(**data)
    return _create

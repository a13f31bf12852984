"""Booking transaction coordinator.

Purpose: Keep the booking store and the POS order for each appointment in
agreement when either side can fail.

Pattern: The POS write comes first and the local write second. When the
local write fails after the POS succeeded, the POS write is compensated
(best effort). Compensation failures never replace the primary error; they
are logged and carried on the result or the raised BookingError.

State paths:
- create: Draft -> PosOrderCreated -> Persisted
- update: Persisted -> PosOrderUpdated -> Persisted
- delete: Persisted -> PosOrderDeleted -> Deleted
Any operation that gives up ends in Aborted.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pawbook import config
from pawbook.availability import slots_for_day
from pawbook.catalog import (
    filter_for_pet_size,
    note_for_customer,
    build_order_note,
    resolve_services,
    total_duration,
    total_price,
)
from pawbook.conflicts import check_conflict
from pawbook.errors import (
    BookingError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PersistenceError,
    StoreError,
    ValidationError,
)
from pawbook.logging_config import get_logger
from pawbook.models import (
    Appointment,
    AppointmentChanges,
    AppointmentStatus,
    BookingRequest,
    BusinessHours,
    Service,
)
from pawbook.pos_client import OrderGateway
from pawbook.store import BookingStore
from pawbook.time_model import time_to_minutes, to_12_hour

logger = get_logger(__name__)


class BookingState(str, Enum):
    """Steps of a booking transaction."""
    DRAFT = "Draft"
    POS_ORDER_CREATED = "PosOrderCreated"
    PERSISTED = "Persisted"
    POS_ORDER_UPDATED = "PosOrderUpdated"
    POS_ORDER_DELETED = "PosOrderDeleted"
    DELETED = "Deleted"
    ABORTED = "Aborted"


@dataclass
class CompensationFailure:
    """A POS cleanup or follow-up step that did not succeed."""
    action: str
    order_id: Optional[str]
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, "order_id": self.order_id, "error": self.error}


@dataclass
class BookingResult:
    """Outcome of a successful coordinator operation."""
    appointment: Optional[Appointment]
    states: List[BookingState] = field(default_factory=list)
    compensation_failures: List[CompensationFailure] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def final_state(self) -> Optional[BookingState]:
        return self.states[-1] if self.states else None


class BookingCoordinator:
    """
    Create, reschedule and delete appointments across store and POS.

    Collaborators are injected so tests can swap in fakes:

    Args:
        store: BookingStore implementation
        gateway: OrderGateway implementation (PosGateway in production)
        business_hours: Opening hours per weekday (read from the POS when omitted)
        settings: Slot granularity, same-day buffer, default service duration
        clock: Returns the salon's current local time
        id_factory: Produces new appointment ids
    """

    def __init__(
        self,
        store: BookingStore,
        gateway: OrderGateway,
        business_hours: Optional[BusinessHours] = None,
        settings: Optional[config.Settings] = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4())
    ):
        self.store = store
        self.gateway = gateway
        self.business_hours = business_hours
        self.settings = settings or config.Settings()
        self._clock = clock
        self._id_factory = id_factory

    # ===== READS =====

    def get_availability(self, staff_id: str, target_date: date, duration_minutes: int) -> List[str]:
        """
        Bookable start times for a groomer on a date.

        Returns:
            Display strings ("9:30 AM"), ascending. Same-day slots starting
            within the lead-time buffer are removed.

        Raises:
            ValidationError: Missing staff or non-positive duration
            PersistenceError: Store could not be read
        """
        if not staff_id:
            raise ValidationError("staff_id is required")
        if target_date is None:
            raise ValidationError("date is required")
        if duration_minutes is None or duration_minutes <= 0:
            raise ValidationError("duration must be a positive number of minutes")

        appointments = self._list_appointments(staff_id, target_date)
        slots = slots_for_day(
            self.business_hours or self.gateway.get_business_hours(),
            target_date,
            appointments,
            duration_minutes,
            granularity_minutes=self.settings.slot_granularity_minutes,
            now=self._clock(),
            buffer_minutes=self.settings.same_day_buffer_minutes,
        )

        logger.debug(
            "availability_computed",
            staff_id=staff_id,
            date=target_date.isoformat(),
            duration=duration_minutes,
            slot_count=len(slots),
        )
        return slots

    def list_services(self, pet_size: Optional[str] = None) -> List[Service]:
        """POS catalog, optionally narrowed to services offered for a pet size."""
        services = self.gateway.list_services()
        if pet_size:
            services = filter_for_pet_size(services, pet_size)
        return services

    def get_appointment(self, appointment_id: str) -> Appointment:
        return self._get_existing(appointment_id)

    def list_appointments(self, staff_id: str, target_date: date) -> List[Appointment]:
        if not staff_id or target_date is None:
            raise ValidationError("staff_id and date are required")
        return self._list_appointments(staff_id, target_date)

    # ===== CREATE =====

    def create_appointment(
        self,
        request: BookingRequest,
        override_conflict: bool = False
    ) -> BookingResult:
        """
        Book a new appointment.

        Args:
            request: Booking input
            override_conflict: Book even when the groomer is already busy

        Returns:
            BookingResult with the persisted appointment

        Raises:
            ValidationError: Missing fields or unknown services (nothing written)
            ConflictError: Groomer busy and no override (nothing written)
            ExternalServiceError: POS order could not be created (nothing written)
            PersistenceError: Store insert failed; the POS order was compensated
        """
        self._validate_request(request)
        log = logger.bind(operation="create", staff_id=request.staff_id)
        states = [BookingState.DRAFT]

        services = resolve_services(request.service_ids, self.gateway.list_services())
        duration = total_duration(services, self.settings.default_service_duration_minutes)

        existing = self._list_appointments(request.staff_id, request.date)
        conflict = check_conflict(
            request.staff_id,
            request.date,
            time_to_minutes(request.start_time),
            duration,
            existing,
        )
        if conflict and not override_conflict:
            self._transition(log, states, BookingState.ABORTED, reason="conflict")
            raise ConflictError(
                f"Staff {request.staff_id} is already booked at "
                f"{to_12_hour(conflict.appointment.start_time)} on {request.date.isoformat()}",
                conflict.appointment,
            )
        if conflict:
            log.warning("double_booking_overridden", conflicting_id=conflict.appointment.id)

        service_names = [s.name for s in services]
        note = note_for_customer(
            request.customer,
            request.pet_name,
            request.date.isoformat(),
            to_12_hour(request.start_time),
            service_names,
        )

        try:
            order_id = self.gateway.create_order(request.staff_id, total_price(services), note)
        except ExternalServiceError:
            self._transition(log, states, BookingState.ABORTED, reason="pos_create_failed")
            raise
        self._transition(log, states, BookingState.POS_ORDER_CREATED, order_id=order_id)

        warnings = self._attach_line_items(log, order_id, services)

        appointment = Appointment(
            id=self._id_factory(),
            staff_id=request.staff_id,
            staff_name=request.staff_name,
            customer_id=request.customer.id,
            customer_name=request.customer.full_name or None,
            customer_contact=request.customer.contact,
            pet_id=request.pet_id,
            pet_name=request.pet_name,
            services=service_names,
            service_ids=[s.id for s in services],
            date=request.date,
            start_time=request.start_time,
            duration_minutes=duration,
            status=request.status,
            pos_order_id=order_id,
        )

        try:
            saved = self.store.insert(appointment)
        except StoreError as e:
            failures: List[CompensationFailure] = []
            self._compensate_order(log, order_id, failures)
            self._transition(log, states, BookingState.ABORTED, reason="store_insert_failed")
            raise PersistenceError(
                f"Failed to save appointment: {e}", compensation_failures=failures
            ) from e

        self._transition(log, states, BookingState.PERSISTED, appointment_id=saved.id)
        return BookingResult(appointment=saved, states=states, warnings=warnings)

    # ===== UPDATE =====

    def update_appointment(
        self,
        appointment_id: str,
        changes: AppointmentChanges,
        override_conflict: bool = False
    ) -> BookingResult:
        """
        Reschedule, re-service or change the status of an appointment.

        The conflict check runs against the NEW schedule, ignoring the
        appointment itself. When date, time, staff or services change and a
        POS order exists, a replacement order is created first and the old one
        is deleted only after the store references the replacement. If the
        replacement cannot be created the old order id is kept and the local
        update still goes through.

        Raises:
            NotFoundError: Appointment does not exist
            ValidationError: Unknown services
            ConflictError: New schedule collides and no override
            PersistenceError: Store update failed (POS changes are not rolled back)
        """
        log = logger.bind(operation="update", appointment_id=appointment_id)
        current = self._get_existing(appointment_id)
        states = [BookingState.PERSISTED]
        failures: List[CompensationFailure] = []
        warnings: List[str] = []

        fields: Dict[str, Any] = {}
        new_staff = changes.staff_id or current.staff_id
        new_date = changes.date or current.date
        new_start = changes.start_time or current.start_time
        new_status = changes.status or current.status

        if new_staff != current.staff_id:
            fields["staff_id"] = new_staff
        if changes.staff_name is not None and changes.staff_name != current.staff_name:
            fields["staff_name"] = changes.staff_name
        if new_date != current.date:
            fields["date"] = new_date
        if new_start != current.start_time:
            fields["start_time"] = new_start
        if new_status != current.status:
            fields["status"] = new_status

        services: Optional[List[Service]] = None
        duration = current.duration_minutes
        services_changed = (
            changes.service_ids is not None and changes.service_ids != current.service_ids
        )
        if services_changed:
            services = resolve_services(changes.service_ids, self.gateway.list_services())
            duration = total_duration(services, self.settings.default_service_duration_minutes)
            fields["services"] = [s.name for s in services]
            fields["service_ids"] = [s.id for s in services]
            fields["duration_minutes"] = duration

        order_changed = bool({"staff_id", "date", "start_time", "services"} & fields.keys())
        cancelling = new_status == AppointmentStatus.CANCELLED
        # Cancelled appointments hold no slot, so reinstating one must re-check
        reinstating = current.is_cancelled and not cancelling

        if (order_changed or reinstating) and not cancelling:
            existing = self._list_appointments(new_staff, new_date)
            conflict = check_conflict(
                new_staff,
                new_date,
                time_to_minutes(new_start),
                duration,
                existing,
                exclude_appointment_id=current.id,
            )
            if conflict and not override_conflict:
                self._transition(log, states, BookingState.ABORTED, reason="conflict")
                raise ConflictError(
                    f"Staff {new_staff} is already booked at "
                    f"{to_12_hour(conflict.appointment.start_time)} on {new_date.isoformat()}",
                    conflict.appointment,
                )
            if conflict:
                log.warning("double_booking_overridden", conflicting_id=conflict.appointment.id)

        new_order_id = None
        if cancelling and not current.is_cancelled and current.pos_order_id:
            if self._compensate_order(log, current.pos_order_id, failures, action="cancel_order"):
                fields["pos_order_id"] = None
                self._transition(log, states, BookingState.POS_ORDER_DELETED,
                                 order_id=current.pos_order_id)
        elif not cancelling and ((order_changed and current.pos_order_id) or reinstating):
            updated_view = current.model_copy(update=fields)
            new_order_id = self._replace_order(log, updated_view, services, failures, warnings)
            if new_order_id:
                fields["pos_order_id"] = new_order_id
                self._transition(log, states, BookingState.POS_ORDER_UPDATED, order_id=new_order_id)

        if not fields:
            log.info("appointment_unchanged")
            return BookingResult(appointment=current, states=states)

        try:
            saved = self.store.update(current.id, fields)
        except StoreError as e:
            self._transition(log, states, BookingState.ABORTED, reason="store_update_failed")
            if new_order_id:
                # The stored row still references the old order, which is left in place
                log.error(
                    "pos_store_discrepancy",
                    stored_order_id=current.pos_order_id,
                    orphaned_order_id=new_order_id,
                )
                failures.append(CompensationFailure(
                    action="replace_order",
                    order_id=new_order_id,
                    error=f"Replacement order is not referenced by appointment {current.id}",
                ))
            raise PersistenceError(
                f"Failed to update appointment {current.id}: {e}",
                compensation_failures=failures,
            ) from e

        if new_order_id and current.pos_order_id:
            self._compensate_order(log, current.pos_order_id, failures)

        self._transition(log, states, BookingState.PERSISTED)
        return BookingResult(
            appointment=saved,
            states=states,
            compensation_failures=failures,
            warnings=warnings,
        )

    # ===== DELETE =====

    def delete_appointment(self, appointment_id: str) -> BookingResult:
        """
        Delete an appointment and its POS order.

        A POS failure is recorded but never blocks the local delete.

        Raises:
            NotFoundError: Appointment does not exist
            PersistenceError: Store delete failed
        """
        log = logger.bind(operation="delete", appointment_id=appointment_id)
        current = self._get_existing(appointment_id)
        states = [BookingState.PERSISTED]
        failures: List[CompensationFailure] = []

        if current.pos_order_id:
            if self._compensate_order(log, current.pos_order_id, failures):
                self._transition(log, states, BookingState.POS_ORDER_DELETED,
                                 order_id=current.pos_order_id)

        try:
            self.store.delete(current.id)
        except StoreError as e:
            self._transition(log, states, BookingState.ABORTED, reason="store_delete_failed")
            raise PersistenceError(
                f"Failed to delete appointment {current.id}: {e}",
                compensation_failures=failures,
            ) from e

        self._transition(log, states, BookingState.DELETED)
        return BookingResult(appointment=current, states=states, compensation_failures=failures)

    # ===== HELPERS =====

    def _validate_request(self, request: BookingRequest):
        missing = []
        if not request.staff_id:
            missing.append("staff_id")
        if request.date is None:
            missing.append("date")
        if not request.start_time:
            missing.append("start_time")
        if not request.service_ids:
            missing.append("service_ids")
        if request.customer is None:
            missing.append("customer")
        if not request.pet_id:
            missing.append("pet_id")

        if missing:
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")
        if request.status == AppointmentStatus.CANCELLED:
            raise ValidationError("A new appointment cannot be created as cancelled")

    def _get_existing(self, appointment_id: str) -> Appointment:
        try:
            appointment = self.store.get(appointment_id)
        except StoreError as e:
            raise PersistenceError(f"Failed to load appointment {appointment_id}: {e}") from e
        if appointment is None:
            raise NotFoundError(f"Appointment {appointment_id} not found")
        return appointment

    def _list_appointments(self, staff_id: str, target_date: date) -> List[Appointment]:
        try:
            return self.store.list_by_staff_and_date(staff_id, target_date)
        except StoreError as e:
            raise PersistenceError(f"Failed to read appointments: {e}") from e

    def _attach_line_items(self, log, order_id: str, services: List[Service]) -> List[str]:
        """Add one line item per service. Failures are warnings, not errors."""
        warnings = []
        for service in services:
            try:
                self.gateway.add_line_item(order_id, service.id)
            except ExternalServiceError as e:
                log.warning(
                    "line_item_failed",
                    order_id=order_id,
                    service_id=service.id,
                    error=e.message,
                )
                warnings.append(f"Line item {service.id} was not added to order {order_id}")
        return warnings

    def _compensate_order(
        self,
        log,
        order_id: str,
        failures: List[CompensationFailure],
        action: str = "delete_order"
    ) -> bool:
        """Best-effort POS order delete. Returns True when the order is gone."""
        try:
            self.gateway.delete_order(order_id)
            return True
        except ExternalServiceError as e:
            log.error("compensation_failed", action=action, order_id=order_id, error=e.message)
            failures.append(CompensationFailure(action=action, order_id=order_id, error=e.message))
            return False

    def _replace_order(
        self,
        log,
        appointment: Appointment,
        services: Optional[List[Service]],
        failures: List[CompensationFailure],
        warnings: List[str]
    ) -> Optional[str]:
        """
        Create the replacement order. The caller deletes the old order once
        the store references the new one.

        Returns:
            The new order id, or None when the replacement could not be
            created (the old order stays referenced)
        """
        old_order_id = appointment.pos_order_id
        try:
            if services is None:
                services = resolve_services(appointment.service_ids, self.gateway.list_services())
            note = build_order_note(
                appointment.customer_name or appointment.customer_id,
                appointment.pet_name,
                appointment.date.isoformat(),
                to_12_hour(appointment.start_time),
                [s.name for s in services],
                appointment.customer_contact,
            )
            new_order_id = self.gateway.create_order(
                appointment.staff_id, total_price(services), note
            )
        except BookingError as e:
            log.warning(
                "pos_order_replace_failed",
                order_id=old_order_id,
                error=e.message,
            )
            failures.append(CompensationFailure(
                action="replace_order", order_id=old_order_id, error=e.message
            ))
            return None

        warnings.extend(self._attach_line_items(log, new_order_id, services))
        return new_order_id

    def _transition(self, log, states: List[BookingState], state: BookingState, **context):
        previous = states[-1] if states else None
        states.append(state)
        log.info(
            "booking_transition",
            from_state=previous.value if previous else None,
            to_state=state.value,
            **context,
        )

"""Service catalog helpers: durations, totals, pet-size matching, order notes.

Service durations come from the catalog, never from the client. An explicit
``duration_minutes`` wins; otherwise the duration is read from the display
name ("Full Groom 90 min"), falling back to a flat default per service.
"""
import re
from typing import Dict, Iterable, List, Optional, Sequence

from pawbook import config
from pawbook.errors import ValidationError
from pawbook.models import Customer, Service

DURATION_IN_NAME = re.compile(r"(\d+)\s*min", re.IGNORECASE)

_X_LARGE_SIZES = {"x-large", "xlarge", "extra large", "extra-large"}
_LARGE_SIZES = {"large", "l"}


def service_duration(
    service: Service,
    default_minutes: int = config.DEFAULT_SERVICE_DURATION_MINUTES
) -> int:
    """Minutes a single service occupies the groomer."""
    if service.duration_minutes:
        return service.duration_minutes

    match = DURATION_IN_NAME.search(service.name)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))

    return default_minutes


def resolve_services(
    service_ids: Sequence[str],
    catalog: Iterable[Service]
) -> List[Service]:
    """
    Look up selected service ids in the catalog, keeping selection order.

    Raises:
        ValidationError: If any id is not in the catalog
    """
    by_id: Dict[str, Service] = {service.id: service for service in catalog}
    unknown = [service_id for service_id in service_ids if service_id not in by_id]
    if unknown:
        raise ValidationError(f"Unknown service(s): {', '.join(unknown)}")
    return [by_id[service_id] for service_id in service_ids]


def total_duration(
    services: Iterable[Service],
    default_minutes: int = config.DEFAULT_SERVICE_DURATION_MINUTES
) -> int:
    return sum(service_duration(s, default_minutes) for s in services)


def total_price(services: Iterable[Service]) -> int:
    """Sum of service prices in cents."""
    return sum(s.price for s in services)


def size_category(pet_size: Optional[str]) -> str:
    """Collapse free-text pet sizes into standard / large / x-large."""
    if not pet_size:
        return "standard"

    normalized = pet_size.strip().lower()
    if normalized in _X_LARGE_SIZES:
        return "x-large"
    if normalized in _LARGE_SIZES:
        return "large"
    # x-small, small and medium are all priced as standard
    return "standard"


def matches_pet_size(service_name: str, pet_size: Optional[str]) -> bool:
    """
    Check whether a service is offered for the pet's size.

    Services without a size marker in their name apply to every size.
    """
    name = service_name.lower()
    is_x_large = "x-large" in name or "xlarge" in name

    if "standard" not in name and "large" not in name:
        return True

    category = size_category(pet_size)
    if category == "x-large":
        return is_x_large
    if category == "large":
        return "large" in name and not is_x_large
    return "standard" in name


def filter_for_pet_size(services: Iterable[Service], pet_size: Optional[str]) -> List[Service]:
    return [s for s in services if matches_pet_size(s.name, pet_size)]


def build_order_note(
    customer_name: str,
    pet_name: Optional[str],
    appointment_date: str,
    appointment_time: str,
    service_names: Sequence[str],
    contact: Optional[str]
) -> str:
    """Human-readable note attached to the POS order."""
    return (
        f"Customer: {customer_name or 'N/A'}\n"
        f"Pet: {pet_name or 'N/A'}\n"
        f"Appointment Date: {appointment_date}\n"
        f"Appointment Time: {appointment_time}\n"
        f"Services: {', '.join(service_names)}\n"
        f"Contact: {contact or 'N/A'}"
    )


def note_for_customer(
    customer: Customer,
    pet_name: Optional[str],
    appointment_date: str,
    appointment_time: str,
    service_names: Sequence[str]
) -> str:
    return build_order_note(
        customer.full_name or customer.id,
        pet_name,
        appointment_date,
        appointment_time,
        service_names,
        customer.contact,
    )

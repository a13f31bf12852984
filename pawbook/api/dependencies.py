"""FastAPI dependency injection functions."""
from functools import lru_cache

from pawbook.config import load_settings
from pawbook.coordinator import BookingCoordinator
from pawbook.pos_client import PosGateway
from pawbook.store import SqlAlchemyBookingStore


@lru_cache(maxsize=1)
def get_coordinator() -> BookingCoordinator:
    """
    Get the booking coordinator (cached singleton).

    Pattern: Build store, gateway and coordinator once from the environment,
    reuse across requests. Tests replace this via dependency_overrides.

    Raises:
        ConfigurationError: If POS credentials are not configured
    """
    settings = load_settings()
    return BookingCoordinator(
        store=SqlAlchemyBookingStore(settings.database_url),
        gateway=PosGateway.from_settings(settings),
        settings=settings,
    )

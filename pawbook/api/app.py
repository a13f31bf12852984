"""FastAPI server for the grooming salon booking core.

Features:
- Availability, service catalog and appointment CRUD routes
- Booking errors mapped to JSON error envelopes with matching status codes
- X-Request-ID propagated into structured logs
- Health check endpoint

Run with: uvicorn pawbook.api.app:app
"""
import datetime as dt
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pawbook import __version__
from pawbook.api.dependencies import get_coordinator
from pawbook.api.models import ApiResponse, BookingResponse, ErrorResponse
from pawbook.config import load_settings
from pawbook.coordinator import BookingCoordinator, BookingResult
from pawbook.errors import (
    BookingError,
    ConfigurationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from pawbook.logging_config import generate_request_id, get_logger, setup_structured_logging
from pawbook.models import AppointmentChanges, BookingRequest

logger = get_logger(__name__)

# Most specific first
ERROR_STATUS = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ExternalServiceError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for(exc: BookingError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def booking_response(result: BookingResult) -> BookingResponse:
    appointment = result.appointment
    return BookingResponse(
        data=appointment.model_dump(mode="json") if appointment else None,
        states=[state.value for state in result.states],
        warnings=result.warnings,
        compensation_failures=[f.to_dict() for f in result.compensation_failures],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    settings = load_settings()
    setup_structured_logging(settings.log_level)
    logger.info("server_starting", version=__version__)
    yield
    logger.info("server_stopping")


def create_app(coordinator: Optional[BookingCoordinator] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        coordinator: Pre-built coordinator; when omitted one is built from
            the environment on first request

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="Pawbook Booking API",
        description="Grooming salon appointments kept in sync with the POS",
        version=__version__,
        lifespan=lifespan,
    )

    if coordinator is not None:
        app.dependency_overrides[get_coordinator] = lambda: coordinator

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed query or body; reported like any other ValidationError."""
        logger.warning("request_validation_failed", path=request.url.path, errors=str(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(
                error=str(exc.errors()),
                code=ValidationError.code,
            ).model_dump()
        )

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        status_code = status_for(exc)
        conflict = None
        if isinstance(exc, ConflictError) and exc.appointment is not None:
            conflict = exc.appointment.model_dump(mode="json")

        log = logger.error if status_code >= 500 else logger.info
        log(
            "booking_request_failed",
            path=request.url.path,
            code=exc.code,
            status_code=status_code,
            error=exc.message,
        )
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=exc.message,
                code=exc.code,
                conflict=conflict,
                compensation_failures=[
                    f.to_dict() if hasattr(f, "to_dict") else {"error": str(f)}
                    for f in exc.compensation_failures
                ],
            ).model_dump()
        )

    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint for load balancers."""
        return {
            "status": "healthy",
            "service": "pawbook",
            "version": __version__
        }

    @app.get("/api/availability", tags=["Availability"], response_model=ApiResponse)
    def get_availability(
        staff_id: str = Query(..., min_length=1),
        date: dt.date = Query(...),
        duration: int = Query(..., gt=0, description="Appointment length in minutes"),
        coordinator: BookingCoordinator = Depends(get_coordinator)
    ):
        """Open start times for a groomer on a date, e.g. ["9:00 AM", "9:15 AM"]."""
        slots = coordinator.get_availability(staff_id, date, duration)
        return ApiResponse(data=slots)

    @app.get("/api/services", tags=["Catalog"], response_model=ApiResponse)
    def list_services(
        pet_size: Optional[str] = None,
        coordinator: BookingCoordinator = Depends(get_coordinator)
    ):
        services = coordinator.list_services(pet_size)
        return ApiResponse(data=[s.model_dump() for s in services])

    @app.get("/api/appointments", tags=["Appointments"], response_model=ApiResponse)
    def list_appointments(
        staff_id: str = Query(..., min_length=1),
        date: dt.date = Query(...),
        coordinator: BookingCoordinator = Depends(get_coordinator)
    ):
        appointments = coordinator.list_appointments(staff_id, date)
        return ApiResponse(data=[a.model_dump(mode="json") for a in appointments])

    @app.get("/api/appointments/{appointment_id}", tags=["Appointments"], response_model=ApiResponse)
    def get_appointment(
        appointment_id: str,
        coordinator: BookingCoordinator = Depends(get_coordinator)
    ):
        appointment = coordinator.get_appointment(appointment_id)
        return ApiResponse(data=appointment.model_dump(mode="json"))

    @app.post(
        "/api/appointments",
        tags=["Appointments"],
        response_model=BookingResponse,
        status_code=status.HTTP_201_CREATED,
    )
    def create_appointment(
        request: BookingRequest,
        override_conflict: bool = False,
        coordinator: BookingCoordinator = Depends(get_coordinator)
    ):
        """
        Book an appointment.

        Responds 409 with the conflicting appointment when the groomer is
        busy; resend with ``override_conflict=true`` to double-book.
        """
        result = coordinator.create_appointment(request, override_conflict=override_conflict)
        return booking_response(result)

    @app.patch("/api/appointments/{appointment_id}", tags=["Appointments"], response_model=BookingResponse)
    def update_appointment(
        appointment_id: str,
        changes: AppointmentChanges,
        override_conflict: bool = False,
        coordinator: BookingCoordinator = Depends(get_coordinator)
    ):
        result = coordinator.update_appointment(
            appointment_id, changes, override_conflict=override_conflict
        )
        return booking_response(result)

    @app.delete("/api/appointments/{appointment_id}", tags=["Appointments"], response_model=BookingResponse)
    def delete_appointment(
        appointment_id: str,
        coordinator: BookingCoordinator = Depends(get_coordinator)
    ):
        result = coordinator.delete_appointment(appointment_id)
        return booking_response(result)

    return app


app = create_app()

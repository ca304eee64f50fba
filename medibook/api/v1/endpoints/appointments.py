"""Appointment endpoints."""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Query, Request, status
from fastapi.responses import JSONResponse

from medibook.config import settings
from medibook.dependencies import CurrentCaller, Scheduling
from medibook.middleware.error_handler import scheduling_error_response
from medibook.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    PaymentUpdate,
    SchedulingResult,
)

router = APIRouter()


def _render(
    request: Request,
    result: SchedulingResult,
) -> AppointmentResponse | JSONResponse:
    """Return the appointment of a successful result or its error response."""
    if result.ok and result.appointment is not None:
        return result.appointment
    return scheduling_error_response(request, result.error)


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book new appointment",
)
async def create_appointment(
    request: Request,
    data: AppointmentCreate,
    caller: CurrentCaller,
    scheduling: Scheduling,
) -> AppointmentResponse | JSONResponse:
    """
    Book an appointment with a doctor for the authenticated patient.

    Args:
        request: Request object
        data: Doctor, slot, kind and reason for visit
        caller: Authenticated caller
        scheduling: Scheduling facade

    Returns:
        Created appointment, or a SlotUnavailable/NotFound/ValidationError body
    """
    result = await scheduling.create_appointment(caller, data)
    return _render(request, result)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    request: Request,
    caller: CurrentCaller,
    scheduling: Scheduling,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    on_date: date | datetime | None = Query(None, alias="date"),
    from_date: date | datetime | None = Query(None),
    to_date: date | datetime | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
) -> AppointmentListResponse | JSONResponse:
    """
    List the caller's appointments.

    Doctors see their own calendar and patients their own bookings.

    Args:
        request: Request object
        caller: Authenticated caller
        scheduling: Scheduling facade
        status_filter: Filter by status
        on_date: Filter by a single date
        from_date: Filter by start date (ignored when ``date`` is given)
        to_date: Filter by end date (ignored when ``date`` is given)
        page: Page number
        limit: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        on_date=on_date,
        from_date=from_date,
        to_date=to_date,
        page=page,
        limit=limit,
    )

    result = await scheduling.list_appointments(caller, filters)
    if result.ok and result.page is not None:
        return result.page
    return scheduling_error_response(request, result.error)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    request: Request,
    appointment_id: UUID,
    caller: CurrentCaller,
    scheduling: Scheduling,
) -> AppointmentResponse | JSONResponse:
    """
    Get a specific appointment the caller takes part in.

    Args:
        request: Request object
        appointment_id: Appointment ID
        caller: Authenticated caller
        scheduling: Scheduling facade

    Returns:
        Appointment details
    """
    result = await scheduling.get_appointment(caller, appointment_id)
    return _render(request, result)


@router.put(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    request: Request,
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    caller: CurrentCaller,
    scheduling: Scheduling,
) -> AppointmentResponse | JSONResponse:
    """
    Confirm, complete, cancel or mark a no-show (doctor of record only).

    Args:
        request: Request object
        appointment_id: Appointment ID
        data: Target status plus optional notes, diagnosis, prescription, follow-up
        caller: Authenticated caller
        scheduling: Scheduling facade

    Returns:
        Updated appointment, or a Forbidden/NotFound/InvalidTransition body
    """
    result = await scheduling.update_status(caller, appointment_id, data)
    return _render(request, result)


@router.put(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    request: Request,
    appointment_id: UUID,
    caller: CurrentCaller,
    scheduling: Scheduling,
    data: AppointmentCancel | None = None,
) -> AppointmentResponse | JSONResponse:
    """
    Cancel an appointment (doctor or patient of record).

    Args:
        request: Request object
        appointment_id: Appointment ID
        caller: Authenticated caller
        scheduling: Scheduling facade
        data: Optional cancellation reason

    Returns:
        Cancelled appointment, or a Forbidden/NotFound/AlreadyTerminal body
    """
    reason = data.cancellation_reason if data else None
    result = await scheduling.cancel_appointment(caller, appointment_id, reason)
    return _render(request, result)


@router.put(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    request: Request,
    appointment_id: UUID,
    data: AppointmentReschedule,
    caller: CurrentCaller,
    scheduling: Scheduling,
) -> AppointmentResponse | JSONResponse:
    """
    Move an appointment to a new slot (doctor or patient of record).

    Args:
        request: Request object
        appointment_id: Appointment ID
        data: New date and interval
        caller: Authenticated caller
        scheduling: Scheduling facade

    Returns:
        Rescheduled appointment, or a SlotUnavailable/AlreadyTerminal/Forbidden body
    """
    result = await scheduling.reschedule_appointment(caller, appointment_id, data)
    return _render(request, result)


@router.put(
    "/{appointment_id}/payment",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Record payment status",
)
async def record_payment(
    request: Request,
    appointment_id: UUID,
    data: PaymentUpdate,
    caller: CurrentCaller,
    scheduling: Scheduling,
) -> AppointmentResponse | JSONResponse:
    """
    Record a payment outcome for an appointment.

    Args:
        request: Request object
        appointment_id: Appointment ID
        data: Payment status and transaction id
        caller: Authenticated caller
        scheduling: Scheduling facade

    Returns:
        Updated appointment
    """
    result = await scheduling.record_payment(caller, appointment_id, data)
    return _render(request, result)

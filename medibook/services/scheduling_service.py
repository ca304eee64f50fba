"""Scheduling facade: the single entry point for booking operations."""

from collections.abc import Awaitable, Callable
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.clock import normalize_date
from medibook.core.exceptions import SCHEDULING_ERRORS, AppException, ForbiddenException
from medibook.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResult,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    PaymentUpdate,
    SchedulingError,
    SchedulingResult,
)
from medibook.schemas.auth import Actor, Caller, CallerRole
from medibook.services.appointment_service import AppointmentService
from medibook.services.profile_service import ProfileService

logger = structlog.get_logger()


def to_scheduling_error(exc: AppException) -> SchedulingError:
    """Convert a business exception into its typed failure."""
    return SchedulingError(
        kind=exc.kind,
        message=exc.message,
        details=exc.details,
        status_code=exc.status_code,
    )


class SchedulingService:
    """Facade composing profiles, availability, slots, lifecycle and earnings.

    Every public method returns a typed result instead of raising for
    business errors. Anything else (storage outages, bugs) propagates.
    """

    def __init__(self, db: AsyncSession):
        """Initialize facade with database session."""
        self.db = db
        self.profiles = ProfileService(db)
        self.appointments = AppointmentService(db)

    async def resolve_actor(self, caller: Caller) -> Actor:
        """
        Map an identity-provider caller to the profile they act through.

        Raises:
            NotFoundException: If a doctor or patient caller has no profile
        """
        if caller.role == CallerRole.ADMIN:
            return Actor(user_id=caller.id, role=caller.role)
        profile = await self.profiles.resolve_caller(caller)
        return Actor(user_id=caller.id, role=caller.role, profile_id=profile["id"])

    async def _run(
        self,
        operation: str,
        action: Callable[[], Awaitable[AppointmentResponse]],
    ) -> SchedulingResult:
        try:
            appointment = await action()
        except SCHEDULING_ERRORS as exc:
            await self.db.rollback()
            logger.info(
                "scheduling_request_rejected",
                operation=operation,
                kind=exc.kind,
                reason=exc.message,
                details=exc.details,
            )
            return SchedulingResult.failure(to_scheduling_error(exc))
        return SchedulingResult.success(appointment)

    async def create_appointment(
        self,
        caller: Caller,
        data: AppointmentCreate,
    ) -> SchedulingResult:
        """Book an appointment for the calling patient."""

        async def action() -> AppointmentResponse:
            if caller.role != CallerRole.PATIENT:
                raise ForbiddenException(
                    "Only patients can book appointments", details={"role": caller.role.value}
                )
            patient = await self.profiles.get_patient_by_user(caller.id)
            normalized = data.model_copy(update={"date": normalize_date(data.date)})
            return await self.appointments.create_appointment(patient, normalized)

        return await self._run("create", action)

    async def get_appointment(self, caller: Caller, appointment_id: UUID) -> SchedulingResult:
        """Fetch one appointment the caller takes part in."""

        async def action() -> AppointmentResponse:
            actor = await self.resolve_actor(caller)
            return await self.appointments.get_appointment(appointment_id, actor)

        return await self._run("get", action)

    async def list_appointments(
        self,
        caller: Caller,
        filters: AppointmentFilters,
    ) -> AppointmentListResult:
        """List the caller's appointments, scoped by role."""
        try:
            actor = await self.resolve_actor(caller)
            page = await self.appointments.list_appointments(actor, filters)
        except SCHEDULING_ERRORS as exc:
            return AppointmentListResult(ok=False, error=to_scheduling_error(exc))
        return AppointmentListResult(ok=True, page=page)

    async def update_status(
        self,
        caller: Caller,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
    ) -> SchedulingResult:
        """Apply a clinician's status decision (confirm, complete, no-show, cancel)."""

        async def action() -> AppointmentResponse:
            if caller.role != CallerRole.DOCTOR:
                raise ForbiddenException(
                    "Only doctors can update appointment status",
                    details={"role": caller.role.value},
                )
            actor = await self.resolve_actor(caller)
            return await self.appointments.update_status(appointment_id, actor, data)

        return await self._run("update_status", action)

    async def cancel_appointment(
        self,
        caller: Caller,
        appointment_id: UUID,
        reason: str | None = None,
    ) -> SchedulingResult:
        """Cancel on behalf of the clinician or requester of record."""

        async def action() -> AppointmentResponse:
            actor = await self.resolve_actor(caller)
            return await self.appointments.cancel_appointment(appointment_id, actor, reason)

        return await self._run("cancel", action)

    async def reschedule_appointment(
        self,
        caller: Caller,
        appointment_id: UUID,
        data: AppointmentReschedule,
    ) -> SchedulingResult:
        """Move an appointment on behalf of the clinician or requester of record."""

        async def action() -> AppointmentResponse:
            actor = await self.resolve_actor(caller)
            normalized = data.model_copy(update={"date": normalize_date(data.date)})
            return await self.appointments.reschedule_appointment(appointment_id, actor, normalized)

        return await self._run("reschedule", action)

    async def record_payment(
        self,
        caller: Caller,
        appointment_id: UUID,
        data: PaymentUpdate,
    ) -> SchedulingResult:
        """Record a payment outcome reported by the payment collaborator."""

        async def action() -> AppointmentResponse:
            actor = await self.resolve_actor(caller)
            return await self.appointments.record_payment(appointment_id, actor, data)

        return await self._run("record_payment", action)

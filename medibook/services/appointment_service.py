"""Appointment lifecycle: booking, status changes, cancellation and rescheduling."""

import math
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, func, insert, select, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.config import settings
from medibook.core import clock
from medibook.core.exceptions import (
    AlreadyPostedException,
    AlreadyTerminalException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    SlotUnavailableException,
    ValidationException,
)
from medibook.core.state_machine import (
    SLOT_RELEASING_STATUSES,
    AppointmentEvent,
    is_completion_retry,
    next_payment_status,
    next_status,
)
from medibook.models.appointments import appointments
from medibook.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    PaymentStatus,
    PaymentUpdate,
)
from medibook.schemas.auth import Actor, CallerRole
from medibook.services.availability_service import AvailabilityService
from medibook.services.earning_service import EarningService
from medibook.services.profile_service import ProfileService
from medibook.services.slot_service import SlotService

logger = structlog.get_logger()


def _as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from backends without zone support."""
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class AppointmentService:
    """Service owning the appointment state machine.

    Every write to ``status`` and to the booked interval goes through this
    class. Methods commit on success; on a business error they raise and leave
    the rollback to the caller.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session and its collaborators."""
        self.db = db
        self.slots = SlotService(db)
        self.earnings = EarningService(db)
        self.profiles = ProfileService(db)
        self.availability = AvailabilityService()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_appointment_row(self, appointment_id: UUID) -> dict:
        """
        Load an appointment row.

        Raises:
            NotFoundException: If the appointment does not exist
        """
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException(
                "Appointment not found", details={"appointment_id": str(appointment_id)}
            )
        return dict(row)

    async def get_appointment(self, appointment_id: UUID, actor: Actor) -> AppointmentResponse:
        """
        Get an appointment visible to the actor.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor is not a party to it
        """
        row = await self.get_appointment_row(appointment_id)
        if actor.role != CallerRole.ADMIN and not actor.is_party_to(row):
            raise ForbiddenException("Not authorized to view this appointment")
        return AppointmentResponse.model_validate(row)

    async def list_appointments(
        self,
        actor: Actor,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List the actor's appointments with filtering and pagination.

        Doctors see their calendar, patients their bookings, admins everything.

        Args:
            actor: Resolved caller
            filters: Filter and pagination parameters

        Returns:
            Paginated list ordered by date and start time
        """
        conditions = []

        if actor.role == CallerRole.DOCTOR:
            conditions.append(appointments.c.doctor_id == actor.profile_id)
        elif actor.role == CallerRole.PATIENT:
            conditions.append(appointments.c.patient_id == actor.profile_id)

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.on_date:
            conditions.append(appointments.c.date == filters.on_date)
        else:
            if filters.from_date:
                conditions.append(appointments.c.date >= filters.from_date)
            if filters.to_date:
                conditions.append(appointments.c.date <= filters.to_date)

        count_stmt = (
            select(func.count()).select_from(appointments).where(and_(true(), *conditions))
        )
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.limit
        stmt = (
            select(appointments)
            .where(and_(true(), *conditions))
            .order_by(appointments.c.date.asc(), appointments.c.start_time.asc())
            .limit(filters.limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            limit=filters.limit,
            pages=math.ceil(total / filters.limit),
            items=items,
        )

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    async def create_appointment(
        self,
        patient: dict,
        data: AppointmentCreate,
    ) -> AppointmentResponse:
        """
        Book a new appointment in ``pending`` status.

        The clinician's current consultation fee is copied into ``fee`` and the
        payment amount; later fee changes never touch this row.

        Args:
            patient: Requester's patient profile
            data: Booking request

        Returns:
            Created appointment

        Raises:
            NotFoundException: If the doctor does not exist
            ValidationException: On empty reason, bad interval or a past slot
            SlotUnavailableException: If the slot is taken or outside published hours
        """
        if not data.reason_for_visit or not data.reason_for_visit.strip():
            raise ValidationException(
                "Reason for visit is required", details={"field": "reason_for_visit"}
            )

        doctor = await self.profiles.get_doctor(data.doctor_id)
        day = clock.normalize_date(data.date)
        self._check_slot_request(doctor, day, data.start_time, data.end_time)

        await self.slots.lock_day(doctor["id"], day)
        await self.slots.ensure_available(doctor["id"], day, data.start_time, data.end_time)

        now = datetime.now(UTC)
        fee = int(doctor["consultation_fee"])
        values = {
            "id": uuid4(),
            "doctor_id": doctor["id"],
            "patient_id": patient["id"],
            "date": day,
            "start_time": data.start_time,
            "end_time": data.end_time,
            "status": AppointmentStatus.PENDING.value,
            "type": data.type.value,
            "reason_for_visit": data.reason_for_visit.strip(),
            "symptoms": list(data.symptoms),
            "prescription": [],
            "fee": fee,
            "payment_amount": fee,
            "payment_status": PaymentStatus.PENDING.value,
            "is_feedback_provided": False,
            "created_at": now,
            "updated_at": now,
        }

        row = await self._write_slot(
            insert(appointments).values(**values).returning(appointments),
            doctor["id"],
            day,
            data.start_time,
            data.end_time,
        )

        logger.info(
            "appointment_created",
            appointment_id=str(row["id"]),
            doctor_id=str(row["doctor_id"]),
            patient_id=str(row["patient_id"]),
            date=day.isoformat(),
            start_time=data.start_time,
            end_time=data.end_time,
            fee=fee,
        )
        return AppointmentResponse.model_validate(row)

    async def update_status(
        self,
        appointment_id: UUID,
        actor: Actor,
        data: AppointmentStatusUpdate,
    ) -> AppointmentResponse:
        """
        Apply a clinician status update and merge clinical notes.

        Completing a paid appointment posts the clinician's earning. Repeating
        ``completed`` on a completed appointment is treated as a retry: the
        record is returned unchanged and the earning is posted only if missing.

        Args:
            appointment_id: Appointment ID
            actor: Resolved caller; must be the clinician of record
            data: Target status plus optional notes, diagnosis, prescription, follow-up

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor is not the clinician of record
            InvalidTransitionException: If the edge is not allowed
        """
        row = await self.get_appointment_row(appointment_id)

        if not actor.is_doctor_of(row):
            raise ForbiddenException("Not authorized to update this appointment")

        current = AppointmentStatus(row["status"])

        if is_completion_retry(current, data.status):
            await self._post_earning_if_paid(row)
            await self.db.commit()
            return AppointmentResponse.model_validate(row)

        new_status = next_status(current, AppointmentEvent.UPDATE_STATUS, data.status)

        values: dict[str, Any] = {"status": new_status.value}

        if data.notes:
            values["notes"] = data.notes
        if data.diagnosis:
            values["diagnosis"] = data.diagnosis
        if data.prescription:
            values["prescription"] = [item.model_dump() for item in data.prescription]
        if data.follow_up_date:
            values["follow_up_date"] = data.follow_up_date

        if new_status == AppointmentStatus.CANCELLED:
            values.update(self._cancellation_values(row, actor, reason=None))

        updated = await self._apply(row, values)

        if new_status == AppointmentStatus.COMPLETED:
            await self._post_earning_if_paid(updated)

        await self.db.commit()

        logger.info(
            "appointment_status_updated",
            appointment_id=str(appointment_id),
            old_status=current.value,
            new_status=new_status.value,
        )
        return AppointmentResponse.model_validate(updated)

    async def cancel_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """
        Cancel an appointment on behalf of its clinician or requester.

        A paid appointment has its payment flagged ``refunded``; the refund
        itself belongs to the payment collaborator.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor is not a party to it
            AlreadyTerminalException: If it is already completed, cancelled or no-show
        """
        row = await self.get_appointment_row(appointment_id)

        if not actor.is_party_to(row):
            raise ForbiddenException("Not authorized to cancel this appointment")

        current = AppointmentStatus(row["status"])
        new_status = next_status(current, AppointmentEvent.CANCEL)

        values = {"status": new_status.value}
        values.update(self._cancellation_values(row, actor, reason))

        updated = await self._apply(row, values)
        await self.db.commit()

        logger.info(
            "appointment_cancelled",
            appointment_id=str(appointment_id),
            old_status=current.value,
            cancelled_by=str(actor.user_id),
            payment_status=updated["payment_status"],
        )
        return AppointmentResponse.model_validate(updated)

    async def reschedule_appointment(
        self,
        appointment_id: UUID,
        actor: Actor,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new slot and mark it ``rescheduled``.

        The conflict scan ignores the appointment's own current interval, so it
        may be moved onto a slot that overlaps where it is now.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor is not a party to it
            AlreadyTerminalException: If it is already completed, cancelled or no-show
            ValidationException: On a bad interval or a past slot
            SlotUnavailableException: If the new slot is taken
        """
        row = await self.get_appointment_row(appointment_id)

        if not actor.is_party_to(row):
            raise ForbiddenException("Not authorized to reschedule this appointment")

        current = AppointmentStatus(row["status"])
        new_status = next_status(current, AppointmentEvent.RESCHEDULE)

        doctor = await self.profiles.get_doctor(row["doctor_id"])
        day = clock.normalize_date(data.date)
        self._check_slot_request(doctor, day, data.start_time, data.end_time)

        await self.slots.lock_day(row["doctor_id"], day)
        await self.slots.ensure_available(
            row["doctor_id"],
            day,
            data.start_time,
            data.end_time,
            exclude_appointment_id=row["id"],
        )

        values = {
            "status": new_status.value,
            "date": day,
            "start_time": data.start_time,
            "end_time": data.end_time,
            "updated_at": self._next_updated_at(row),
        }
        updated = await self._write_slot(
            self._guarded_update(row, values),
            row["doctor_id"],
            day,
            data.start_time,
            data.end_time,
        )

        logger.info(
            "appointment_rescheduled",
            appointment_id=str(appointment_id),
            old_status=current.value,
            old_slot=f"{row['date'].isoformat()} {row['start_time']}-{row['end_time']}",
            new_slot=f"{day.isoformat()} {data.start_time}-{data.end_time}",
        )
        return AppointmentResponse.model_validate(updated)

    async def record_payment(
        self,
        appointment_id: UUID,
        actor: Actor,
        data: PaymentUpdate,
    ) -> AppointmentResponse:
        """
        Record a payment outcome reported by the payment collaborator.

        Only the requester of record or an admin may report payments. Paying an
        already completed appointment posts its earning.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor may not report payments for it
            AlreadyTerminalException: If the appointment was cancelled or missed
            InvalidTransitionException: If the payment status change is not allowed
        """
        row = await self.get_appointment_row(appointment_id)

        if actor.role != CallerRole.ADMIN and not actor.is_patient_of(row):
            raise ForbiddenException("Not authorized to record payment for this appointment")

        current = AppointmentStatus(row["status"])
        if current in SLOT_RELEASING_STATUSES:
            raise AlreadyTerminalException(
                f"Cannot record payment for appointment that is already {current.value}",
                details={"status": current.value},
            )

        old_payment = PaymentStatus(row["payment_status"])
        new_payment = next_payment_status(old_payment, data.status)

        values: dict[str, Any] = {"payment_status": new_payment.value}
        if data.transaction_id:
            values["payment_transaction_id"] = data.transaction_id
        if new_payment == PaymentStatus.PAID:
            values["payment_paid_at"] = datetime.now(UTC)

        updated = await self._apply(row, values)

        if current == AppointmentStatus.COMPLETED:
            await self._post_earning_if_paid(updated)

        await self.db.commit()

        logger.info(
            "payment_status_recorded",
            appointment_id=str(appointment_id),
            old_payment_status=old_payment.value,
            new_payment_status=new_payment.value,
        )
        return AppointmentResponse.model_validate(updated)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_slot_request(self, doctor: dict, day: date, start_time: str, end_time: str) -> None:
        """Validate a requested slot before touching the calendar."""
        clock.validate_interval(start_time, end_time)

        if clock.slot_start(day, start_time) <= clock.now():
            raise ValidationException(
                "Appointment date must be in the future",
                details={"field": "date", "date": day.isoformat(), "start_time": start_time},
            )

        if not doctor.get("is_available_for_consultation", True):
            raise SlotUnavailableException(
                "Doctor is not accepting appointments",
                details={"reason": "not_accepting_appointments", "doctor_id": str(doctor["id"])},
            )

        if settings.enforce_published_hours and not self.availability.is_within_published_hours(
            doctor, day, start_time, end_time
        ):
            raise SlotUnavailableException(
                "Requested time is outside the doctor's published hours",
                details={
                    "reason": "outside_published_hours",
                    "date": day.isoformat(),
                    "start_time": start_time,
                    "end_time": end_time,
                    "published_hours": [
                        f"{start // 60:02d}:{start % 60:02d}-{end // 60:02d}:{end % 60:02d}"
                        for start, end in self.availability.published_ranges(doctor, day)
                    ],
                },
            )

    @staticmethod
    def _next_updated_at(row: dict) -> datetime:
        """Current time, never earlier than the row's last update."""
        now = datetime.now(UTC)
        previous = row.get("updated_at")
        if previous is not None and _as_utc(previous) > now:
            return _as_utc(previous)
        return now

    @staticmethod
    def _cancellation_values(row: dict, actor: Actor, reason: str | None) -> dict[str, Any]:
        values: dict[str, Any] = {
            "cancellation_reason": reason,
            "cancelled_by": actor.user_id,
            "cancelled_at": datetime.now(UTC),
        }
        if row["payment_status"] == PaymentStatus.PAID.value:
            values["payment_status"] = PaymentStatus.REFUNDED.value
        return values

    @staticmethod
    def _guarded_update(row: dict, values: dict[str, Any]):
        """UPDATE that only applies if the row still has the status we read."""
        return (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == row["id"],
                    appointments.c.status == row["status"],
                )
            )
            .values(**values)
            .returning(appointments)
        )

    async def _apply(self, row: dict, values: dict[str, Any]) -> dict:
        """
        Write ``values`` to an appointment whose status has not moved since it was read.

        Raises:
            InvalidTransitionException: If a concurrent request changed the status first
        """
        values.setdefault("updated_at", self._next_updated_at(row))
        result = await self.db.execute(self._guarded_update(row, values))
        updated = result.mappings().first()
        if updated is None:
            raise InvalidTransitionException(
                "Appointment status changed concurrently; reload and retry",
                details={"appointment_id": str(row["id"]), "expected_status": row["status"]},
            )
        return dict(updated)

    async def _write_slot(
        self,
        stmt,
        doctor_id: UUID,
        day: date,
        start_time: str,
        end_time: str,
    ) -> dict:
        """
        Execute and commit a write that books an interval.

        The partial unique index on active slots is the last line of defence;
        its violation means another request won the slot.

        Raises:
            SlotUnavailableException: If the storage layer rejects the booking
            InvalidTransitionException: If the guarded row changed status concurrently
        """
        try:
            result = await self.db.execute(stmt)
            row = result.mappings().first()
            if row is None:
                raise InvalidTransitionException(
                    "Appointment status changed concurrently; reload and retry",
                )
            row = dict(row)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning(
                "slot_write_rejected_by_storage",
                doctor_id=str(doctor_id),
                date=day.isoformat(),
                start_time=start_time,
                end_time=end_time,
            )
            raise SlotUnavailableException(
                "This time slot is not available",
                details={
                    "reason": "concurrent_booking",
                    "date": day.isoformat(),
                    "start_time": start_time,
                    "end_time": end_time,
                },
            )
        return row

    async def _post_earning_if_paid(self, row: dict) -> None:
        """Post the clinician's earning for a completed appointment that is paid."""
        if row["payment_status"] != PaymentStatus.PAID.value:
            return

        try:
            await self.earnings.post_earning(
                doctor_id=row["doctor_id"],
                appointment_id=row["id"],
                gross_amount=row["fee"],
                patient_id=row["patient_id"],
            )
        except AlreadyPostedException:
            logger.info("earning_already_posted", appointment_id=str(row["id"]))

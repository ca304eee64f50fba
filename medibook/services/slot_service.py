"""Slot conflict detection for a clinician's calendar."""

from datetime import UTC, date, datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.clock import parse_hhmm, validate_interval
from medibook.core.exceptions import SlotUnavailableException
from medibook.core.state_machine import SLOT_RELEASING_STATUSES
from medibook.database import dialect_insert
from medibook.models.appointments import appointments
from medibook.models.schedule_days import schedule_days

logger = structlog.get_logger()


def intervals_overlap(start: int, end: int, other_start: int, other_end: int) -> bool:
    """Half-open ``[start, end)`` overlap test; touching intervals do not overlap."""
    return start < other_end and end > other_start


class SlotService:
    """Service for checking and reserving appointment slots."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def lock_day(self, doctor_id: UUID, day: date) -> None:
        """
        Serialize booking writes for one clinician-day.

        Creates the ``schedule_days`` row if it is missing, then locks it with
        ``SELECT ... FOR UPDATE`` for the rest of the transaction. Concurrent
        bookings for the same clinician and date wait here, so the conflict
        scan that follows sees every committed booking.

        Args:
            doctor_id: Clinician ID
            day: Calendar date being booked
        """
        stmt = (
            dialect_insert(self.db, schedule_days)
            .values(doctor_id=doctor_id, date=day, version=0)
            .on_conflict_do_nothing(index_elements=["doctor_id", "date"])
        )
        await self.db.execute(stmt)

        lock = (
            select(schedule_days.c.version)
            .where(
                and_(
                    schedule_days.c.doctor_id == doctor_id,
                    schedule_days.c.date == day,
                )
            )
            .with_for_update()
        )
        await self.db.execute(lock)

        await self.db.execute(
            update(schedule_days)
            .where(
                and_(
                    schedule_days.c.doctor_id == doctor_id,
                    schedule_days.c.date == day,
                )
            )
            .values(version=schedule_days.c.version + 1, updated_at=datetime.now(UTC))
        )

    async def find_conflicts(
        self,
        doctor_id: UUID,
        day: date,
        start_time: str,
        end_time: str,
        exclude_appointment_id: UUID | None = None,
    ) -> list[dict]:
        """
        Find slot-holding appointments that overlap the requested interval.

        Args:
            doctor_id: Clinician ID
            day: Calendar date
            start_time: Requested start (``HH:MM``)
            end_time: Requested end (``HH:MM``)
            exclude_appointment_id: Appointment being moved, ignored by the scan

        Returns:
            Conflicting appointment rows, earliest first
        """
        start, end = validate_interval(start_time, end_time)

        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.date == day,
            appointments.c.status.notin_([status.value for status in SLOT_RELEASING_STATUSES]),
        ]
        if exclude_appointment_id is not None:
            conditions.append(appointments.c.id != exclude_appointment_id)

        stmt = select(appointments).where(and_(*conditions)).order_by(appointments.c.start_time)
        result = await self.db.execute(stmt)

        return [
            dict(row)
            for row in result.mappings().all()
            if intervals_overlap(
                start,
                end,
                parse_hhmm(row["start_time"], "start_time"),
                parse_hhmm(row["end_time"], "end_time"),
            )
        ]

    async def ensure_available(
        self,
        doctor_id: UUID,
        day: date,
        start_time: str,
        end_time: str,
        exclude_appointment_id: UUID | None = None,
    ) -> None:
        """
        Raise if the requested interval collides with an existing booking.

        Raises:
            SlotUnavailableException: If any slot-holding appointment overlaps
        """
        conflicts = await self.find_conflicts(
            doctor_id, day, start_time, end_time, exclude_appointment_id
        )
        if not conflicts:
            return

        first = conflicts[0]
        logger.info(
            "slot_conflict_detected",
            doctor_id=str(doctor_id),
            date=day.isoformat(),
            requested=f"{start_time}-{end_time}",
            conflicting_appointment_id=str(first["id"]),
        )
        raise SlotUnavailableException(
            "This time slot is not available",
            details={
                "reason": "overlap",
                "date": day.isoformat(),
                "start_time": start_time,
                "end_time": end_time,
                "conflicting_interval": {
                    "start_time": first["start_time"],
                    "end_time": first["end_time"],
                },
            },
        )

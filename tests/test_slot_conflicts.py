"""Tests for slot conflict detection and booking guards."""

from datetime import UTC, date, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import insert, update
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core import clock
from medibook.core.exceptions import SlotUnavailableException, ValidationException
from medibook.models.appointments import appointments
from medibook.models.doctors import doctors
from medibook.schemas.appointments import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentStatus,
    AppointmentStatusUpdate,
)
from medibook.schemas.auth import Actor
from medibook.services.appointment_service import AppointmentService
from medibook.services.slot_service import SlotService, intervals_overlap


def _booking(doctor: dict, day: date, start: str, end: str) -> AppointmentCreate:
    return AppointmentCreate(
        doctor_id=doctor["id"],
        date=day,
        start_time=start,
        end_time=end,
        reason_for_visit="Routine check-up",
    )


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ((600, 630), (615, 645), True),
        ((600, 630), (630, 660), False),
        ((600, 630), (570, 600), False),
        ((600, 700), (620, 640), True),
        ((620, 640), (600, 700), True),
        ((600, 630), (600, 630), True),
    ],
)
def test_intervals_overlap(a: tuple, b: tuple, expected: bool) -> None:
    """Half-open intervals overlap only when they share a minute."""
    assert intervals_overlap(*a, *b) is expected


@pytest.mark.asyncio
async def test_overlapping_booking_is_rejected(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    doctor_actor: Actor,
    future_day: date,
) -> None:
    """A confirmed 10:00-10:30 blocks 10:15-10:45 and reports the conflicting interval."""
    service = AppointmentService(db_session)
    booked = await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )
    await service.update_status(
        booked.id, doctor_actor, AppointmentStatusUpdate(status=AppointmentStatus.CONFIRMED)
    )

    with pytest.raises(SlotUnavailableException) as exc_info:
        await service.create_appointment(
            test_patient, _booking(test_doctor, future_day, "10:15", "10:45")
        )

    details = exc_info.value.details
    assert details["reason"] == "overlap"
    assert details["conflicting_interval"] == {"start_time": "10:00", "end_time": "10:30"}


@pytest.mark.asyncio
async def test_adjacent_booking_is_accepted(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """Touching intervals do not conflict."""
    service = AppointmentService(db_session)
    await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )

    adjacent = await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:30", "11:00")
    )
    assert adjacent.start_time == "10:30"
    assert adjacent.status == AppointmentStatus.PENDING


@pytest.mark.asyncio
async def test_other_doctor_and_other_day_do_not_conflict(
    db_session: AsyncSession,
    test_doctor: dict,
    other_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """Conflicts are scoped to one clinician on one date."""
    service = AppointmentService(db_session)
    await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )

    await service.create_appointment(
        test_patient, _booking(other_doctor, future_day, "10:00", "10:30")
    )
    await service.create_appointment(
        test_patient, _booking(test_doctor, future_day + timedelta(days=1), "10:00", "10:30")
    )

    slots = SlotService(db_session)
    conflicts = await slots.find_conflicts(test_doctor["id"], future_day, "09:00", "12:00")
    assert len(conflicts) == 1


@pytest.mark.asyncio
async def test_cancelled_and_missed_appointments_release_slot(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    patient_actor: Actor,
    doctor_actor: Actor,
    future_day: date,
) -> None:
    """Cancelled and no-show appointments no longer hold their interval."""
    service = AppointmentService(db_session)
    first = await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )
    await service.cancel_appointment(first.id, patient_actor, "Feeling better")

    second = await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )
    await service.update_status(
        second.id, doctor_actor, AppointmentStatusUpdate(status=AppointmentStatus.NO_SHOW)
    )

    third = await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )
    assert third.status == AppointmentStatus.PENDING


@pytest.mark.asyncio
async def test_completed_appointment_still_holds_slot(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    doctor_actor: Actor,
    future_day: date,
) -> None:
    """Completing an appointment does not free its interval."""
    service = AppointmentService(db_session)
    booked = await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )
    await service.update_status(
        booked.id, doctor_actor, AppointmentStatusUpdate(status=AppointmentStatus.COMPLETED)
    )

    with pytest.raises(SlotUnavailableException):
        await service.create_appointment(
            test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
        )


@pytest.mark.asyncio
async def test_reschedule_ignores_own_interval(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    patient_actor: Actor,
    future_day: date,
) -> None:
    """An appointment can move onto a slot overlapping where it is now."""
    service = AppointmentService(db_session)
    booked = await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )

    moved = await service.reschedule_appointment(
        booked.id,
        patient_actor,
        AppointmentReschedule(date=future_day, start_time="10:15", end_time="10:45"),
    )

    assert moved.status == AppointmentStatus.RESCHEDULED
    assert (moved.start_time, moved.end_time) == ("10:15", "10:45")


@pytest.mark.asyncio
async def test_reschedule_into_taken_slot_is_rejected(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    patient_actor: Actor,
    future_day: date,
) -> None:
    """Moving onto someone else's interval fails and leaves the original untouched."""
    service = AppointmentService(db_session)
    await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )
    mine = await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "11:00", "11:30")
    )

    with pytest.raises(SlotUnavailableException):
        await service.reschedule_appointment(
            mine.id,
            patient_actor,
            AppointmentReschedule(date=future_day, start_time="10:20", end_time="10:50"),
        )
    await db_session.rollback()

    unchanged = await service.get_appointment(mine.id, patient_actor)
    assert (unchanged.start_time, unchanged.status) == ("11:00", AppointmentStatus.PENDING)


@pytest.mark.asyncio
async def test_storage_rejects_identical_active_slot(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """The unique index on active slots turns a lost race into SlotUnavailable."""
    service = AppointmentService(db_session)
    await service.create_appointment(
        test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
    )

    now = datetime.now(UTC)
    duplicate = insert(appointments).values(
        id=uuid4(),
        doctor_id=test_doctor["id"],
        patient_id=test_patient["id"],
        date=future_day,
        start_time="10:00",
        end_time="10:30",
        status=AppointmentStatus.PENDING.value,
        type="in-person",
        reason_for_visit="Raced request",
        symptoms=[],
        prescription=[],
        fee=1500,
        payment_amount=1500,
        payment_status="pending",
        is_feedback_provided=False,
        created_at=now,
        updated_at=now,
    ).returning(appointments)

    with pytest.raises(SlotUnavailableException) as exc_info:
        await service._write_slot(duplicate, test_doctor["id"], future_day, "10:00", "10:30")
    assert exc_info.value.details["reason"] == "concurrent_booking"


@pytest.mark.asyncio
async def test_booking_outside_published_hours(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """Slots outside the published weekly hours are unavailable."""
    service = AppointmentService(db_session)

    with pytest.raises(SlotUnavailableException) as exc_info:
        await service.create_appointment(
            test_patient, _booking(test_doctor, future_day, "17:45", "18:15")
        )
    assert exc_info.value.details["reason"] == "outside_published_hours"
    assert exc_info.value.details["published_hours"] == ["08:00-18:00"]


@pytest.mark.asyncio
async def test_booking_doctor_not_accepting(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """A clinician who paused consultations cannot be booked."""
    await db_session.execute(
        update(doctors)
        .where(doctors.c.id == test_doctor["id"])
        .values(is_available_for_consultation=False)
    )
    await db_session.commit()

    with pytest.raises(SlotUnavailableException) as exc_info:
        await AppointmentService(db_session).create_appointment(
            test_patient, _booking(test_doctor, future_day, "10:00", "10:30")
        )
    assert exc_info.value.details["reason"] == "not_accepting_appointments"


@pytest.mark.asyncio
async def test_booking_in_the_past(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
) -> None:
    """Slots that already started cannot be booked."""
    yesterday = clock.today() - timedelta(days=1)

    with pytest.raises(ValidationException) as exc_info:
        await AppointmentService(db_session).create_appointment(
            test_patient, _booking(test_doctor, yesterday, "10:00", "10:30")
        )
    assert exc_info.value.details["field"] == "date"


@pytest.mark.asyncio
async def test_booking_with_reversed_interval(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """End before start is a validation error, not a conflict."""
    with pytest.raises(ValidationException):
        await AppointmentService(db_session).create_appointment(
            test_patient, _booking(test_doctor, future_day, "11:00", "10:00")
        )

"""Tests for earning posting and reporting."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core import clock
from medibook.core.exceptions import AlreadyPostedException, ForbiddenException, NotFoundException
from medibook.models.earnings import earnings
from medibook.schemas.appointments import (
    AppointmentCreate,
    AppointmentStatus,
    AppointmentStatusUpdate,
    PaymentStatus,
    PaymentUpdate,
)
from medibook.schemas.auth import Actor
from medibook.schemas.earnings import EarningFilters, EarningType
from medibook.services.appointment_service import AppointmentService
from medibook.services.earning_service import EarningService, split_amount

COMPLETE = AppointmentStatusUpdate(status=AppointmentStatus.COMPLETED)
PAID = PaymentUpdate(status=PaymentStatus.PAID, transaction_id="pay_123")


async def _book(db_session: AsyncSession, doctor: dict, patient: dict, day: date, start="10:00"):
    hour, minute = start.split(":")
    end = f"{hour}:{int(minute) + 30:02d}"
    return await AppointmentService(db_session).create_appointment(
        patient,
        AppointmentCreate(
            doctor_id=doctor["id"],
            date=day,
            start_time=start,
            end_time=end,
            reason_for_visit="Follow-up",
        ),
    )


async def _earning_count(db_session: AsyncSession, appointment_id) -> int:
    result = await db_session.execute(
        select(func.count())
        .select_from(earnings)
        .where(earnings.c.appointment_id == appointment_id)
    )
    return result.scalar()


@pytest.mark.parametrize(
    ("gross", "expected"),
    [
        (1500, ("1500.00", "150.00", "1350.00")),
        (1200, ("1200.00", "120.00", "1080.00")),
        (999, ("999.00", "99.90", "899.10")),
        (0, ("0.00", "0.00", "0.00")),
    ],
)
def test_split_amount(gross: int, expected: tuple) -> None:
    """The platform keeps ten percent, rounded to cents."""
    assert split_amount(gross) == tuple(Decimal(value) for value in expected)


def test_split_amount_custom_rate() -> None:
    """Rounding is half-up to the cent."""
    assert split_amount(1005, Decimal("0.125")) == (
        Decimal("1005.00"),
        Decimal("125.63"),
        Decimal("879.37"),
    )


@pytest.mark.asyncio
async def test_completing_paid_appointment_posts_earning(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    patient_actor: Actor,
    doctor_actor: Actor,
    future_day: date,
) -> None:
    """Completion of a paid appointment posts exactly one earning."""
    service = AppointmentService(db_session)
    booked = await _book(db_session, test_doctor, test_patient, future_day)
    await service.record_payment(booked.id, patient_actor, PAID)

    await service.update_status(booked.id, doctor_actor, COMPLETE)

    earning = await EarningService(db_session).get_by_appointment(booked.id)
    assert earning is not None
    assert earning["doctor_id"] == test_doctor["id"]
    assert earning["type"] == EarningType.APPOINTMENT.value
    assert Decimal(str(earning["amount"])) == Decimal("1500.00")
    assert Decimal(str(earning["platform_fee"])) == Decimal("150.00")
    assert Decimal(str(earning["net_amount"])) == Decimal("1350.00")
    assert earning["is_paid"] is False
    assert earning["payout_status"] == "pending"
    assert str(test_patient["id"]) in earning["description"]


@pytest.mark.asyncio
async def test_completing_unpaid_appointment_posts_nothing(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    doctor_actor: Actor,
    future_day: date,
) -> None:
    """No payment, no earning."""
    booked = await _book(db_session, test_doctor, test_patient, future_day)

    await AppointmentService(db_session).update_status(booked.id, doctor_actor, COMPLETE)

    assert await _earning_count(db_session, booked.id) == 0


@pytest.mark.asyncio
async def test_paying_completed_appointment_posts_earning(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    patient_actor: Actor,
    doctor_actor: Actor,
    future_day: date,
) -> None:
    """Payment arriving after completion still posts the earning."""
    service = AppointmentService(db_session)
    booked = await _book(db_session, test_doctor, test_patient, future_day)
    await service.update_status(booked.id, doctor_actor, COMPLETE)
    assert await _earning_count(db_session, booked.id) == 0

    await service.record_payment(booked.id, patient_actor, PAID)

    assert await _earning_count(db_session, booked.id) == 1


@pytest.mark.asyncio
async def test_completion_retry_is_idempotent(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    patient_actor: Actor,
    doctor_actor: Actor,
    future_day: date,
) -> None:
    """Repeating the completion returns the record unchanged and posts nothing new."""
    service = AppointmentService(db_session)
    booked = await _book(db_session, test_doctor, test_patient, future_day)
    await service.record_payment(booked.id, patient_actor, PAID)
    first = await service.update_status(booked.id, doctor_actor, COMPLETE)

    second = await service.update_status(booked.id, doctor_actor, COMPLETE)

    assert second.status == AppointmentStatus.COMPLETED
    assert second.updated_at == first.updated_at
    assert await _earning_count(db_session, booked.id) == 1


@pytest.mark.asyncio
async def test_post_earning_twice_is_rejected(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """The poster itself refuses a second earning for one appointment."""
    booked = await _book(db_session, test_doctor, test_patient, future_day)
    service = EarningService(db_session)

    await service.post_earning(test_doctor["id"], booked.id, 1500)
    with pytest.raises(AlreadyPostedException):
        await service.post_earning(test_doctor["id"], booked.id, 1500)

    assert await _earning_count(db_session, booked.id) == 1


@pytest.mark.asyncio
async def test_post_earning_lost_race_keeps_transaction(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """A duplicate insert that slips past the dedupe read is absorbed by the unique key."""
    booked = await _book(db_session, test_doctor, test_patient, future_day)
    service = EarningService(db_session)
    await service.post_earning(test_doctor["id"], booked.id, 1500)

    async def _not_posted(appointment_id):
        return None

    monkeypatch.setattr(service, "get_by_appointment", _not_posted)

    with pytest.raises(AlreadyPostedException):
        await service.post_earning(test_doctor["id"], booked.id, 1500)

    await db_session.commit()
    assert await _earning_count(db_session, booked.id) == 1


@pytest.mark.asyncio
async def test_list_earnings_with_summary(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """Listing returns the page plus net sums and a per-type breakdown."""
    service = EarningService(db_session)
    for start in ("09:00", "10:00", "11:00"):
        booked = await _book(db_session, test_doctor, test_patient, future_day, start)
        await service.post_earning(test_doctor["id"], booked.id, 1500)
    await db_session.commit()

    page = await service.list_earnings(test_doctor["id"], EarningFilters(limit=2))

    assert page.total == 3
    assert page.pages == 2
    assert len(page.items) == 2
    assert page.summary.total_earnings == Decimal("4050.00")
    assert page.summary.pending_earnings == Decimal("4050.00")
    assert page.summary.paid_earnings == Decimal("0.00")
    by_type = {item.type: item.amount for item in page.summary.earnings_by_type}
    assert by_type[EarningType.APPOINTMENT] == Decimal("4050.00")
    assert by_type[EarningType.PRESCRIPTION] == Decimal("0.00")

    paid_only = await service.list_earnings(test_doctor["id"], EarningFilters(is_paid=True))
    assert paid_only.total == 0

    today = clock.today()
    posted_today = await service.list_earnings(
        test_doctor["id"], EarningFilters(from_date=today, to_date=today)
    )
    assert posted_today.total == 3


@pytest.mark.asyncio
async def test_earnings_stats(
    db_session: AsyncSession,
    test_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """Earnings posted today count toward the year, month and week."""
    service = EarningService(db_session)
    booked = await _book(db_session, test_doctor, test_patient, future_day)
    await service.post_earning(test_doctor["id"], booked.id, 1500)
    await db_session.commit()

    today = clock.today()
    stats = await service.earnings_stats(test_doctor["id"], today)

    assert stats.yearly == Decimal("1350.00")
    assert stats.monthly == Decimal("1350.00")
    assert stats.weekly == Decimal("1350.00")
    assert len(stats.monthly_chart) == 12
    assert stats.monthly_chart[today.month - 1].amount == Decimal("1350.00")
    assert [item.type for item in stats.type_chart] == [EarningType.APPOINTMENT]


@pytest.mark.asyncio
async def test_get_earning_checks_owner(
    db_session: AsyncSession,
    test_doctor: dict,
    other_doctor: dict,
    test_patient: dict,
    future_day: date,
) -> None:
    """Clinicians only see their own earnings."""
    service = EarningService(db_session)
    booked = await _book(db_session, test_doctor, test_patient, future_day)
    posted = await service.post_earning(test_doctor["id"], booked.id, 1500)
    await db_session.commit()

    mine = await service.get_earning(test_doctor["id"], posted["id"])
    assert mine.net_amount == Decimal("1350.00")

    with pytest.raises(ForbiddenException):
        await service.get_earning(other_doctor["id"], posted["id"])

    with pytest.raises(NotFoundException):
        await service.get_earning(test_doctor["id"], uuid4())

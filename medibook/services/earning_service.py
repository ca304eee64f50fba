"""Earning service: posting and reporting clinician compensation."""

import math
from datetime import UTC, date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID, uuid4

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.config import settings
from medibook.core.clock import clinic_zone
from medibook.core.exceptions import (
    AlreadyPostedException,
    ForbiddenException,
    NotFoundException,
)
from medibook.database import dialect_insert
from medibook.models.earnings import earnings
from medibook.schemas.earnings import (
    EarningFilters,
    EarningListResponse,
    EarningResponse,
    EarningsStats,
    EarningSummary,
    EarningType,
    EarningTypeTotal,
    MonthlyAmount,
    PayoutStatus,
)

logger = structlog.get_logger()

CENTS = Decimal("0.01")
MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def _money(value: object) -> Decimal:
    """Normalize a database sum or amount to a two-place Decimal."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def split_amount(
    gross_amount: int | Decimal,
    rate: Decimal | None = None,
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Split a gross fee into amount, platform fee and net amount.

    Args:
        gross_amount: Gross consultation fee
        rate: Platform fee rate; defaults to ``PLATFORM_FEE_RATE``

    Returns:
        ``(amount, platform_fee, net_amount)``
    """
    rate = settings.platform_fee_rate if rate is None else rate
    amount = _money(gross_amount)
    platform_fee = (amount * Decimal(rate)).quantize(CENTS, rounding=ROUND_HALF_UP)
    return amount, platform_fee, amount - platform_fee


def _day_start_utc(day: date) -> datetime:
    """Midnight of a clinic calendar day, expressed in UTC."""
    return datetime.combine(day, time.min, tzinfo=clinic_zone()).astimezone(UTC)


class EarningService:
    """Service for clinician earnings."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_by_appointment(self, appointment_id: UUID) -> dict | None:
        """Get the earning posted for an appointment, if any."""
        result = await self.db.execute(
            select(earnings).where(earnings.c.appointment_id == appointment_id)
        )
        row = result.mappings().first()
        return dict(row) if row else None

    async def post_earning(
        self,
        doctor_id: UUID,
        appointment_id: UUID,
        gross_amount: int,
        patient_id: UUID | None = None,
    ) -> dict:
        """
        Post the earning for a completed, paid appointment.

        At most one earning exists per appointment: a dedupe read runs first,
        and the unique constraint on ``earnings.appointment_id`` turns a lost
        race into a skipped insert.

        Args:
            doctor_id: Clinician being paid
            appointment_id: Originating appointment
            gross_amount: Fee snapshot of the appointment
            patient_id: Requester, used in the description

        Returns:
            The new earning row

        Raises:
            AlreadyPostedException: If the appointment already has an earning
        """
        if await self.get_by_appointment(appointment_id) is not None:
            raise AlreadyPostedException(appointment_id)

        amount, platform_fee, net_amount = split_amount(gross_amount)
        now = datetime.now(UTC)
        description = (
            f"Appointment fees from patient {patient_id}"
            if patient_id
            else "Appointment fees"
        )

        stmt = (
            dialect_insert(self.db, earnings)
            .values(
                id=uuid4(),
                doctor_id=doctor_id,
                appointment_id=appointment_id,
                type=EarningType.APPOINTMENT.value,
                description=description,
                date=now,
                amount=amount,
                platform_fee=platform_fee,
                net_amount=net_amount,
                is_paid=False,
                payout_status=PayoutStatus.PENDING.value,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=["appointment_id"])
            .returning(earnings)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()

        if row is None:
            raise AlreadyPostedException(appointment_id)

        logger.info(
            "earning_posted",
            doctor_id=str(doctor_id),
            appointment_id=str(appointment_id),
            amount=str(amount),
            platform_fee=str(platform_fee),
            net_amount=str(net_amount),
        )
        return dict(row)

    async def list_earnings(
        self,
        doctor_id: UUID,
        filters: EarningFilters,
    ) -> EarningListResponse:
        """
        List a clinician's earnings with filtering, pagination and a summary.

        Args:
            doctor_id: Clinician ID
            filters: Filter and pagination parameters

        Returns:
            Paginated earnings plus net sums over all of the clinician's earnings
        """
        conditions = [earnings.c.doctor_id == doctor_id]

        if filters.from_date:
            conditions.append(earnings.c.date >= _day_start_utc(filters.from_date))

        if filters.to_date:
            conditions.append(
                earnings.c.date < _day_start_utc(filters.to_date + timedelta(days=1))
            )

        if filters.type:
            conditions.append(earnings.c.type == filters.type.value)

        if filters.is_paid is not None:
            conditions.append(earnings.c.is_paid == filters.is_paid)

        count_stmt = select(func.count()).select_from(earnings).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.limit
        stmt = (
            select(earnings)
            .where(and_(*conditions))
            .order_by(earnings.c.date.desc())
            .limit(filters.limit)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        items = [EarningResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return EarningListResponse(
            total=total,
            page=filters.page,
            limit=filters.limit,
            pages=math.ceil(total / filters.limit),
            items=items,
            summary=await self._summary(doctor_id),
        )

    async def get_earning(self, doctor_id: UUID, earning_id: UUID) -> EarningResponse:
        """
        Get one earning belonging to a clinician.

        Raises:
            NotFoundException: If the earning does not exist
            ForbiddenException: If it belongs to another clinician
        """
        result = await self.db.execute(select(earnings).where(earnings.c.id == earning_id))
        row = result.mappings().first()

        if not row:
            raise NotFoundException("Earning not found", details={"earning_id": str(earning_id)})

        if row["doctor_id"] != doctor_id:
            raise ForbiddenException("Not authorized to view this earning")

        return EarningResponse.model_validate(dict(row))

    async def earnings_stats(self, doctor_id: UUID, today: date) -> EarningsStats:
        """
        Net earnings for the current year, month and week plus chart data.

        Weeks start on Sunday.
        """
        start_of_year = date(today.year, 1, 1)
        start_of_month = today.replace(day=1)
        start_of_week = today - timedelta(days=(today.weekday() + 1) % 7)

        result = await self.db.execute(
            select(earnings.c.date, earnings.c.net_amount).where(
                and_(
                    earnings.c.doctor_id == doctor_id,
                    earnings.c.date >= _day_start_utc(start_of_year),
                )
            )
        )

        zone = clinic_zone()
        monthly_totals = [Decimal("0.00")] * 12
        month_total = Decimal("0.00")
        week_total = Decimal("0.00")

        for posted_at, net_amount in result.all():
            if posted_at.tzinfo is None:
                posted_at = posted_at.replace(tzinfo=UTC)
            posted_day = posted_at.astimezone(zone).date()
            amount = _money(net_amount)
            monthly_totals[posted_day.month - 1] += amount
            if posted_day >= start_of_month:
                month_total += amount
            if posted_day >= start_of_week:
                week_total += amount

        by_type = [item for item in await self._net_by_type(doctor_id) if item.amount > 0]

        return EarningsStats(
            yearly=sum(monthly_totals, Decimal("0.00")),
            monthly=month_total,
            weekly=week_total,
            monthly_chart=[
                MonthlyAmount(name=name, amount=amount)
                for name, amount in zip(MONTHS, monthly_totals)
            ],
            type_chart=by_type,
        )

    async def _net_sum(self, *conditions) -> Decimal:
        stmt = select(func.coalesce(func.sum(earnings.c.net_amount), 0)).where(and_(*conditions))
        return _money((await self.db.execute(stmt)).scalar())

    async def _net_by_type(self, doctor_id: UUID) -> list[EarningTypeTotal]:
        stmt = (
            select(earnings.c.type, func.sum(earnings.c.net_amount))
            .where(earnings.c.doctor_id == doctor_id)
            .group_by(earnings.c.type)
        )
        totals = {row[0]: _money(row[1]) for row in (await self.db.execute(stmt)).all()}
        return [
            EarningTypeTotal(type=earning_type, amount=totals.get(earning_type.value, _money(0)))
            for earning_type in EarningType
        ]

    async def _summary(self, doctor_id: UUID) -> EarningSummary:
        mine = earnings.c.doctor_id == doctor_id
        return EarningSummary(
            total_earnings=await self._net_sum(mine),
            paid_earnings=await self._net_sum(mine, earnings.c.is_paid.is_(True)),
            pending_earnings=await self._net_sum(mine, earnings.c.is_paid.is_(False)),
            earnings_by_type=await self._net_by_type(doctor_id),
        )

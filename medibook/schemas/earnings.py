"""Earning schemas for request/response validation."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class EarningType(str, Enum):
    """Source of a compensation record."""

    APPOINTMENT = "appointment"
    PRESCRIPTION = "prescription"
    CONSULTATION = "consultation"
    OTHER = "other"


class PayoutStatus(str, Enum):
    """Payout status enumeration."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class EarningResponse(BaseModel):
    """Schema for earning response."""

    id: UUID
    doctor_id: UUID
    appointment_id: UUID | None = None
    type: EarningType
    description: str
    date: datetime
    amount: Decimal
    platform_fee: Decimal
    net_amount: Decimal
    is_paid: bool
    payout_date: datetime | None = None
    payout_status: PayoutStatus
    transaction_id: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EarningFilters(BaseModel):
    """Schema for earning filtering."""

    from_date: date | None = None
    to_date: date | None = None
    type: EarningType | None = None
    is_paid: bool | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=25, ge=1, le=100)


class EarningTypeTotal(BaseModel):
    """Net amount earned for one earning type."""

    type: EarningType
    amount: Decimal


class EarningSummary(BaseModel):
    """Net sums across all of a clinician's earnings."""

    total_earnings: Decimal
    paid_earnings: Decimal
    pending_earnings: Decimal
    earnings_by_type: list[EarningTypeTotal]


class EarningListResponse(BaseModel):
    """Schema for paginated earning list response."""

    total: int
    page: int
    limit: int
    pages: int
    items: list[EarningResponse]
    summary: EarningSummary


class MonthlyAmount(BaseModel):
    """Net amount for one calendar month."""

    name: str
    amount: Decimal


class EarningsStats(BaseModel):
    """Period totals and chart breakdowns for a clinician."""

    yearly: Decimal
    monthly: Decimal
    weekly: Decimal
    monthly_chart: list[MonthlyAmount]
    type_chart: list[EarningTypeTotal]

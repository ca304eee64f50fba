"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from medibook.core.clock import normalize_date

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    NO_SHOW = "no-show"


class AppointmentType(str, Enum):
    """How the consultation takes place."""

    IN_PERSON = "in-person"
    VIDEO = "video"
    PHONE = "phone"


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


def _collapse_to_date(value: Any) -> Any:
    """Accept a date-time where a calendar date is expected."""
    if isinstance(value, str) and ("T" in value or " " in value.strip()):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        return normalize_date(value)
    return value


class PrescriptionItem(BaseModel):
    """Single prescribed medication."""

    medication: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)
    duration: str = Field(..., min_length=1, max_length=100)
    notes: str | None = Field(None, max_length=500)


class PaymentRecord(BaseModel):
    """Payment state nested inside an appointment."""

    amount: int
    status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str | None = None
    paid_at: datetime | None = None


class AppointmentSlot(BaseModel):
    """Calendar date plus a [start, end) wall-clock interval."""

    date: date
    start_time: str = Field(..., pattern=HHMM_PATTERN, examples=["10:00"])
    end_time: str = Field(..., pattern=HHMM_PATTERN, examples=["10:30"])

    @field_validator("date", mode="before")
    @classmethod
    def collapse_date(cls, v: Any) -> Any:
        """Collapse date-times to the clinic calendar date."""
        return _collapse_to_date(v)


class AppointmentCreate(AppointmentSlot):
    """Schema for booking a new appointment."""

    doctor_id: UUID
    type: AppointmentType = AppointmentType.IN_PERSON
    reason_for_visit: str = Field(..., min_length=1, max_length=1000)
    symptoms: list[str] = Field(default_factory=list)

    @field_validator("reason_for_visit")
    @classmethod
    def validate_reason(cls, v: str) -> str:
        """Reject whitespace-only reasons."""
        if not v.strip():
            raise ValueError("Reason for visit is required")
        return v.strip()


class AppointmentReschedule(AppointmentSlot):
    """Schema for moving an appointment to a new slot."""


class AppointmentStatusUpdate(BaseModel):
    """Schema for a clinician status update."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=2000)
    diagnosis: str | None = Field(None, max_length=2000)
    prescription: list[PrescriptionItem] | None = None
    follow_up_date: date | None = None

    @field_validator("follow_up_date", mode="before")
    @classmethod
    def normalize_follow_up(cls, v: Any) -> Any:
        """Collapse date-times to the clinic calendar date."""
        return _collapse_to_date(v)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    cancellation_reason: str | None = Field(None, max_length=1000)


class PaymentUpdate(BaseModel):
    """Schema for the payment collaborator recording a payment outcome."""

    status: PaymentStatus
    transaction_id: str | None = Field(None, max_length=255)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    doctor_id: UUID
    patient_id: UUID
    date: date
    start_time: str
    end_time: str
    status: AppointmentStatus
    type: AppointmentType
    reason_for_visit: str
    symptoms: list[str] = Field(default_factory=list)
    notes: str | None = None
    diagnosis: str | None = None
    prescription: list[PrescriptionItem] = Field(default_factory=list)
    follow_up_date: date | None = None
    fee: int
    payment: PaymentRecord
    cancellation_reason: str | None = None
    cancelled_by: UUID | None = None
    cancelled_at: datetime | None = None
    is_feedback_provided: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def nest_payment(cls, data: Any) -> Any:
        """Fold the flat ``payment_*`` columns of a table row into ``payment``."""
        if isinstance(data, dict) and "payment" not in data and "payment_status" in data:
            data = dict(data)
            data["payment"] = {
                "amount": data.pop("payment_amount"),
                "status": data.pop("payment_status"),
                "transaction_id": data.pop("payment_transaction_id", None),
                "paid_at": data.pop("payment_paid_at", None),
            }
        return data


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    limit: int
    pages: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    on_date: date | None = Field(default=None, alias="date")
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)

    model_config = {"populate_by_name": True}

    @field_validator("on_date", "from_date", "to_date", mode="before")
    @classmethod
    def normalize_dates(cls, v: Any) -> Any:
        """Collapse date-times to the clinic calendar date."""
        return _collapse_to_date(v)


class SchedulingError(BaseModel):
    """Typed business failure returned by the scheduling facade."""

    kind: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    status_code: int = Field(default=400, exclude=True)


class SchedulingResult(BaseModel):
    """Outcome of a scheduling operation: an appointment or a typed failure."""

    ok: bool
    appointment: AppointmentResponse | None = None
    error: SchedulingError | None = None

    @classmethod
    def success(cls, appointment: AppointmentResponse) -> "SchedulingResult":
        """Build a successful result."""
        return cls(ok=True, appointment=appointment)

    @classmethod
    def failure(cls, error: SchedulingError) -> "SchedulingResult":
        """Build a failed result."""
        return cls(ok=False, error=error)


class AppointmentListResult(BaseModel):
    """Outcome of an appointment listing: a page or a typed failure."""

    ok: bool
    page: AppointmentListResponse | None = None
    error: SchedulingError | None = None

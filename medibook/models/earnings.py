"""Earnings table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
    text,
)

from medibook.models.base import metadata

earnings = Table(
    "earnings",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column(
        "doctor_id",
        Uuid,
        ForeignKey("doctors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # One earning per appointment; enforced here so retries cannot double post
    Column(
        "appointment_id",
        Uuid,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    ),
    Column("type", String(20), nullable=False, server_default="appointment"),
    Column("description", Text, nullable=False),
    Column("date", DateTime(timezone=True), nullable=False),
    # Amounts
    Column("amount", Numeric(10, 2), nullable=False),
    Column("platform_fee", Numeric(10, 2), nullable=False, server_default=text("0")),
    Column("net_amount", Numeric(10, 2), nullable=False),
    # Payout
    Column("is_paid", Boolean, nullable=False, server_default=text("false")),
    Column("payout_date", DateTime(timezone=True), nullable=True),
    Column("payout_status", String(20), nullable=False, server_default="pending"),
    Column("transaction_id", String(255), nullable=True),
    # Audit fields
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    CheckConstraint(
        "type IN ('appointment', 'prescription', 'consultation', 'other')",
        name="earnings_type_check",
    ),
    CheckConstraint(
        "payout_status IN ('pending', 'processed', 'failed')",
        name="earnings_payout_status_check",
    ),
)

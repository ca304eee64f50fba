"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    text,
)

from medibook.models.base import metadata

# Rows in these statuses no longer occupy their slot
ACTIVE_SLOT_PREDICATE = text("status NOT IN ('cancelled', 'no-show')")

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True),
    # Ownership / references
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
    Column("patient_id", Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    # Schedule (clinic wall-clock, same-day only)
    Column("date", Date, nullable=False),
    Column("start_time", String(5), nullable=False),
    Column("end_time", String(5), nullable=False),
    # Status management
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("type", String(20), nullable=False, server_default="in-person"),
    # Clinical details
    Column("reason_for_visit", Text, nullable=False),
    Column("symptoms", JSON, nullable=False, default=list),
    Column("notes", Text, nullable=True),
    Column("diagnosis", Text, nullable=True),
    Column("prescription", JSON, nullable=False, default=list),
    Column("follow_up_date", Date, nullable=True),
    # Fee snapshot taken at booking time
    Column("fee", Integer, nullable=False),
    # Payment record
    Column("payment_amount", Integer, nullable=False),
    Column("payment_status", String(20), nullable=False, server_default="pending"),
    Column("payment_transaction_id", String(255), nullable=True),
    Column("payment_paid_at", DateTime(timezone=True), nullable=True),
    # Cancellation metadata
    Column("cancellation_reason", Text, nullable=True),
    Column("cancelled_by", Uuid, nullable=True),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("is_feedback_provided", Boolean, nullable=False, server_default=text("false")),
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
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'rescheduled', 'no-show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "type IN ('in-person', 'video', 'phone')",
        name="appointments_type_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'paid', 'refunded', 'failed')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint("start_time < end_time", name="appointments_interval_check"),
    CheckConstraint("fee >= 0", name="appointments_fee_check"),
)

Index("ix_appointments_doctor_date", appointments.c.doctor_id, appointments.c.date)
Index("ix_appointments_patient_id", appointments.c.patient_id)
Index("ix_appointments_status", appointments.c.status)

# Storage backstop against double booking of an identical interval
Index(
    "uq_appointments_active_slot",
    appointments.c.doctor_id,
    appointments.c.date,
    appointments.c.start_time,
    appointments.c.end_time,
    unique=True,
    postgresql_where=ACTIVE_SLOT_PREDICATE,
    sqlite_where=ACTIVE_SLOT_PREDICATE,
)

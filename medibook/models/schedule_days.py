"""Per-clinician, per-day lock rows.

Booking writes lock the row for ``(doctor_id, date)`` before scanning for
conflicts, so two instances cannot both pass the scan for the same day.
"""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    PrimaryKeyConstraint,
    Table,
    Uuid,
    text,
)

from medibook.models.base import metadata

schedule_days = Table(
    "schedule_days",
    metadata,
    Column("doctor_id", Uuid, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False),
    Column("date", Date, nullable=False),
    # Bumped on every booking write for the day
    Column("version", Integer, nullable=False, server_default=text("0")),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    PrimaryKeyConstraint("doctor_id", "date", name="schedule_days_pkey"),
)

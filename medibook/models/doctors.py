"""Doctor profile table using SQLAlchemy Core.

Profiles are owned by the profile collaborator; scheduling only reads the
consultation fee and the published weekly availability.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Table,
    Text,
    Uuid,
    text,
)

from medibook.models.base import metadata

doctors = Table(
    "doctors",
    metadata,
    Column("id", Uuid, primary_key=True),
    # Identity provider user id
    Column("user_id", Uuid, nullable=False, unique=True, index=True),
    Column("full_name", Text, nullable=False),
    Column("specialization", String(200), index=True),
    # Practice information
    Column("consultation_fee", Integer, nullable=False),
    # Availability: [{"day": "Monday", "start_time": "09:00", "end_time": "17:00"}, ...]
    Column("availability", JSON, nullable=False, default=list),
    Column(
        "is_available_for_consultation",
        Boolean,
        nullable=False,
        server_default=text("true"),
    ),
    # Metadata
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
)

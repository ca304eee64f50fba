"""Database models."""

from medibook.models.appointments import appointments
from medibook.models.base import metadata
from medibook.models.doctors import doctors
from medibook.models.earnings import earnings
from medibook.models.patients import patients
from medibook.models.schedule_days import schedule_days

__all__ = [
    "appointments",
    "doctors",
    "earnings",
    "metadata",
    "patients",
    "schedule_days",
]

"""Caller identity schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class CallerRole(str, Enum):
    """Roles issued by the identity provider."""

    DOCTOR = "doctor"
    PATIENT = "patient"
    ADMIN = "admin"


class Caller(BaseModel):
    """Authenticated caller as asserted by the identity provider."""

    id: UUID
    role: CallerRole

    model_config = {"frozen": True}


class Actor(BaseModel):
    """Caller resolved to the doctor or patient profile they act through."""

    user_id: UUID
    role: CallerRole
    profile_id: UUID | None = None

    model_config = {"frozen": True}

    def is_doctor_of(self, appointment: dict) -> bool:
        """Check whether the actor is the clinician of record."""
        return self.role == CallerRole.DOCTOR and appointment["doctor_id"] == self.profile_id

    def is_patient_of(self, appointment: dict) -> bool:
        """Check whether the actor is the requester of record."""
        return self.role == CallerRole.PATIENT and appointment["patient_id"] == self.profile_id

    def is_party_to(self, appointment: dict) -> bool:
        """Check whether the actor is the clinician or requester of record."""
        return self.is_doctor_of(appointment) or self.is_patient_of(appointment)

"""Read access to doctor and patient profiles owned by the profile collaborator."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.exceptions import ForbiddenException, NotFoundException
from medibook.models.doctors import doctors
from medibook.models.patients import patients
from medibook.schemas.auth import Caller, CallerRole


class ProfileService:
    """Service for resolving clinicians, requesters and callers to profiles."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_doctor(self, doctor_id: UUID) -> dict:
        """
        Get a doctor profile by ID.

        Raises:
            NotFoundException: If the doctor does not exist
        """
        result = await self.db.execute(select(doctors).where(doctors.c.id == doctor_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Doctor not found", details={"doctor_id": str(doctor_id)})
        return dict(row)

    async def get_doctor_by_user(self, user_id: UUID) -> dict:
        """Get the doctor profile belonging to an identity."""
        result = await self.db.execute(select(doctors).where(doctors.c.user_id == user_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException(
                "Doctor profile not found", details={"user_id": str(user_id)}
            )
        return dict(row)

    async def get_patient_by_user(self, user_id: UUID) -> dict:
        """Get the patient profile belonging to an identity."""
        result = await self.db.execute(select(patients).where(patients.c.user_id == user_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException(
                "Patient profile not found", details={"user_id": str(user_id)}
            )
        return dict(row)

    async def resolve_caller(self, caller: Caller) -> dict:
        """
        Resolve a caller to the profile that represents them.

        Args:
            caller: Authenticated caller

        Returns:
            Doctor or patient profile row

        Raises:
            ForbiddenException: If the role has no scheduling profile
            NotFoundException: If the caller has no profile yet
        """
        if caller.role == CallerRole.DOCTOR:
            return await self.get_doctor_by_user(caller.id)
        if caller.role == CallerRole.PATIENT:
            return await self.get_patient_by_user(caller.id)
        raise ForbiddenException(
            "Only doctors and patients take part in appointments",
            details={"role": caller.role.value},
        )

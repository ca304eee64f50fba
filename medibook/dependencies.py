"""FastAPI dependencies."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from medibook.core.security import decode_access_token
from medibook.database import get_db
from medibook.schemas.auth import Caller, CallerRole
from medibook.services.scheduling_service import SchedulingService

# Security
security = HTTPBearer()


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_caller(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> Caller:
    """
    Extract the caller id and role from the identity provider's JWT.

    Args:
        credentials: Bearer token credentials

    Returns:
        Authenticated caller

    Raises:
        HTTPException: If token is invalid, expired or lacks a known role
    """
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _credentials_error()

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format")

    try:
        role = CallerRole(payload.get("role"))
    except ValueError:
        raise _credentials_error("Invalid caller role")

    return Caller(id=user_id, role=role)


async def require_doctor(
    caller: Annotated[Caller, Depends(get_current_caller)],
) -> Caller:
    """Allow only clinicians through."""
    if caller.role != CallerRole.DOCTOR:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only doctors can access this resource",
        )
    return caller


def get_scheduling_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SchedulingService:
    """Build the scheduling facade for the request's session."""
    return SchedulingService(db)


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
CurrentDoctor = Annotated[Caller, Depends(require_doctor)]
Scheduling = Annotated[SchedulingService, Depends(get_scheduling_service)]

"""Earning endpoints for clinicians."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from medibook.core import clock
from medibook.dependencies import CurrentDoctor, DatabaseSession
from medibook.schemas.earnings import (
    EarningFilters,
    EarningListResponse,
    EarningResponse,
    EarningsStats,
    EarningType,
)
from medibook.services.earning_service import EarningService
from medibook.services.profile_service import ProfileService

router = APIRouter()


@router.get(
    "/",
    response_model=EarningListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Earnings"],
    summary="List my earnings",
)
async def list_earnings(
    caller: CurrentDoctor,
    db: DatabaseSession,
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    earning_type: EarningType | None = Query(None, alias="type"),
    is_paid: bool | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
) -> EarningListResponse:
    """
    List the authenticated doctor's earnings with a summary.

    Args:
        caller: Authenticated doctor
        db: Database session
        from_date: Earliest posting date
        to_date: Latest posting date
        earning_type: Filter by earning type
        is_paid: Filter by payout state
        page: Page number
        limit: Items per page

    Returns:
        Paginated earnings plus total, paid and pending net sums
    """
    doctor = await ProfileService(db).get_doctor_by_user(caller.id)
    filters = EarningFilters(
        from_date=from_date,
        to_date=to_date,
        type=earning_type,
        is_paid=is_paid,
        page=page,
        limit=limit,
    )
    return await EarningService(db).list_earnings(doctor["id"], filters)


@router.get(
    "/stats",
    response_model=EarningsStats,
    status_code=status.HTTP_200_OK,
    tags=["Earnings"],
    summary="Get earnings statistics",
)
async def earnings_stats(
    caller: CurrentDoctor,
    db: DatabaseSession,
) -> EarningsStats:
    """
    Net earnings for this year, month and week with chart data.

    Args:
        caller: Authenticated doctor
        db: Database session

    Returns:
        Period totals, a twelve-month chart and a per-type chart
    """
    doctor = await ProfileService(db).get_doctor_by_user(caller.id)
    return await EarningService(db).earnings_stats(doctor["id"], clock.today())


@router.get(
    "/{earning_id}",
    response_model=EarningResponse,
    status_code=status.HTTP_200_OK,
    tags=["Earnings"],
    summary="Get earning by ID",
)
async def get_earning(
    earning_id: UUID,
    caller: CurrentDoctor,
    db: DatabaseSession,
) -> EarningResponse:
    """
    Get one of the authenticated doctor's earnings.

    Args:
        earning_id: Earning ID
        caller: Authenticated doctor
        db: Database session

    Returns:
        Earning details
    """
    doctor = await ProfileService(db).get_doctor_by_user(caller.id)
    return await EarningService(db).get_earning(doctor["id"], earning_id)

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import ValidationError
from app.db.session import get_db
from app.models import User
from app.schemas.admin import AdminStatsResponse, AnalyticsSummary, DailyStatsResponse
from app.schemas.application import ApplicationDTO, ApplicationListResponse
from app.schemas.auth import UserOut
from app.schemas.users import UserListResponse
from app.services import admin_stats, applications
from app.services import users as users_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStatsResponse)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    _: User = Depends(deps.require_admin),
) -> AdminStatsResponse:
    return await admin_stats.get_stats(db)


@router.get("/applications", response_model=ApplicationListResponse)
async def list_applications(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(deps.require_admin),
) -> ApplicationListResponse:
    items, total = await applications.list_all_applications(db, limit=limit, offset=offset)
    return ApplicationListResponse(
        items=[ApplicationDTO.model_validate(item) for item in items],
        total=total,
    )


@router.get("/users", response_model=UserListResponse)
async def list_users(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(deps.require_admin),
) -> UserListResponse:
    items, total = await users_service.list_users(db, limit=limit, offset=offset)
    return UserListResponse(items=[UserOut.model_validate(item) for item in items], total=total)


@router.get("/daily-stats", response_model=DailyStatsResponse)
async def daily_stats(
    days: int = Query(default=admin_stats.DEFAULT_DAILY_WINDOW, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(deps.require_admin),
) -> DailyStatsResponse:
    return await admin_stats.daily_stats(db, days)


@router.get("/analytics", response_model=AnalyticsSummary)
async def analytics(
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    _: User = Depends(deps.require_admin),
) -> AnalyticsSummary:
    if start and end and start > end:
        raise ValidationError("start must be before end")
    return await admin_stats.analytics_summary(db, start=start, end=end)

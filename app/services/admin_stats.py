from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.settings import settings
from app.models.analytics_event import AnalyticsEvent
from app.models.application import Application
from app.models.eligibility_check import EligibilityCheck
from app.models.payment import Payment
from app.models.user import User
from app.schemas.admin import (
    AdminStatsResponse,
    AnalyticsSummary,
    ApplicationStats,
    ConversionStats,
    DailyStat,
    DailyStatsResponse,
    EligibilityStats,
    PaymentStats,
)
from app.schemas.common import PaymentStatus

DEFAULT_DAILY_WINDOW = 30


def percentage(numerator: int, denominator: int) -> float:
    """Ratio of two counts as a percentage in [0, 100], one decimal; 0 when the denominator is 0."""
    if denominator <= 0:
        return 0.0
    value = numerator / denominator * 100
    return round(min(100.0, max(0.0, value)), 1)


async def _scalar_int(db: AsyncSession, stmt) -> int:
    result = await db.execute(stmt)
    return int(result.scalar_one_or_none() or 0)


async def _grouped_counts(db: AsyncSession, column) -> dict:
    result = await db.execute(select(column, func.count()).group_by(column))
    return {key: int(count or 0) for key, count in result.all()}


async def get_stats(db: AsyncSession) -> AdminStatsResponse:
    users_total = await _scalar_int(db, select(func.count(User.id)))
    applications_by_status = {
        str(key): count for key, count in (await _grouped_counts(db, Application.status)).items()
    }
    payments_by_status = {
        str(key): count for key, count in (await _grouped_counts(db, Payment.status)).items()
    }
    succeeded_amount = await _scalar_int(
        db,
        select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.status == PaymentStatus.SUCCEEDED.value
        ),
    )
    eligibility_counts = await _grouped_counts(db, EligibilityCheck.is_eligible)

    applications_total = sum(applications_by_status.values())
    payments_succeeded = payments_by_status.get(PaymentStatus.SUCCEEDED.value, 0)
    eligible = eligibility_counts.get(True, 0)
    ineligible = eligibility_counts.get(False, 0)
    eligibility_total = eligible + ineligible

    return AdminStatsResponse(
        users=users_total,
        applications=ApplicationStats(total=applications_total, by_status=applications_by_status),
        payments=PaymentStats(
            succeeded=payments_succeeded,
            total_amount=succeeded_amount,
            currency=settings.service_fee_currency,
            by_status=payments_by_status,
        ),
        eligibility=EligibilityStats(total=eligibility_total, eligible=eligible, ineligible=ineligible),
        conversion=ConversionStats(
            eligibility_to_application=percentage(applications_total, eligibility_total),
            application_to_payment=percentage(payments_succeeded, applications_total),
        ),
    )


async def daily_stats(
    db: AsyncSession,
    days: int = DEFAULT_DAILY_WINDOW,
    *,
    today: date | None = None,
) -> DailyStatsResponse:
    """Analytics events per UTC day over the trailing window, zero-filled."""
    today = today or datetime.now(timezone.utc).date()
    first_day = today - timedelta(days=days - 1)
    since = datetime.combine(first_day, time.min, tzinfo=timezone.utc)

    day_column = func.date(AnalyticsEvent.created_at).label("day")
    stmt = (
        select(day_column, func.count(AnalyticsEvent.id))
        .where(AnalyticsEvent.created_at >= since)
        .group_by(day_column)
        .order_by(day_column)
    )
    result = await db.execute(stmt)
    counts: dict[date, int] = {}
    for day, count in result.all():
        if isinstance(day, datetime):
            day = day.date()
        elif isinstance(day, str):
            day = date.fromisoformat(day)
        counts[day] = int(count or 0)

    items = [
        DailyStat(date=first_day + timedelta(days=offset), count=counts.get(first_day + timedelta(days=offset), 0))
        for offset in range(days)
    ]
    return DailyStatsResponse(days=days, items=items)


async def analytics_summary(
    db: AsyncSession,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> AnalyticsSummary:
    stmt = select(AnalyticsEvent.event_type, func.count(AnalyticsEvent.id)).group_by(
        AnalyticsEvent.event_type
    )
    if start is not None:
        stmt = stmt.where(AnalyticsEvent.created_at >= start)
    if end is not None:
        stmt = stmt.where(AnalyticsEvent.created_at <= end)
    result = await db.execute(stmt)
    by_type = {str(event_type): int(count or 0) for event_type, count in result.all()}
    return AnalyticsSummary(start=start, end=end, total_events=sum(by_type.values()), by_type=by_type)

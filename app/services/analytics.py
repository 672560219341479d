from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.analytics_event import AnalyticsEvent


def track_event(
    db: AsyncSession,
    event_type: str,
    *,
    user_id: UUID | None = None,
    session_id: str | None = None,
    event_data: dict[str, Any] | None = None,
    page_url: str | None = None,
) -> AnalyticsEvent:
    """Stage an analytics event on the caller's session; the caller commits."""
    event = AnalyticsEvent(
        user_id=user_id,
        session_id=session_id,
        event_type=event_type,
        event_data=jsonable_encoder(event_data) if event_data is not None else None,
        page_url=page_url,
    )
    db.add(event)
    return event

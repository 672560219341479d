from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound, Unauthenticated, ValidationError
from app.models.application import Application
from app.models.user import User
from app.schemas.common import ApplicationStatus
from app.services import analytics, notifications

logger = logging.getLogger(__name__)

APPLICATION_NOT_FOUND = "Application not found"

FIRST_STEP = 1
LAST_STEP = 8

# Client-side required fields per form step; steps 1 and 6-8 have none.
STEP_REQUIRED_FIELDS: dict[int, tuple[str, ...]] = {
    2: ("first_name", "last_name", "date_of_birth", "place_of_birth", "gender"),
    3: (
        "passport_number",
        "passport_issuing_country",
        "passport_issue_date",
        "passport_expiry_date",
    ),
    4: ("phone_number", "address_line1", "city", "country"),
    5: ("destination_countries", "planned_arrival_date", "planned_departure_date"),
}

# Patchable but backed by NOT NULL columns.
NON_NULL_FIELDS = frozenset({"current_step", "completed_steps"})

# Fields the owner may patch. Status and timestamps go through dedicated paths.
PATCHABLE_FIELDS = frozenset(
    {
        "current_step",
        "completed_steps",
        "nationality",
        "has_valid_passport",
        "travel_purpose",
        "is_eligible",
        "first_name",
        "last_name",
        "date_of_birth",
        "place_of_birth",
        "gender",
        "passport_number",
        "passport_issuing_country",
        "passport_issue_date",
        "passport_expiry_date",
        "phone_number",
        "address_line1",
        "address_line2",
        "city",
        "postal_code",
        "country",
        "destination_countries",
        "planned_arrival_date",
        "planned_departure_date",
        "accommodation_address",
        "emergency_contact_name",
        "emergency_contact_phone",
        "has_criminal_record",
        "has_visa_denied",
        "has_deportation_history",
    }
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def current_status(application: Application) -> ApplicationStatus:
    return ApplicationStatus.parse(application.status or ApplicationStatus.DRAFT)


def apply_status(application: Application, target: ApplicationStatus, *, now: datetime | None = None) -> bool:
    """Move ``application`` to ``target`` along the status order.

    Returns True when the status changed. Forward jumps are allowed, moving
    backwards or out of ``redirected`` raises ``ValidationError``.
    """
    now = now or _now()
    current = current_status(application)
    if target == current:
        return False
    if current == ApplicationStatus.REDIRECTED:
        raise ValidationError(
            "Application has already been redirected",
            details={"status": current.value, "requested": target.value},
        )
    if target.rank < current.rank:
        raise ValidationError(
            f"Cannot move application status from {current.value} to {target.value}",
            details={"status": current.value, "requested": target.value},
        )
    application.status = target.value
    if target.rank >= ApplicationStatus.FORM_COMPLETED.rank and application.submitted_at is None:
        application.submitted_at = now
    if target == ApplicationStatus.REDIRECTED and application.redirected_at is None:
        application.redirected_at = now
    application.updated_at = now
    return True


def advance_status(application: Application, target: ApplicationStatus) -> bool:
    """Status-guarded forward move used by payment reconciliation; never raises."""
    if current_status(application).rank >= target.rank:
        return False
    return apply_status(application, target)


async def create_application(
    db: AsyncSession,
    user: User | None,
    *,
    nationality: str,
    travel_purpose: str | None = None,
) -> Application:
    if user is None:
        raise Unauthenticated()
    now = _now()
    application = Application(
        user_id=user.id,
        status=ApplicationStatus.DRAFT.value,
        nationality=nationality,
        travel_purpose=travel_purpose,
        current_step=FIRST_STEP,
        completed_steps=[],
        created_at=now,
        updated_at=now,
    )
    db.add(application)
    await db.flush()
    analytics.track_event(
        db,
        "application_started",
        user_id=user.id,
        event_data={"application_id": application.id},
    )
    await notifications.send_application_started(db, user=user, application_id=application.id)
    await db.commit()
    logger.info("Application %s created", application.id, extra={"event": "application_started"})
    return application


async def get_owned_application(db: AsyncSession, application_id: UUID, user: User) -> Application:
    """Load an application owned by ``user``.

    Missing and foreign applications raise the same ``NotFound``.
    """
    application = await db.get(Application, application_id)
    if application is None or application.user_id != user.id:
        raise NotFound(APPLICATION_NOT_FOUND)
    return application


async def list_applications(db: AsyncSession, user: User) -> list[Application]:
    stmt = (
        select(Application)
        .where(Application.user_id == user.id)
        .order_by(Application.created_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_all_applications(
    db: AsyncSession, *, limit: int = 100, offset: int = 0
) -> tuple[list[Application], int]:
    total_result = await db.execute(select(func.count(Application.id)))
    total = int(total_result.scalar_one_or_none() or 0)
    stmt = select(Application).order_by(Application.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def get_draft(db: AsyncSession, user: User) -> Application | None:
    stmt = (
        select(Application)
        .where(
            Application.user_id == user.id,
            Application.status == ApplicationStatus.DRAFT.value,
        )
        .order_by(Application.updated_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def update_application(
    db: AsyncSession,
    application_id: UUID,
    user: User,
    patch: dict[str, Any],
) -> Application:
    application = await get_owned_application(db, application_id, user)

    unknown = set(patch) - PATCHABLE_FIELDS - {"status"}
    if unknown:
        raise ValidationError(
            "Unknown application fields", details={"fields": sorted(unknown)}
        )
    nulled = sorted(field for field in NON_NULL_FIELDS if field in patch and patch[field] is None)
    if nulled:
        raise ValidationError("Fields cannot be null", details={"fields": nulled})

    status_value = patch.get("status")
    target: ApplicationStatus | None = None
    if status_value is not None:
        try:
            target = ApplicationStatus.parse(status_value)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid application status: {status_value}",
                details={"status": status_value},
            ) from exc

    now = _now()
    if target is not None:
        apply_status(application, target, now=now)
    for field, value in patch.items():
        if field == "status":
            continue
        if field == "completed_steps" and value is not None:
            value = sorted({int(step) for step in value})
        setattr(application, field, value)
    application.updated_at = now

    analytics.track_event(
        db,
        "application_updated",
        user_id=user.id,
        event_data={"application_id": application.id, "step": patch.get("current_step")},
    )
    await db.commit()
    return application


async def mark_redirected(db: AsyncSession, application_id: UUID, user: User) -> Application:
    """Hand-off to the official portal. Repeating the call is a no-op."""
    application = await get_owned_application(db, application_id, user)
    if current_status(application) == ApplicationStatus.REDIRECTED:
        return application
    apply_status(application, ApplicationStatus.REDIRECTED)
    analytics.track_event(
        db,
        "application_redirected",
        user_id=user.id,
        event_data={"application_id": application.id},
    )
    await db.commit()
    logger.info("Application %s redirected", application.id, extra={"event": "application_redirected"})
    return application


def validate_step(application: Application, step: int) -> list[str]:
    """Return the required fields still missing for ``step``."""
    if step < FIRST_STEP or step > LAST_STEP:
        raise ValidationError(f"Step must be between {FIRST_STEP} and {LAST_STEP}")
    missing: list[str] = []
    for field in STEP_REQUIRED_FIELDS.get(step, ()):
        value = getattr(application, field, None)
        if value is None or value == "" or value == []:
            missing.append(field)
    return missing

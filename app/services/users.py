from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden, NotFound, Unauthenticated, ValidationError
from app.core.permissions import UserRole
from app.core.security import get_password_hash, verify_password
from app.models.user import User
from app.schemas.users import UserCreate, UserUpdate
from app.services.audit import model_snapshot, record_audit_log

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"
IMMUTABLE_USER_MESSAGE = "The protected super admin account cannot be modified this way"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    stmt = select(User).where(func.lower(User.email) == _normalize_email(email))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.hashed_password):
        raise Unauthenticated("Invalid credentials")
    if not user.is_active:
        raise Unauthenticated("Inactive user")
    user.last_signed_in = _now()
    await db.commit()
    return user


async def list_users(db: AsyncSession, *, limit: int = 100, offset: int = 0) -> tuple[list[User], int]:
    total_result = await db.execute(select(func.count(User.id)))
    total = int(total_result.scalar_one_or_none() or 0)
    stmt = select(User).order_by(User.created_at.desc()).offset(offset).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


def _hash_or_422(password: str) -> str:
    try:
        return get_password_hash(password)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"field": "password"}) from exc


async def create_user(db: AsyncSession, actor: User, payload: UserCreate) -> User:
    email = _normalize_email(payload.email)
    if await get_user_by_email(db, email) is not None:
        raise ValidationError("Email already registered", details={"field": "email"})
    now = _now()
    user = User(
        email=email,
        name=payload.name,
        hashed_password=_hash_or_422(payload.password),
        login_method="local",
        role=UserRole.parse(payload.role).value,
        is_active=True,
        is_immutable=False,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()
    record_audit_log(
        db,
        actor_id=actor.id,
        action="user.create",
        resource_type="user",
        resource_id=str(user.id),
        new_value=model_snapshot(user),
    )
    await db.commit()
    return user


async def _get_user_or_404(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound(USER_NOT_FOUND)
    return user


def _guard_immutable(target: User, changes: dict) -> None:
    if not target.is_immutable:
        return
    role = changes.get("role")
    if role is not None and UserRole.parse(role) != UserRole.SUPER_ADMIN:
        raise Forbidden(IMMUTABLE_USER_MESSAGE, details={"field": "role"})
    if changes.get("is_active") is False:
        raise Forbidden(IMMUTABLE_USER_MESSAGE, details={"field": "is_active"})
    email = changes.get("email")
    if email is not None and _normalize_email(email) != _normalize_email(target.email):
        raise Forbidden(IMMUTABLE_USER_MESSAGE, details={"field": "email"})


async def update_user(db: AsyncSession, actor: User, user_id: UUID, payload: UserUpdate) -> User:
    target = await _get_user_or_404(db, user_id)
    changes = payload.model_dump(exclude_unset=True)
    _guard_immutable(target, changes)

    before = model_snapshot(target)
    if "email" in changes and changes["email"] is not None:
        email = _normalize_email(changes["email"])
        if email != _normalize_email(target.email):
            existing = await get_user_by_email(db, email)
            if existing is not None and existing.id != target.id:
                raise ValidationError("Email already registered", details={"field": "email"})
        target.email = email
    if "name" in changes:
        target.name = changes["name"]
    if changes.get("role") is not None:
        target.role = UserRole.parse(changes["role"]).value
    if changes.get("is_active") is not None:
        target.is_active = changes["is_active"]
    if changes.get("password"):
        target.hashed_password = _hash_or_422(changes["password"])
    target.updated_at = _now()

    record_audit_log(
        db,
        actor_id=actor.id,
        action="user.update",
        resource_type="user",
        resource_id=str(target.id),
        old_value=before,
        new_value=model_snapshot(target),
    )
    await db.commit()
    return target


async def delete_user(db: AsyncSession, actor: User, user_id: UUID) -> None:
    target = await _get_user_or_404(db, user_id)
    if target.is_immutable:
        raise Forbidden(IMMUTABLE_USER_MESSAGE)
    if target.id == actor.id:
        raise Forbidden("You cannot delete your own account")
    record_audit_log(
        db,
        actor_id=actor.id,
        action="user.delete",
        resource_type="user",
        resource_id=str(target.id),
        old_value=model_snapshot(target),
    )
    await db.delete(target)
    await db.commit()
    logger.info("User %s deleted by %s", target.id, actor.id)

from typing import Optional
from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import context
from app.core.errors import Forbidden, Unauthenticated
from app.core.permissions import UserRole
from app.core.security import decode_token
from app.db.session import get_db
from app.models import User
from app.services.stripe_gateway import StripeGateway, get_stripe_gateway

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_payment_gateway() -> StripeGateway:
    return get_stripe_gateway()


async def _load_user(token: str, db: AsyncSession) -> User:
    try:
        payload = decode_token(token, expected_type="access")
    except ValueError as exc:
        raise Unauthenticated(str(exc)) from exc
    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError as exc:
        raise Unauthenticated("Invalid token") from exc

    user = await db.get(User, user_id)
    if not user:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Unauthenticated("Inactive user")
    context.set_user_id(str(user.id))
    return user


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    return await _load_user(token, db)


async def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> Optional[User]:
    """Resolve the caller when a valid bearer token is present, else None."""
    if not token:
        return None
    try:
        return await _load_user(token, db)
    except Unauthenticated:
        return None


async def require_authenticated_user(current_user: User = Depends(get_current_user)) -> User:
    """Simple guard to require an authenticated user (no role checks)."""
    return current_user


def require_role(required: UserRole):
    async def dependency(current_user: User = Depends(require_authenticated_user)) -> User:
        role = UserRole.parse(getattr(current_user, "role", None))
        if not role.satisfies(required):
            raise Forbidden(
                "Admin access required" if required == UserRole.ADMIN else "Super admin access required"
            )
        return current_user

    return dependency


require_admin = require_role(UserRole.ADMIN)
require_super_admin = require_role(UserRole.SUPER_ADMIN)

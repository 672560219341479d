import asyncio
import logging

from sqlalchemy import select

from app.core.permissions import UserRole
from app.core.security import get_password_hash
from app.core.settings import settings
from app.db.session import AsyncSessionLocal
from app.models.user import User

logger = logging.getLogger(__name__)


async def seed_super_admin(session) -> User:
    """Create the protected super admin account if it does not exist yet."""
    email = settings.seed_super_admin_email.strip().lower()
    stmt = select(User).where(User.email == email)
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()
    if user:
        logger.info("Super admin already exists")
        return user

    user = User(
        email=email,
        name=settings.seed_super_admin_name,
        hashed_password=get_password_hash(settings.seed_super_admin_password),
        login_method="local",
        role=UserRole.SUPER_ADMIN.value,
        is_active=True,
        is_immutable=True,
    )
    session.add(user)
    await session.commit()
    logger.info("Super admin created")
    return user


async def init_db() -> None:
    async with AsyncSessionLocal() as session:
        await seed_super_admin(session)


if __name__ == "__main__":
    asyncio.run(init_db())

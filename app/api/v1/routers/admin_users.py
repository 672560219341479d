from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.db.session import get_db
from app.models import User
from app.schemas.auth import UserOut
from app.schemas.users import UserCreate, UserUpdate
from app.services import users as users_service

router = APIRouter(prefix="/admin/users", tags=["admin-users"])


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(deps.require_super_admin),
) -> UserOut:
    user = await users_service.create_user(db, actor, payload)
    return UserOut.model_validate(user)


@router.patch("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: UUID,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(deps.require_super_admin),
) -> UserOut:
    user = await users_service.update_user(db, actor, user_id, payload)
    return UserOut.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: User = Depends(deps.require_super_admin),
) -> None:
    await users_service.delete_user(db, actor, user_id)

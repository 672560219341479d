from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.core.permissions import UserRole
from app.schemas.auth import UserOut


class UserCreate(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=255)
    password: str = Field(min_length=1)
    role: UserRole = UserRole.USER


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: Optional[EmailStr] = None
    name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    password: Optional[str] = None


class UserListResponse(BaseModel):
    items: list[UserOut]
    total: int

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

from app.core.permissions import UserRole


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: EmailStr
    name: Optional[str] = None
    role: UserRole
    is_active: bool
    is_immutable: bool = False
    login_method: Optional[str] = None
    last_signed_in: Optional[datetime] = None
    created_at: Optional[datetime] = None

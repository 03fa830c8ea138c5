## app/schemas/user.py
from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, EmailStr, Field

from app.core.roles import normalize_platform_role


def _canonical_platform_role(v):
    # legacy spellings ("Super Admin", "superadmin", ...) fold to the canonical value
    if v is None:
        return v
    return normalize_platform_role(v)


PlatformRole = Annotated[str, BeforeValidator(_canonical_platform_role)]


class UserOut(BaseModel):
    uid: str
    email: EmailStr
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    time_zone: Optional[str] = None
    email_verified: bool
    role: str
    must_change_password: bool = False
    created_at: datetime
    created_by: Optional[str] = None

    class Config:
        from_attributes = True


class AdminUserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    username: Optional[str] = Field(default=None, max_length=100)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    time_zone: Optional[str] = None
    role: PlatformRole = "none"
    email_verified: bool = False


class AdminUserUpdate(BaseModel):
    role: Optional[PlatformRole] = None
    email_verified: Optional[bool] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    time_zone: Optional[str] = None


class PlatformRoleUpdate(BaseModel):
    role: PlatformRole

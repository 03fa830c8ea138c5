from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class InviteCreate(BaseModel):
    email: EmailStr
    company_id: str = Field(min_length=1)
    role: Literal["member", "creator"] = "member"


class InviteOut(BaseModel):
    invite_id: str
    company_id: str
    email: EmailStr
    invited_by: str
    invited_at: datetime
    status: str
    accepted_at: Optional[datetime] = None
    role: str

    class Config:
        from_attributes = True  # pydantic v2: orm_mode replacement


class PendingInviteOut(InviteOut):
    company_name: Optional[str] = None

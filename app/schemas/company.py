# app/schemas/company.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class CompanyMemberOut(BaseModel):
    uid: str
    email: str
    name: Optional[str] = None
    role: str
    joined_at: datetime

    class Config:
        from_attributes = True


class CompanyOut(BaseModel):
    company_id: str
    name: str
    description: Optional[str] = None
    created_by: str
    created_at: datetime
    members: List[CompanyMemberOut] = []

    class Config:
        from_attributes = True


class MyCompanyOut(CompanyOut):
    # caller's own ledger entry for this company
    my_role: Optional[str] = None
    my_status: Optional[str] = None


class MemberOut(BaseModel):
    """Member list row joined with its ledger entry."""

    uid: str
    email: str
    name: Optional[str] = None
    role: str
    status: str
    active: bool
    joined_at: datetime
    last_login: Optional[datetime] = None
    invited_by: Optional[str] = None


class MemberRoleUpdate(BaseModel):
    role: Literal["member", "creator", "admin"]


class MemberStatusUpdate(BaseModel):
    status: Literal["accepted", "inactive"]


class MemberDelete(BaseModel):
    uid: str = Field(min_length=1)


class PermissionsOut(BaseModel):
    role: Optional[str] = None
    can_invite: bool
    can_view_audit_log: bool
    can_access_admin_tools: bool
    can_access_creation_tools: bool
    can_access_content_tools: bool
    can_access_team_chat: bool

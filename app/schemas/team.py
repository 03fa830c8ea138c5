# app/schemas/team.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class TeamCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class TeamMemberOut(BaseModel):
    uid: str
    email: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: str
    joined_at: datetime

    class Config:
        from_attributes = True


class TeamOut(BaseModel):
    team_id: str
    name: str
    description: Optional[str] = None
    created_by: str
    created_at: datetime
    members: List[TeamMemberOut] = []

    class Config:
        from_attributes = True

# app/schemas/action.py
from typing import Optional

from pydantic import BaseModel, Field


class ActionCreate(BaseModel):
    type: str = Field(min_length=1, max_length=100)
    collection: str = Field(min_length=1, max_length=255)
    read_type: str = Field(default="docChange", max_length=50)
    uid: str = Field(min_length=1)
    company_id: str = Field(min_length=1)
    count: int = 0
    host: str = Field(min_length=1, max_length=255)
    doc_id: str = Field(min_length=1, max_length=255)
    created: Optional[int] = Field(default=None, ge=0)  # epoch millis; now when omitted


class ActionUpdate(BaseModel):
    type: Optional[str] = Field(default=None, max_length=100)
    collection: Optional[str] = Field(default=None, max_length=255)
    read_type: Optional[str] = Field(default=None, max_length=50)
    count: Optional[int] = None
    host: Optional[str] = Field(default=None, max_length=255)
    doc_id: Optional[str] = Field(default=None, max_length=255)
    removed: Optional[bool] = None


class ActionOut(BaseModel):
    id: int
    type: str
    collection: str
    read_type: str
    uid: str
    company_id: str
    count: int
    host: str
    doc_id: str
    created: int
    removed: bool

    class Config:
        from_attributes = True

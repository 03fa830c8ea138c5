# app/schemas/auth.py
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.schemas.user import UserOut


class SignupIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    username: Optional[str] = Field(default=None, max_length=100)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    time_zone: Optional[str] = None


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class EmailIn(BaseModel):
    email: EmailStr


class ValidateEmailIn(BaseModel):
    email: EmailStr
    code: str = Field(min_length=4, max_length=12)


class ResetPasswordIn(BaseModel):
    email: EmailStr
    code: str = Field(min_length=4, max_length=12)
    new_password: str = Field(min_length=6)


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)

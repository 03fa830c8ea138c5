# app/models/verification_code.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import validates

from app.core.clock import utcnow
from app.db.base import Base

PURPOSE_SIGNUP = "signup"
PURPOSE_PASSWORD_RESET = "password_reset"
CODE_PURPOSES = (PURPOSE_SIGNUP, PURPOSE_PASSWORD_RESET)


class VerificationCode(Base):
    __tablename__ = "verification_codes"

    id = Column(Integer, primary_key=True)

    email = Column(String(255), nullable=False)
    code = Column(String(12), nullable=False)
    purpose = Column(String(20), nullable=False, default=PURPOSE_SIGNUP)

    # first-signup flow only: generated password, cleared once consumed
    password = Column(String, nullable=True)
    hashed_password = Column(String, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=False, index=True)  # purged by the scheduler job
    verified = Column(Boolean, nullable=False, server_default=text("0"), default=False)
    attempts = Column(Integer, nullable=False, server_default=text("0"), default=0)

    __table_args__ = (
        CheckConstraint(f"purpose IN {CODE_PURPOSES}", name="ck_verification_codes_purpose_allowed"),
        Index("ix_verification_codes_email_code", "email", "code"),
    )

    @validates("email")
    def _fold_email(self, key, value):
        return (value or "").strip().lower()

import uuid

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Boolean,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import validates

from app.core.clock import utcnow
from app.core.roles import PLATFORM_NONE, PLATFORM_ROLES, normalize_platform_role
from app.db.base import Base


def _new_uid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Identity record: one per person, independent of any tenant."""

    __tablename__ = "users"

    uid = Column(String(36), primary_key=True, default=_new_uid)

    # Credentials
    email = Column(String(255), unique=True, index=True, nullable=False)
    # NULL usernames are allowed repeatedly (sparse uniqueness)
    username = Column(String(100), unique=True, index=True, nullable=True)
    hashed_password = Column(String, nullable=False)

    # Profile
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    time_zone = Column(String(64), nullable=True)

    # Verification / platform role
    email_verified = Column(Boolean, nullable=False, server_default=text("0"), default=False)
    role = Column(String(20), nullable=False, default=PLATFORM_NONE, index=True)
    must_change_password = Column(Boolean, nullable=False, server_default=text("0"), default=False)

    removed = Column(Boolean, nullable=False, server_default=text("0"), default=False)

    # Creation metadata
    created_at = Column(DateTime, nullable=False, default=utcnow)
    created_by = Column(String(36), nullable=True)

    __table_args__ = (
        CheckConstraint(f"role IN {PLATFORM_ROLES}", name="ck_users_role_allowed"),
    )

    @validates("email")
    def _fold_email(self, key, value):
        return (value or "").strip().lower()

    @validates("username")
    def _fold_username(self, key, value):
        if value is None:
            return None
        value = value.strip().lower()
        return value or None

    @validates("role")
    def _normalize_role(self, key, value):
        return normalize_platform_role(value)

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts)

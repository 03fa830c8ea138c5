import uuid

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    Boolean,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship, validates

from app.core.clock import utcnow
from app.core.roles import TENANT_ROLES, normalize_tenant_role
from app.db.base import Base


class Team(Base):
    """Lightweight working group. No ledger and no invites, unlike companies."""

    __tablename__ = "teams"

    team_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    created_by = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    removed = Column(Boolean, nullable=False, server_default=text("0"), default=False)

    members = relationship(
        "TeamMember",
        back_populates="team",
        order_by="TeamMember.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True)
    team_id = Column(
        String(36),
        ForeignKey("teams.team_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uid = Column(String(36), nullable=False, index=True)

    email = Column(String(255), nullable=False)
    username = Column(String(100), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False)
    joined_at = Column(DateTime, nullable=False, default=utcnow)

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "uid", name="uq_team_members_team_uid"),
        CheckConstraint(f"role IN {TENANT_ROLES}", name="ck_team_members_role_allowed"),
    )

    @validates("role")
    def _normalize_role(self, key, value):
        return normalize_tenant_role(value)

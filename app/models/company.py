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


def _new_company_id() -> str:
    return str(uuid.uuid4())


class Company(Base):
    __tablename__ = "companies"

    company_id = Column(String(36), primary_key=True, default=_new_company_id)

    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Recorded once at creation; never rewritten by member changes
    created_by = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    removed = Column(Boolean, nullable=False, server_default=text("0"), default=False)

    members = relationship(
        "CompanyMember",
        back_populates="company",
        order_by="CompanyMember.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class CompanyMember(Base):
    """
    The tenant's own ordered member list.
    Written in the same transaction as the matching creds row.
    """

    __tablename__ = "company_members"

    id = Column(Integer, primary_key=True)
    company_id = Column(
        String(36),
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    uid = Column(String(36), nullable=False, index=True)

    email = Column(String(255), nullable=False)
    name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False)
    joined_at = Column(DateTime, nullable=False, default=utcnow)

    # insertion order within the company
    position = Column(Integer, nullable=False, default=0)

    company = relationship("Company", back_populates="members")

    __table_args__ = (
        UniqueConstraint("company_id", "uid", name="uq_company_members_company_uid"),
        CheckConstraint(f"role IN {TENANT_ROLES}", name="ck_company_members_role_allowed"),
    )

    @validates("role")
    def _normalize_role(self, key, value):
        return normalize_tenant_role(value)

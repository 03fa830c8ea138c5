# app/models/creds.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    JSON,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    Index,
    text,
)
from sqlalchemy.orm import validates

from app.core.clock import utcnow
from app.core.roles import (
    CREDS_ACCEPTED,
    CREDS_STATUSES,
    TENANT_MEMBER,
    TENANT_ROLES,
    normalize_tenant_role,
)
from app.db.base import Base


class Creds(Base):
    """
    Membership ledger: one row per (user, company).
    Authoritative for "what role does this user have in this tenant".
    """

    __tablename__ = "creds"

    id = Column(Integer, primary_key=True)

    uid = Column(String(36), ForeignKey("users.uid", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(
        String(36),
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # invited | accepted | inactive | removed
    status = Column(String(20), nullable=False, default=CREDS_ACCEPTED)
    # member | creator | admin
    role = Column(String(20), nullable=False, default=TENANT_MEMBER)

    invited_by = Column(String(36), nullable=True)
    start_date = Column(DateTime, nullable=False, default=utcnow)
    last_login = Column(DateTime, nullable=True)

    # Denormalized for display
    email = Column(String(255), nullable=True)
    name = Column(String(255), nullable=True)

    active = Column(Boolean, nullable=False, server_default=text("1"), default=True)
    # per-feature switches, open map
    enabled = Column(JSON, nullable=False, default=dict)

    __table_args__ = (
        UniqueConstraint("uid", "company_id", name="uq_creds_uid_company"),
        CheckConstraint(f"status IN {CREDS_STATUSES}", name="ck_creds_status_allowed"),
        CheckConstraint(f"role IN {TENANT_ROLES}", name="ck_creds_role_allowed"),
        Index("ix_creds_company_status", "company_id", "status"),
    )

    @validates("role")
    def _normalize_role(self, key, value):
        return normalize_tenant_role(value)

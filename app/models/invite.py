import uuid

from sqlalchemy import Column, String, ForeignKey, DateTime, CheckConstraint, Index
from sqlalchemy.orm import validates

from app.core.clock import utcnow
from app.core.roles import INVITABLE_ROLES, INVITE_PENDING, INVITE_STATUSES, TENANT_MEMBER
from app.db.base import Base


def _new_invite_id() -> str:
    return str(uuid.uuid4())


class Invite(Base):
    __tablename__ = "invites"

    invite_id = Column(String(36), primary_key=True, default=_new_invite_id)
    company_id = Column(
        String(36),
        ForeignKey("companies.company_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False, index=True)
    invited_by = Column(String(36), nullable=False)
    invited_at = Column(DateTime, nullable=False, default=utcnow)

    status = Column(String(20), nullable=False, default=INVITE_PENDING)  # pending / accepted / declined
    accepted_at = Column(DateTime, nullable=True)

    role = Column(String(20), nullable=False, default=TENANT_MEMBER)  # member / creator

    __table_args__ = (
        CheckConstraint(f"status IN {INVITE_STATUSES}", name="ck_invites_status_allowed"),
        CheckConstraint(f"role IN {INVITABLE_ROLES}", name="ck_invites_role_allowed"),
        Index("ix_invites_email_status", "email", "status"),
    )

    @validates("email")
    def _fold_email(self, key, value):
        return (value or "").strip().lower()

# app/models/action.py
from sqlalchemy import Column, Integer, BigInteger, String, Boolean, Index, text

from app.core.clock import now_millis
from app.db.base import Base


class Action(Base):
    """Usage ledger event. Append-oriented; edits are administrative only."""

    __tablename__ = "actions"

    id = Column(Integer, primary_key=True, autoincrement=True)

    type = Column(String(100), nullable=False, index=True)
    collection = Column(String(255), nullable=False, index=True)
    read_type = Column(String(50), nullable=False, default="docChange")

    uid = Column(String(36), nullable=False, index=True)
    company_id = Column(String(36), nullable=False)

    count = Column(Integer, nullable=False, server_default=text("0"), default=0)
    host = Column(String(255), nullable=False)
    doc_id = Column(String(255), nullable=False)

    # epoch milliseconds
    created = Column(BigInteger, nullable=False, default=now_millis, index=True)
    removed = Column(Boolean, nullable=False, server_default=text("0"), default=False)

    __table_args__ = (
        # billing scans: company + time window
        Index("ix_actions_company_created", "company_id", "created"),
    )

# app/crud/creds.py
"""
Membership ledger writes.

Every helper here keeps the ledger row and the company's own member list
in step, and leaves the commit to the caller so both land together.
"""
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.roles import CREDS_ACCEPTED, CREDS_REMOVED
from app.models.company import Company, CompanyMember
from app.models.creds import Creds
from app.models.user import User


def get_creds(db: Session, uid: str, company_id: str) -> Optional[Creds]:
    return (
        db.query(Creds)
        .filter(Creds.uid == uid, Creds.company_id == company_id)
        .first()
    )


def list_creds_for_user(db: Session, uid: str) -> List[Creds]:
    return (
        db.query(Creds)
        .filter(Creds.uid == uid, Creds.status != CREDS_REMOVED)
        .all()
    )


def get_member(db: Session, company_id: str, uid: str) -> Optional[CompanyMember]:
    return (
        db.query(CompanyMember)
        .filter(CompanyMember.company_id == company_id, CompanyMember.uid == uid)
        .first()
    )


def _next_position(db: Session, company_id: str) -> int:
    current = (
        db.query(func.max(CompanyMember.position))
        .filter(CompanyMember.company_id == company_id)
        .scalar()
    )
    return 0 if current is None else current + 1


def grant_membership(
    db: Session,
    company: Company,
    user: User,
    role: str,
    invited_by: Optional[str] = None,
) -> Creds:
    """
    Put (user, company) into the accepted state with `role`.
    Reuses an existing ledger row or member entry instead of duplicating it.
    """
    now = utcnow()
    name = user.full_name or None

    creds = get_creds(db, user.uid, company.company_id)
    if creds is None:
        creds = Creds(
            uid=user.uid,
            company_id=company.company_id,
            invited_by=invited_by,
            start_date=now,
            enabled={},
        )
        db.add(creds)
    creds.status = CREDS_ACCEPTED
    creds.role = role
    creds.active = True
    creds.email = user.email
    creds.name = name

    member = get_member(db, company.company_id, user.uid)
    if member is None:
        member = CompanyMember(
            company_id=company.company_id,
            uid=user.uid,
            joined_at=now,
            position=_next_position(db, company.company_id),
        )
        db.add(member)
    member.email = user.email
    member.name = name
    member.role = role

    db.flush()
    return creds


def set_membership_role(db: Session, creds: Creds, role: str) -> None:
    creds.role = role
    member = get_member(db, creds.company_id, creds.uid)
    if member is not None:
        member.role = role


def revoke_membership(db: Session, company_id: str, uid: str) -> None:
    """Drop the ledger row and the member entry. Terminal state: nothing is kept."""
    db.query(Creds).filter(Creds.uid == uid, Creds.company_id == company_id).delete(
        synchronize_session=False
    )
    db.query(CompanyMember).filter(
        CompanyMember.company_id == company_id, CompanyMember.uid == uid
    ).delete(synchronize_session=False)


def touch_last_login(db: Session, uid: str) -> None:
    db.query(Creds).filter(Creds.uid == uid).update(
        {Creds.last_login: utcnow()}, synchronize_session=False
    )

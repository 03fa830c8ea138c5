# app/crud/company.py
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.errors import AuthorizationError, InvariantViolation, NotFoundError
from app.core.rbac import ensure_member, ensure_tenant_admin
from app.core.roles import (
    CREDS_ACCEPTED,
    CREDS_INACTIVE,
    CREDS_REMOVED,
    INVITE_PENDING,
    PLATFORM_SUPER_ADMIN,
    TENANT_ADMIN,
)
from app.crud.creds import get_creds, get_member, grant_membership, revoke_membership, set_membership_role
from app.models.company import Company, CompanyMember
from app.models.creds import Creds
from app.models.invite import Invite
from app.models.user import User
from app.schemas.company import CompanyCreate

log = logging.getLogger("app.companies")


# --- lookups -----------------------------------------------------------------

def get_company(db: Session, company_id: str) -> Optional[Company]:
    company = db.get(Company, company_id)
    if company is None or company.removed:
        return None
    return company


def get_company_or_404(db: Session, company_id: str) -> Company:
    company = get_company(db, company_id)
    if not company:
        raise NotFoundError("Company not found.", code="COMPANY_NOT_FOUND")
    return company


def list_companies_for_user(db: Session, uid: str) -> List[Tuple[Company, Optional[Creds]]]:
    """Live companies the user created or holds a ledger row in, with that row."""
    rows = (
        db.query(Company, Creds)
        .outerjoin(
            Creds,
            (Creds.company_id == Company.company_id) & (Creds.uid == uid),
        )
        .filter(
            Company.removed.is_(False),
            or_(Company.created_by == uid, Creds.id.isnot(None)),
        )
        .filter(or_(Creds.id.is_(None), Creds.status != CREDS_REMOVED))
        .order_by(Company.created_at.asc())
        .all()
    )
    return rows


# --- create ------------------------------------------------------------------

def create_company(db: Session, user: User, data: CompanyCreate) -> Company:
    """Tenant, creator ledger row (admin, accepted) and member entry in one commit."""
    company = Company(
        name=data.name.strip(),
        description=data.description,
        created_by=user.uid,
    )
    db.add(company)
    db.flush()

    grant_membership(db, company, user, TENANT_ADMIN, invited_by=user.uid)
    db.commit()
    db.refresh(company)
    log.info("Company %s created by uid=%s", company.company_id, user.uid)
    return company


# --- members -----------------------------------------------------------------

def list_members(db: Session, actor: User, company_id: str) -> List[Dict[str, Any]]:
    """Member list joined with the ledger. Members of the company only."""
    get_company_or_404(db, company_id)
    ensure_member(db, actor, company_id)

    rows = (
        db.query(CompanyMember, Creds)
        .outerjoin(
            Creds,
            (Creds.company_id == CompanyMember.company_id) & (Creds.uid == CompanyMember.uid),
        )
        .filter(CompanyMember.company_id == company_id)
        .order_by(CompanyMember.position.asc())
        .all()
    )
    out = []
    for member, creds in rows:
        out.append(
            {
                "uid": member.uid,
                "email": member.email,
                "name": member.name,
                # ledger wins when both are present
                "role": creds.role if creds else member.role,
                "status": creds.status if creds else CREDS_ACCEPTED,
                "active": creds.active if creds else True,
                "joined_at": member.joined_at,
                "last_login": creds.last_login if creds else None,
                "invited_by": creds.invited_by if creds else None,
            }
        )
    return out


def _target_creds_or_404(db: Session, company_id: str, uid: str) -> Creds:
    creds = get_creds(db, uid, company_id)
    if creds is None or creds.status == CREDS_REMOVED:
        raise NotFoundError("Member not found.", code="MEMBER_NOT_FOUND")
    return creds


def update_member_role(db: Session, actor: User, company_id: str, uid: str, role: str) -> Creds:
    get_company_or_404(db, company_id)
    ensure_tenant_admin(db, actor, company_id)

    if uid == actor.uid and role != TENANT_ADMIN:
        raise InvariantViolation("Admins cannot demote themselves.", code="SELF_DEMOTION")

    creds = _target_creds_or_404(db, company_id, uid)
    set_membership_role(db, creds, role)
    db.commit()
    db.refresh(creds)
    log.info("Role of uid=%s in %s set to %s by uid=%s", uid, company_id, role, actor.uid)
    return creds


def set_member_status(db: Session, actor: User, company_id: str, uid: str, status: str) -> Creds:
    """Toggle a member between accepted and inactive."""
    get_company_or_404(db, company_id)
    ensure_tenant_admin(db, actor, company_id)

    if uid == actor.uid:
        raise InvariantViolation("Admins cannot deactivate themselves.", code="SELF_DEACTIVATION")

    creds = _target_creds_or_404(db, company_id, uid)
    if creds.status not in (CREDS_ACCEPTED, CREDS_INACTIVE):
        raise InvariantViolation(
            f"Cannot change status of a membership in state {creds.status}.",
            code="INVALID_TRANSITION",
        )
    creds.status = status
    creds.active = status == CREDS_ACCEPTED
    db.commit()
    db.refresh(creds)
    return creds


def _is_placeholder(user: Optional[User]) -> bool:
    return (
        user is not None
        and user.role != PLATFORM_SUPER_ADMIN
        and not user.email_verified
        and user.must_change_password
    )


def remove_member(db: Session, actor: User, company_id: str, uid: str) -> Dict[str, Any]:
    """
    Remove (user, company) entirely: ledger row, member entry, pending invites.
    An invite placeholder that never verified and has no other memberships is
    purged as well. Real accounts and super admins are never deleted here.
    """
    get_company_or_404(db, company_id)
    ensure_tenant_admin(db, actor, company_id)

    if uid == actor.uid:
        raise InvariantViolation("Admins cannot remove themselves.", code="SELF_REMOVAL")

    creds = get_creds(db, uid, company_id)
    member = get_member(db, company_id, uid)
    if creds is None and member is None:
        raise NotFoundError("Member not found.", code="MEMBER_NOT_FOUND")

    target = db.get(User, uid)
    email = target.email if target else (member.email if member else creds.email)

    revoke_membership(db, company_id, uid)
    if email:
        db.query(Invite).filter(
            Invite.company_id == company_id,
            Invite.email == email,
            Invite.status == INVITE_PENDING,
        ).delete(synchronize_session=False)

    identity_purged = False
    if _is_placeholder(target):
        others = db.query(Creds.id).filter(Creds.uid == uid, Creds.company_id != company_id).first()
        if others is None:
            db.delete(target)
            identity_purged = True

    db.commit()
    log.info(
        "uid=%s removed from %s by uid=%s (identity purged: %s)",
        uid,
        company_id,
        actor.uid,
        identity_purged,
    )
    return {"uid": uid, "company_id": company_id, "identity_purged": identity_purged}


def ensure_company_visible(db: Session, actor: User, company_id: str) -> Company:
    """404 for unknown companies, 403 for companies the caller is not part of."""
    company = get_company_or_404(db, company_id)
    if company.created_by == actor.uid:
        return company
    creds = get_creds(db, actor.uid, company_id)
    if creds is None or creds.status == CREDS_REMOVED:
        raise AuthorizationError("Not a member of this company.", code="NOT_A_MEMBER")
    return company

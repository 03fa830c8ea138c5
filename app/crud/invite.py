import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError
from app.core.rbac import ensure_can_invite, ensure_tenant_admin
from app.core.roles import CREDS_ACCEPTED, INVITE_ACCEPTED, INVITE_DECLINED, INVITE_PENDING
from app.core.security import generate_password
from app.crud.company import get_company, get_company_or_404
from app.crud.creds import get_creds, grant_membership
from app.crud.user import build_user, get_user_by_email
from app.models.company import Company
from app.models.creds import Creds
from app.models.invite import Invite
from app.models.user import User
from app.schemas.invite import InviteCreate

log = logging.getLogger("app.invites")


def get_invite_or_404(db: Session, invite_id: str) -> Invite:
    invite = db.get(Invite, invite_id)
    if not invite:
        raise NotFoundError("Invite not found.", code="INVITE_NOT_FOUND")
    return invite


def find_pending(db: Session, email: str, company_id: str) -> Optional[Invite]:
    return (
        db.query(Invite)
        .filter(
            Invite.email == (email or "").strip().lower(),
            Invite.company_id == company_id,
            Invite.status == INVITE_PENDING,
        )
        .first()
    )


def _placeholder_identity(db: Session, email: str, invited_by: str) -> User:
    """
    Identity for an invitee who has never signed up.
    Random password, unverified, and held until the password is rotated.
    """
    return build_user(
        db,
        email=email,
        password=generate_password(),
        email_verified=False,
        must_change_password=True,
        created_by=invited_by,
    )


def create_invite(db: Session, actor: User, data: InviteCreate) -> Tuple[Invite, Company, bool]:
    """
    Create a pending invite.
    Returns (invite, company, placeholder_created).
    """
    company = get_company_or_404(db, data.company_id)
    ensure_can_invite(db, actor, company.company_id)

    email = data.email.strip().lower()

    existing = get_user_by_email(db, email)
    if existing is not None:
        creds = get_creds(db, existing.uid, company.company_id)
        if creds is not None and creds.status == CREDS_ACCEPTED:
            raise ConflictError("User is already a member of this company.", code="ALREADY_MEMBER")

    if find_pending(db, email, company.company_id):
        raise ConflictError("An invite has already been sent to this email.", code="INVITE_EXISTS")

    placeholder_created = False
    if existing is None:
        _placeholder_identity(db, email, actor.uid)
        placeholder_created = True

    invite = Invite(
        company_id=company.company_id,
        email=email,
        invited_by=actor.uid,
        role=data.role,
        status=INVITE_PENDING,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)
    log.info(
        "Invite %s for %s to %s as %s (placeholder: %s)",
        invite.invite_id,
        email,
        company.company_id,
        invite.role,
        placeholder_created,
    )
    return invite, company, placeholder_created


def list_pending_for_email(db: Session, email: str) -> List[Tuple[Invite, Optional[Company]]]:
    invites = (
        db.query(Invite)
        .filter(Invite.email == (email or "").strip().lower(), Invite.status == INVITE_PENDING)
        .order_by(Invite.invited_at.desc())
        .all()
    )
    return [(inv, get_company(db, inv.company_id)) for inv in invites]


def list_company_invites(db: Session, actor: User, company_id: str) -> List[Invite]:
    get_company_or_404(db, company_id)
    ensure_tenant_admin(db, actor, company_id)
    return (
        db.query(Invite)
        .filter(Invite.company_id == company_id)
        .order_by(Invite.invited_at.desc())
        .all()
    )


def _check_ownership(invite: Invite, caller: Optional[User], allow_anonymous: bool) -> None:
    if caller is None:
        if not allow_anonymous:
            raise AuthenticationError("Authentication required.", code="AUTH_REQUIRED")
        # anonymous callers are trusted on the invite's own email
        return
    if (caller.email or "").lower() != invite.email.lower():
        raise AuthorizationError("This invite is not for your email.", code="INVITE_MISMATCH")


def _pending_or_409(invite: Invite) -> None:
    if invite.status != INVITE_PENDING:
        raise ConflictError(f"Invite has already been {invite.status}.", code="INVITE_NOT_PENDING")


def accept_invite(
    db: Session,
    invite_id: str,
    caller: Optional[User],
    allow_anonymous: bool = False,
) -> Tuple[Creds, Company, User]:
    """
    Resolve a pending invite into an accepted membership.
    The invite record is deleted once consumed.
    """
    invite = get_invite_or_404(db, invite_id)
    _check_ownership(invite, caller, allow_anonymous)
    _pending_or_409(invite)

    company = get_company_or_404(db, invite.company_id)

    user = caller or get_user_by_email(db, invite.email)
    if user is None:
        user = _placeholder_identity(db, invite.email, invite.invited_by)
        db.flush()

    existing = get_creds(db, user.uid, company.company_id)
    if existing is not None and existing.status == CREDS_ACCEPTED:
        raise ConflictError("You are already a member of this company.", code="ALREADY_MEMBER")

    creds = grant_membership(db, company, user, invite.role, invited_by=invite.invited_by)

    invite.status = INVITE_ACCEPTED
    invite.accepted_at = utcnow()
    db.flush()
    db.delete(invite)

    db.commit()
    db.refresh(creds)
    log.info("Invite %s accepted: uid=%s joined %s as %s", invite_id, user.uid, company.company_id, creds.role)
    return creds, company, user


def decline_invite(
    db: Session,
    invite_id: str,
    caller: Optional[User],
    allow_anonymous: bool = False,
) -> Invite:
    """Mark declined; the record stays, the ledger is not touched."""
    invite = get_invite_or_404(db, invite_id)
    _check_ownership(invite, caller, allow_anonymous)
    _pending_or_409(invite)

    invite.status = INVITE_DECLINED
    db.commit()
    db.refresh(invite)
    log.info("Invite %s declined", invite_id)
    return invite


def revoke_invite(db: Session, actor: User, company_id: str, invite_id: str) -> None:
    """Admin withdraws a pending invite."""
    get_company_or_404(db, company_id)
    ensure_tenant_admin(db, actor, company_id)

    invite = get_invite_or_404(db, invite_id)
    if invite.company_id != company_id:
        raise NotFoundError("Invite not found.", code="INVITE_NOT_FOUND")
    _pending_or_409(invite)

    db.delete(invite)
    db.commit()
    log.info("Invite %s revoked by uid=%s", invite_id, actor.uid)

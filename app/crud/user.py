# app/crud/user.py
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, InvariantViolation, NotFoundError
from app.core.roles import (
    INVITE_PENDING,
    PLATFORM_NONE,
    PLATFORM_ROLES,
    PLATFORM_SUPER_ADMIN,
    TENANT_ROLES,
    normalize_platform_role,
    normalize_tenant_role,
)
from app.core.security import get_password_hash, verify_password
from app.models.company import CompanyMember
from app.models.creds import Creds
from app.models.invite import Invite
from app.models.team import TeamMember
from app.models.user import User
from app.schemas.user import AdminUserCreate, AdminUserUpdate

log = logging.getLogger("app.users")


# --- lookups -----------------------------------------------------------------

def get_user_or_404(db: Session, uid: str) -> User:
    user = db.get(User, uid)
    if not user:
        raise NotFoundError("User not found.", code="USER_NOT_FOUND")
    return user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == (email or "").strip().lower()).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == (username or "").strip().lower()).first()


def list_users(db: Session, page: int = 1, limit: int = 20) -> Tuple[List[User], int]:
    qset = db.query(User)
    total = qset.count()
    items = (
        qset.order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


# --- create ------------------------------------------------------------------

def _ensure_unique(db: Session, email: str, username: Optional[str]) -> None:
    if get_user_by_email(db, email):
        raise ConflictError("Email already in use.", code="EMAIL_IN_USE")
    if username and get_user_by_username(db, username):
        raise ConflictError("Username already in use.", code="USERNAME_IN_USE")


def build_user(
    db: Session,
    *,
    email: str,
    password: Optional[str] = None,
    hashed_password: Optional[str] = None,
    username: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    time_zone: Optional[str] = None,
    role: str = PLATFORM_NONE,
    email_verified: bool = False,
    must_change_password: bool = False,
    created_by: Optional[str] = None,
) -> User:
    """Check uniqueness and add a new identity to the session (no commit)."""
    _ensure_unique(db, email, username)
    user = User(
        email=email,
        username=username,
        hashed_password=hashed_password or get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        time_zone=time_zone,
        role=role,
        email_verified=email_verified,
        must_change_password=must_change_password,
        created_by=created_by,
    )
    db.add(user)
    return user


def commit_or_conflict(db: Session) -> None:
    """Commit; a unique-index race surfaces as 409 instead of a store error."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email or username already in use.", code="EMAIL_IN_USE")


def create_user(db: Session, data: AdminUserCreate, created_by: Optional[str] = None) -> User:
    user = build_user(
        db,
        email=data.email,
        password=data.password,
        username=data.username,
        first_name=data.first_name,
        last_name=data.last_name,
        time_zone=data.time_zone,
        role=data.role,
        email_verified=data.email_verified,
        created_by=created_by,
    )
    commit_or_conflict(db)
    db.refresh(user)
    return user


# --- last super-admin invariant ---------------------------------------------

def count_super_admins(db: Session) -> int:
    return (
        db.query(func.count(User.uid))
        .filter(User.role == PLATFORM_SUPER_ADMIN, User.removed.is_(False))
        .scalar()
    )


def _commit_keeping_a_super_admin(db: Session) -> None:
    """
    Flush the pending change, then re-count live super-admins under a row lock
    in the same transaction. Rolls back if none would remain.
    """
    db.flush()
    remaining = (
        db.query(User.uid)
        .filter(User.role == PLATFORM_SUPER_ADMIN, User.removed.is_(False))
        .with_for_update()
        .all()
    )
    if not remaining:
        db.rollback()
        raise InvariantViolation(
            "At least one super admin must remain.",
            code="LAST_SUPERADMIN",
        )
    db.commit()


# --- update / delete ---------------------------------------------------------

def set_platform_role(db: Session, user: User, role: str) -> User:
    was_super = user.role == PLATFORM_SUPER_ADMIN
    user.role = role
    if was_super and user.role != PLATFORM_SUPER_ADMIN:
        _commit_keeping_a_super_admin(db)
    else:
        db.commit()
    db.refresh(user)
    log.info("Platform role of uid=%s set to %s", user.uid, user.role)
    return user


def update_user(db: Session, user: User, data: AdminUserUpdate) -> User:
    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    role = fields.pop("role", None)
    for key, value in fields.items():
        setattr(user, key, value)
    if role is not None:
        return set_platform_role(db, user, role)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: User) -> None:
    """
    Hard delete: identity, its ledger rows, its tenant and team member
    entries and any pending invites addressed to it, in one transaction.
    """
    uid, email = user.uid, user.email
    was_super = user.role == PLATFORM_SUPER_ADMIN

    db.query(Creds).filter(Creds.uid == uid).delete(synchronize_session=False)
    db.query(CompanyMember).filter(CompanyMember.uid == uid).delete(synchronize_session=False)
    db.query(TeamMember).filter(TeamMember.uid == uid).delete(synchronize_session=False)
    db.query(Invite).filter(Invite.email == email, Invite.status == INVITE_PENDING).delete(
        synchronize_session=False
    )
    db.delete(user)

    if was_super:
        _commit_keeping_a_super_admin(db)
    else:
        db.commit()
    log.info("Deleted uid=%s", uid)


# --- passwords / verification -----------------------------------------------

def set_password(db: Session, user: User, new_password: str) -> None:
    user.hashed_password = get_password_hash(new_password)
    user.must_change_password = False
    db.commit()


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.hashed_password):
        raise InvariantViolation("Current password is incorrect.", code="INVALID_CURRENT_PASSWORD")
    set_password(db, user, new_password)


# --- legacy role migration ---------------------------------------------------

def migrate_legacy_roles(db: Session) -> int:
    """
    One-time normalization of role strings written before the vocabularies
    were closed ("Super Admin", "superadmin", "Admin", ...).
    Returns the number of rows rewritten.
    """
    changed = 0

    stale = db.query(User.uid, User.role).filter(User.role.notin_(PLATFORM_ROLES)).all()
    for uid, raw in stale:
        try:
            canonical = normalize_platform_role(raw)
        except ValueError:
            log.warning("Unknown platform role %r on uid=%s; reset to none", raw, uid)
            canonical = PLATFORM_NONE
        db.execute(update(User).where(User.uid == uid).values(role=canonical))
        changed += 1

    for model in (Creds, CompanyMember):
        stale = db.query(model.id, model.role).filter(model.role.notin_(TENANT_ROLES)).all()
        for row_id, raw in stale:
            try:
                canonical = normalize_tenant_role(raw)
            except ValueError:
                log.warning("Unknown tenant role %r on %s id=%s; left as is", raw, model.__tablename__, row_id)
                continue
            db.execute(update(model).where(model.id == row_id).values(role=canonical))
            changed += 1

    db.commit()
    if changed:
        log.info("Normalized %s legacy role value(s)", changed)
    return changed

# app/core/rbac.py
from __future__ import annotations

from typing import Dict, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.auth import get_active_user
from app.core.errors import AuthorizationError
from app.core.roles import (
    CREDS_ACCEPTED,
    PLATFORM_SUPER_ADMIN,
    TENANT_ADMIN,
    TENANT_CREATOR,
    TENANT_ROLES,
)
from app.models.creds import Creds
from app.models.user import User

# -----------------------------
# Capability checks (tenant role)
# -----------------------------


def can_invite(role: Optional[str]) -> bool:
    return role == TENANT_ADMIN


def can_view_audit_log(role: Optional[str]) -> bool:
    return role == TENANT_ADMIN


def can_access_admin_tools(role: Optional[str]) -> bool:
    return role == TENANT_ADMIN


def can_access_creation_tools(role: Optional[str]) -> bool:
    return role in (TENANT_ADMIN, TENANT_CREATOR)


def can_access_content_tools(role: Optional[str]) -> bool:
    return role in TENANT_ROLES


def can_access_team_chat(role: Optional[str]) -> bool:
    return role in TENANT_ROLES


def role_permissions(role: Optional[str]) -> Dict[str, bool]:
    """Full capability map for one tenant role (UI uses it to show/hide tools)."""
    return {
        "can_invite": can_invite(role),
        "can_view_audit_log": can_view_audit_log(role),
        "can_access_admin_tools": can_access_admin_tools(role),
        "can_access_creation_tools": can_access_creation_tools(role),
        "can_access_content_tools": can_access_content_tools(role),
        "can_access_team_chat": can_access_team_chat(role),
    }


# -----------------------------
# Platform axis
# -----------------------------


def is_super_admin(user: Optional[User]) -> bool:
    return bool(user is not None and user.role == PLATFORM_SUPER_ADMIN)


def ensure_superadmin(user: User) -> None:
    """Raise 403 if user is not Super Admin."""
    if not is_super_admin(user):
        raise AuthorizationError("Super Admin only.", code="SUPERADMIN_REQUIRED")


def require_superadmin(user: User = Depends(get_active_user)) -> User:
    """Dependency for platform administration routes."""
    ensure_superadmin(user)
    return user


# -----------------------------
# Tenant membership lookups
# -----------------------------


def get_tenant_creds(db: Session, uid: str, company_id: str) -> Optional[Creds]:
    """The caller's live ledger row for this tenant (accepted and active), if any."""
    return (
        db.query(Creds)
        .filter(
            Creds.uid == uid,
            Creds.company_id == company_id,
            Creds.status == CREDS_ACCEPTED,
            Creds.active.is_(True),
        )
        .first()
    )


def get_tenant_role(db: Session, uid: str, company_id: str) -> Optional[str]:
    creds = get_tenant_creds(db, uid, company_id)
    return creds.role if creds else None


def ensure_member(db: Session, user: User, company_id: str) -> str:
    """403 unless the user holds a live membership in this tenant. Returns the role."""
    role = get_tenant_role(db, user.uid, company_id)
    if role is None:
        raise AuthorizationError("Not a member of this company.", code="NOT_A_MEMBER")
    return role


def ensure_tenant_admin(db: Session, user: User, company_id: str) -> str:
    """403 unless the user is an admin of this tenant, as recorded in the ledger."""
    role = ensure_member(db, user, company_id)
    if not can_access_admin_tools(role):
        raise AuthorizationError("Insufficient permissions.", code="INSUFFICIENT_PERMISSIONS")
    return role


def ensure_can_invite(db: Session, user: User, company_id: str) -> str:
    role = get_tenant_role(db, user.uid, company_id)
    if not can_invite(role):
        raise AuthorizationError("Only company admins can invite.", code="INSUFFICIENT_PERMISSIONS")
    return role

# app/core/roles.py
"""
Closed role vocabularies.

Two independent axes:
  - platform role on a user (``none`` | ``super_admin``)
  - tenant role on a membership (``member`` | ``creator`` | ``admin``)

Legacy spellings that older data may still carry are folded into the
canonical values here, and nowhere else.
"""
from __future__ import annotations

from typing import Optional

# ---- Platform axis ----------------------------------------------------------

PLATFORM_NONE = "none"
PLATFORM_SUPER_ADMIN = "super_admin"
PLATFORM_ROLES = (PLATFORM_NONE, PLATFORM_SUPER_ADMIN)

_LEGACY_SUPER_ADMIN = {"super admin", "superadmin", "super_admin", "super-admin"}
# Historical per-user display roles that never carried platform authority
_LEGACY_PLATFORM_NONE = {"", "none", "member", "creator", "admin"}

# ---- Tenant axis ------------------------------------------------------------

TENANT_MEMBER = "member"
TENANT_CREATOR = "creator"
TENANT_ADMIN = "admin"
TENANT_ROLES = (TENANT_MEMBER, TENANT_CREATOR, TENANT_ADMIN)

# admin is never assignable through an invite
INVITABLE_ROLES = (TENANT_MEMBER, TENANT_CREATOR)

# ---- Membership ledger / invite states --------------------------------------

CREDS_INVITED = "invited"
CREDS_ACCEPTED = "accepted"
CREDS_INACTIVE = "inactive"
CREDS_REMOVED = "removed"
CREDS_STATUSES = (CREDS_INVITED, CREDS_ACCEPTED, CREDS_INACTIVE, CREDS_REMOVED)

INVITE_PENDING = "pending"
INVITE_ACCEPTED = "accepted"
INVITE_DECLINED = "declined"
INVITE_STATUSES = (INVITE_PENDING, INVITE_ACCEPTED, INVITE_DECLINED)


def _fold(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def normalize_platform_role(value: Optional[str]) -> str:
    """
    Map any stored or submitted platform role to its canonical value.
    Raises ValueError for strings that are not a known spelling.
    """
    folded = _fold(value)
    if folded in _LEGACY_SUPER_ADMIN:
        return PLATFORM_SUPER_ADMIN
    if folded in _LEGACY_PLATFORM_NONE:
        return PLATFORM_NONE
    raise ValueError(f"Unknown platform role: {value!r}")


def normalize_tenant_role(value: Optional[str]) -> str:
    folded = _fold(value)
    if folded in TENANT_ROLES:
        return folded
    raise ValueError(f"Unknown tenant role: {value!r}")

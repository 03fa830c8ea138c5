# app/api/v1/companies.py
import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.auth import get_active_user, get_db, get_optional_user
from app.core.rbac import get_tenant_role, role_permissions
from app.crud import company as crud_company
from app.crud import invite as crud_invite
from app.models.user import User
from app.schemas.common import ok
from app.schemas.company import (
    CompanyCreate,
    CompanyOut,
    MemberDelete,
    MemberOut,
    MemberRoleUpdate,
    MemberStatusUpdate,
    MyCompanyOut,
    PermissionsOut,
)
from app.schemas.invite import InviteCreate, InviteOut, PendingInviteOut
from app.services import email as mailer

router = APIRouter()
log = logging.getLogger("app.companies")

# Unauthenticated accept/decline trusts the invite's own email.
# Product decision pending; switch off to require a signed-in invitee.
ALLOW_ANONYMOUS_INVITE_ACCEPT = os.getenv("ALLOW_ANONYMOUS_INVITE_ACCEPT", "1") == "1"


def _company_out(company) -> dict:
    return CompanyOut.model_validate(company).model_dump(mode="json")


# ---- tenants ----


@router.post("", status_code=status.HTTP_201_CREATED)
def create_company(
    payload: CompanyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    company = crud_company.create_company(db, current_user, payload)
    return ok(_company_out(company))


@router.get("/my-companies")
def my_companies(db: Session = Depends(get_db), current_user: User = Depends(get_active_user)):
    out = []
    for company, creds in crud_company.list_companies_for_user(db, current_user.uid):
        item = MyCompanyOut.model_validate(company)
        item.my_role = creds.role if creds else None
        item.my_status = creds.status if creds else None
        out.append(item.model_dump(mode="json"))
    return ok({"companies": out})


# ---- invites (static paths before /{company_id}) ----


@router.post("/invite", status_code=status.HTTP_201_CREATED)
def invite_user(
    payload: InviteCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    invite, company, placeholder = crud_invite.create_invite(db, current_user, payload)
    # invite is committed; a failed send does not undo it
    mailer.send_invite(invite.email, company.name, current_user.full_name, invite.role, placeholder)
    return ok(InviteOut.model_validate(invite).model_dump(mode="json"))


@router.get("/invites/pending")
def pending_invites(db: Session = Depends(get_db), current_user: User = Depends(get_active_user)):
    out = []
    for invite, company in crud_invite.list_pending_for_email(db, current_user.email):
        item = PendingInviteOut.model_validate(invite)
        item.company_name = company.name if company else None
        out.append(item.model_dump(mode="json"))
    return ok({"invites": out})


@router.post("/invite/{invite_id}/accept")
def accept_invite(
    invite_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    creds, company, user = crud_invite.accept_invite(
        db, invite_id, current_user, allow_anonymous=ALLOW_ANONYMOUS_INVITE_ACCEPT
    )
    return ok(
        {
            "company_id": company.company_id,
            "company_name": company.name,
            "uid": user.uid,
            "role": creds.role,
            "status": creds.status,
        }
    )


@router.post("/invite/{invite_id}/decline")
def decline_invite(
    invite_id: str,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    invite = crud_invite.decline_invite(
        db, invite_id, current_user, allow_anonymous=ALLOW_ANONYMOUS_INVITE_ACCEPT
    )
    return ok(InviteOut.model_validate(invite).model_dump(mode="json"))


# ---- single tenant ----


@router.get("/{company_id}")
def get_company(company_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_active_user)):
    company = crud_company.ensure_company_visible(db, current_user, company_id)
    return ok(_company_out(company))


@router.get("/{company_id}/permissions")
def my_permissions(company_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_active_user)):
    crud_company.ensure_company_visible(db, current_user, company_id)
    role = get_tenant_role(db, current_user.uid, company_id)
    return ok(PermissionsOut(role=role, **role_permissions(role)).model_dump())


@router.get("/{company_id}/members")
def list_members(company_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_active_user)):
    rows = crud_company.list_members(db, current_user, company_id)
    return ok({"members": [MemberOut(**r).model_dump(mode="json") for r in rows]})


@router.patch("/{company_id}/members/{uid}/role")
def update_member_role(
    company_id: str,
    uid: str,
    payload: MemberRoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    creds = crud_company.update_member_role(db, current_user, company_id, uid, payload.role)
    return ok({"uid": creds.uid, "company_id": creds.company_id, "role": creds.role})


@router.patch("/{company_id}/members/{uid}/status")
def update_member_status(
    company_id: str,
    uid: str,
    payload: MemberStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    creds = crud_company.set_member_status(db, current_user, company_id, uid, payload.status)
    return ok(
        {"uid": creds.uid, "company_id": creds.company_id, "status": creds.status, "active": creds.active}
    )


@router.post("/{company_id}/members/delete")
def remove_member(
    company_id: str,
    payload: MemberDelete,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    return ok(crud_company.remove_member(db, current_user, company_id, payload.uid))


@router.get("/{company_id}/invites")
def company_invites(company_id: str, db: Session = Depends(get_db), current_user: User = Depends(get_active_user)):
    invites = crud_invite.list_company_invites(db, current_user, company_id)
    return ok({"invites": [InviteOut.model_validate(i).model_dump(mode="json") for i in invites]})


@router.delete("/{company_id}/invites/{invite_id}")
def revoke_invite(
    company_id: str,
    invite_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    crud_invite.revoke_invite(db, current_user, company_id, invite_id)
    return ok({"invite_id": invite_id, "revoked": True})

# app/api/v1/actions.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import get_active_user, get_db
from app.core.errors import AuthorizationError
from app.core.rbac import can_view_audit_log, ensure_member, get_tenant_role, is_super_admin, require_superadmin
from app.crud import action as crud_action
from app.models.user import User
from app.schemas.action import ActionCreate, ActionOut, ActionUpdate
from app.schemas.common import ok, page_meta

router = APIRouter()
log = logging.getLogger("app.actions")


def _out(obj) -> dict:
    return ActionOut.model_validate(obj).model_dump()


def _ensure_log_access(db: Session, user: User, company_id: Optional[str]) -> None:
    """Super admins see every tenant; everyone else needs audit-log rights in one tenant."""
    if is_super_admin(user):
        return
    if not company_id:
        raise AuthorizationError("companyId is required.", code="INSUFFICIENT_PERMISSIONS")
    if not can_view_audit_log(get_tenant_role(db, user.uid, company_id)):
        raise AuthorizationError("Insufficient permissions.", code="INSUFFICIENT_PERMISSIONS")


@router.post("", status_code=status.HTTP_201_CREATED)
def create_action(
    payload: ActionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    if not is_super_admin(current_user):
        if payload.uid != current_user.uid:
            raise AuthorizationError("Actions can only be recorded for yourself.", code="INSUFFICIENT_PERMISSIONS")
        ensure_member(db, current_user, payload.company_id)
    return ok(_out(crud_action.create_action(db, payload)))


@router.get("")
def list_actions(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    uid: Optional[str] = None,
    company_id: Optional[str] = Query(None, alias="companyId"),
    type: Optional[str] = None,
    collection: Optional[str] = None,
    removed: Optional[bool] = None,
    since: Optional[int] = None,
    from_date: Optional[int] = Query(None, alias="fromDate"),
    to_date: Optional[int] = Query(None, alias="toDate"),
    aggregate: bool = False,
    group_by: Optional[str] = Query(None, alias="groupBy"),
    sum: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_active_user),
):
    _ensure_log_access(db, current_user, company_id)

    if aggregate:
        return ok(
            crud_action.aggregate_actions(
                db,
                from_date=from_date,
                to_date=to_date,
                group_by=group_by,
                sum_field=sum,
                company_id=company_id,
            )
        )

    items, total = crud_action.list_actions(
        db,
        uid=uid,
        company_id=company_id,
        type=type,
        collection=collection,
        removed=removed,
        from_date=from_date,
        to_date=to_date,
        since=since,
        page=page,
        limit=limit,
    )
    return ok(
        {
            "actions": [_out(a) for a in items],
            "pagination": page_meta(page, limit, total).model_dump(),
        }
    )


@router.get("/companies")
def action_companies(db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    return ok(crud_action.distinct_company_ids(db))


@router.get("/collections")
def action_collections(db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    return ok(crud_action.distinct_collections(db))


# ---- administrative ----


@router.get("/{action_id}")
def get_action(action_id: int, db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    return ok(_out(crud_action.get_action_or_404(db, action_id)))


@router.put("/{action_id}")
def update_action(
    action_id: int,
    payload: ActionUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_superadmin),
):
    obj = crud_action.get_action_or_404(db, action_id)
    return ok(_out(crud_action.update_action(db, obj, payload)))


@router.delete("/{action_id}")
def delete_action(action_id: int, db: Session = Depends(get_db), admin: User = Depends(require_superadmin)):
    obj = crud_action.get_action_or_404(db, action_id)
    crud_action.delete_action(db, obj)
    log.info("Action %s deleted by uid=%s", action_id, admin.uid)
    return ok({"id": action_id, "deleted": True})


@router.delete("")
def delete_all_actions(db: Session = Depends(get_db), admin: User = Depends(require_superadmin)):
    removed = crud_action.delete_all_actions(db)
    log.warning("All actions deleted by uid=%s", admin.uid)
    return ok({"deleted": removed})

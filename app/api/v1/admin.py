# app/api/v1/admin.py
"""Platform administration: user CRUD across all tenants. Super admins only."""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.auth import get_db
from app.core.rbac import require_superadmin
from app.crud import user as crud_user
from app.models.user import User
from app.schemas.common import ok, page_meta
from app.schemas.user import AdminUserCreate, AdminUserUpdate, PlatformRoleUpdate, UserOut

router = APIRouter()


def _out(user: User) -> dict:
    return UserOut.model_validate(user).model_dump(mode="json")


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(
    payload: AdminUserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_superadmin),
):
    user = crud_user.create_user(db, payload, created_by=admin.uid)
    return ok(_out(user))


@router.get("/users")
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_superadmin),
):
    items, total = crud_user.list_users(db, page=page, limit=limit)
    return ok(
        {
            "users": [_out(u) for u in items],
            "pagination": page_meta(page, limit, total).model_dump(),
        }
    )


@router.get("/users/{uid}")
def get_user(uid: str, db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    return ok(_out(crud_user.get_user_or_404(db, uid)))


@router.patch("/users/{uid}")
def update_user(
    uid: str,
    payload: AdminUserUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_superadmin),
):
    user = crud_user.get_user_or_404(db, uid)
    return ok(_out(crud_user.update_user(db, user, payload)))


@router.patch("/users/{uid}/role")
def update_user_role(
    uid: str,
    payload: PlatformRoleUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require_superadmin),
):
    user = crud_user.get_user_or_404(db, uid)
    return ok(_out(crud_user.set_platform_role(db, user, payload.role)))


@router.delete("/users/{uid}")
def delete_user(uid: str, db: Session = Depends(get_db), _: User = Depends(require_superadmin)):
    user = crud_user.get_user_or_404(db, uid)
    crud_user.delete_user(db, user)
    return ok({"uid": uid, "deleted": True})

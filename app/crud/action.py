# app/crud/action.py
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.clock import now_millis
from app.core.errors import NotFoundError, ValidationError
from app.models.action import Action
from app.schemas.action import ActionCreate, ActionUpdate

log = logging.getLogger("app.actions")

# Columns a caller may group by; camelCase names are what older clients send
GROUPABLE_COLUMNS = {
    "company_id": Action.company_id,
    "uid": Action.uid,
    "type": Action.type,
    "collection": Action.collection,
    "read_type": Action.read_type,
    "host": Action.host,
    "doc_id": Action.doc_id,
}
SUMMABLE_COLUMNS = {
    "count": Action.count,
}
_LEGACY_FIELD_NAMES = {
    "companyId": "company_id",
    "readType": "read_type",
    "docId": "doc_id",
}


def _resolve(name: Optional[str], allowed: Dict[str, Any], default: str, kind: str) -> Tuple[str, Any]:
    key = (name or default).strip()
    key = _LEGACY_FIELD_NAMES.get(key, key)
    if key not in allowed:
        raise ValidationError(
            f"Unsupported {kind} field '{name}'. Allowed: {', '.join(sorted(allowed))}.",
            code="INVALID_AGGREGATE_FIELD",
        )
    return key, allowed[key]


# --- create / read -----------------------------------------------------------

def create_action(db: Session, data: ActionCreate) -> Action:
    fields = data.model_dump()
    if fields.get("created") is None:
        fields["created"] = now_millis()
    obj = Action(**fields, removed=False)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def get_action_or_404(db: Session, action_id: int) -> Action:
    obj = db.get(Action, action_id)
    if not obj:
        raise NotFoundError("Action not found.", code="ACTION_NOT_FOUND")
    return obj


def list_actions(
    db: Session,
    *,
    uid: Optional[str] = None,
    company_id: Optional[str] = None,
    type: Optional[str] = None,
    collection: Optional[str] = None,
    removed: Optional[bool] = None,
    from_date: Optional[int] = None,
    to_date: Optional[int] = None,
    since: Optional[int] = None,
    page: int = 1,
    limit: int = 50,
) -> Tuple[List[Action], int]:
    """Filtered, newest-first page of actions plus the total match count."""
    qset = db.query(Action)
    if uid:
        qset = qset.filter(Action.uid == uid)
    if company_id:
        qset = qset.filter(Action.company_id == company_id)
    if type:
        qset = qset.filter(Action.type == type)
    if collection:
        qset = qset.filter(Action.collection == collection)
    if removed is not None:
        qset = qset.filter(Action.removed.is_(removed))

    if from_date is not None or to_date is not None:
        if from_date is not None:
            qset = qset.filter(Action.created >= from_date)
        if to_date is not None:
            qset = qset.filter(Action.created < to_date)
    elif since is not None:
        qset = qset.filter(Action.created > since)

    total = qset.count()
    items = (
        qset.order_by(Action.created.desc(), Action.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def distinct_company_ids(db: Session) -> List[str]:
    rows = (
        db.query(Action.company_id)
        .filter(Action.removed.is_(False))
        .distinct()
        .order_by(Action.company_id.asc())
        .all()
    )
    return [r[0] for r in rows]


def distinct_collections(db: Session) -> List[str]:
    rows = (
        db.query(Action.collection)
        .filter(Action.removed.is_(False))
        .distinct()
        .order_by(Action.collection.asc())
        .all()
    )
    return [r[0] for r in rows]


# --- billing aggregation -----------------------------------------------------

def aggregate_actions(
    db: Session,
    *,
    from_date: Optional[int],
    to_date: Optional[int],
    group_by: Optional[str] = None,
    sum_field: Optional[str] = None,
    company_id: Optional[str] = None,
) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Sum `sum_field` and count documents per `group_by` value over
    created in [from_date, to_date), removed rows excluded.

    With company_id: one object for that company, zero-valued when nothing
    matched; only the company_id grouping is accepted then. Without: one
    object per group seen in range.
    """
    if from_date is None or to_date is None:
        raise ValidationError(
            "fromDate and toDate are required for aggregation.",
            code="MISSING_DATE_RANGE",
        )
    if from_date >= to_date:
        raise ValidationError("fromDate must be less than toDate.", code="INVALID_DATE_RANGE")

    group_key, group_col = _resolve(group_by, GROUPABLE_COLUMNS, "company_id", "groupBy")
    _, sum_col = _resolve(sum_field, SUMMABLE_COLUMNS, "count", "sum")
    period = {"from_date": from_date, "to_date": to_date}

    base = db.query(
        func.coalesce(func.sum(sum_col), 0),
        func.count(Action.id),
    ).filter(
        Action.created >= from_date,
        Action.created < to_date,
        Action.removed.is_(False),
    )

    if company_id:
        if group_key != "company_id":
            raise ValidationError(
                "groupBy cannot be combined with companyId; omit companyId to group by another field.",
                code="GROUP_BY_CONFLICT",
            )
        total_sum, document_count = base.filter(Action.company_id == company_id).one()
        return {
            "company_id": company_id,
            "total_sum": int(total_sum or 0),
            "document_count": int(document_count or 0),
            "period": period,
        }

    rows = (
        base.add_columns(group_col)
        .group_by(group_col)
        .order_by(group_col.asc())
        .all()
    )
    return [
        {
            group_key: key,
            "total_sum": int(total_sum or 0),
            "document_count": int(document_count or 0),
            "period": period,
        }
        for total_sum, document_count, key in rows
    ]


# --- administrative edits ----------------------------------------------------

def update_action(db: Session, obj: Action, data: ActionUpdate) -> Action:
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(obj, key, value)
    db.commit()
    db.refresh(obj)
    return obj


def delete_action(db: Session, obj: Action) -> None:
    db.delete(obj)
    db.commit()


def delete_all_actions(db: Session) -> int:
    removed = db.query(Action).delete(synchronize_session=False)
    db.commit()
    log.warning("Deleted all %s actions", removed)
    return removed

# app/schemas/common.py
from typing import Any, Dict

from pydantic import BaseModel


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


def ok(data: Any = None) -> Dict[str, Any]:
    """Success envelope shared by every route."""
    return {"success": True, "data": data}


def page_meta(page: int, limit: int, total: int) -> PageMeta:
    pages = (total + limit - 1) // limit if limit else 0
    return PageMeta(page=page, limit=limit, total=total, pages=pages)

# app/api/health.py
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.auth import get_db

router = APIRouter(tags=["health"])

# tables the API cannot serve a single request without
REQUIRED_TABLES = (
    "users",
    "companies",
    "creds",
    "company_members",
    "invites",
    "verification_codes",
    "actions",
    "teams",
    "team_members",
)


@router.get("/healthz")
def healthz(request: Request) -> dict:
    """Process is up. Never touches the database."""
    scheduler = request.app.state.scheduler
    return {
        "ok": True,
        "service": request.app.title,
        "version": request.app.version,
        "scheduler": "running" if scheduler is not None and scheduler.running else "off",
        "ts": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/readyz")
def readyz(db: Session = Depends(get_db)):
    """Database answers and the schema is in place."""
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
        present = set(inspect(db.get_bind()).get_table_names())
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=503,
            content={"ok": False, "db": "down", "error": type(e).__name__},
            headers={"Cache-Control": "no-store"},
        )

    missing = [t for t in REQUIRED_TABLES if t not in present]
    body = {
        "ok": not missing,
        "db": "up",
        "db_latency_ms": round((time.perf_counter() - started) * 1000, 2),
    }
    if missing:
        body["missing_tables"] = missing
    return JSONResponse(
        status_code=200 if not missing else 503,
        content=body,
        headers={"Cache-Control": "no-store"},
    )

# app/worker/scheduler.py
from __future__ import annotations

import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import sessionmaker

from app.crud.verification import purge_expired_codes

log = logging.getLogger("app.scheduler")


def _with_db(session_factory: sessionmaker, fn, **kwargs) -> int:
    """Run a function with a fresh DB session and return an int result (0 on failure)."""
    db = session_factory()
    try:
        return int(fn(db, **kwargs) or 0)
    except Exception:
        db.rollback()
        log.exception("Scheduled job %s failed", getattr(fn, "__name__", fn))
        return 0
    finally:
        db.close()


def run_code_purge(session_factory: sessionmaker) -> int:
    """Delete expired verification codes (time-to-live on expires_at)."""
    removed = _with_db(session_factory, purge_expired_codes)
    if removed:
        log.info("Purged %s expired verification code(s)", removed)
    return removed


def make_scheduler(session_factory: sessionmaker) -> BackgroundScheduler:
    """
    Create and return a BackgroundScheduler instance configured from env:
      - APP_TIMEZONE                 (default: UTC)
      - CODE_PURGE_INTERVAL_MINUTES  (default: 5)
    """
    tzname = os.getenv("APP_TIMEZONE", "UTC")
    minutes = int(os.getenv("CODE_PURGE_INTERVAL_MINUTES", "5"))

    sched = BackgroundScheduler(timezone=tzname)
    sched.add_job(
        run_code_purge,
        IntervalTrigger(minutes=minutes),
        args=[session_factory],
        id="purge_expired_codes",
        replace_existing=True,
    )
    return sched

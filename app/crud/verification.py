# app/crud/verification.py
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import NotFoundError
from app.core.security import get_password_hash
from app.models.verification_code import PURPOSE_PASSWORD_RESET, PURPOSE_SIGNUP, VerificationCode

log = logging.getLogger("app.verification")

CODE_TTL = {
    PURPOSE_SIGNUP: timedelta(minutes=10),
    PURPOSE_PASSWORD_RESET: timedelta(minutes=30),
}
CODE_DIGITS = 4
MAX_CODE_ATTEMPTS = 5


def generate_code(digits: int = CODE_DIGITS) -> str:
    return f"{secrets.randbelow(10 ** digits):0{digits}d}"


def _fold(email: str) -> str:
    return (email or "").strip().lower()


def get_live_code(
    db: Session, email: str, purpose: str, now: Optional[datetime] = None
) -> Optional[VerificationCode]:
    now = now or utcnow()
    return (
        db.query(VerificationCode)
        .filter(
            VerificationCode.email == _fold(email),
            VerificationCode.purpose == purpose,
            VerificationCode.verified.is_(False),
            VerificationCode.expires_at > now,
        )
        .order_by(VerificationCode.created_at.desc())
        .first()
    )


def issue_code(
    db: Session,
    email: str,
    purpose: str = PURPOSE_SIGNUP,
    password: Optional[str] = None,
    now: Optional[datetime] = None,
) -> VerificationCode:
    """
    Store a fresh code for (email, purpose), replacing any earlier ones.
    `password` is only set by the first-signup flow.

    Wrong guesses against a still-live code carry over to its replacement,
    and a locked-out code's expiry is kept, so re-issuing never resets the
    guess budget.
    """
    now = now or utcnow()
    email = _fold(email)

    previous = get_live_code(db, email, purpose, now=now)
    attempts = (previous.attempts or 0) if previous else 0
    expires_at = now + CODE_TTL[purpose]
    if attempts >= MAX_CODE_ATTEMPTS:
        expires_at = previous.expires_at

    db.query(VerificationCode).filter(
        VerificationCode.email == email,
        VerificationCode.purpose == purpose,
    ).delete(synchronize_session=False)

    row = VerificationCode(
        email=email,
        code=generate_code(),
        purpose=purpose,
        password=password,
        hashed_password=get_password_hash(password) if password else None,
        created_at=now,
        expires_at=expires_at,
        verified=False,
        attempts=attempts,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    log.info("Issued %s code for %s (expires %s)", purpose, email, row.expires_at.isoformat())
    return row


def consume_code(
    db: Session,
    email: str,
    code: str,
    purpose: str = PURPOSE_SIGNUP,
    now: Optional[datetime] = None,
) -> Tuple[VerificationCode, Optional[str]]:
    """
    Match and consume a code. Returns (row, generated_password).

    Wrong guesses are counted and committed; after MAX_CODE_ATTEMPTS the code
    stays locked until it expires. On success the row is marked verified and
    flushed but not committed, so the caller's follow-up write lands in the
    same transaction.
    """
    now = now or utcnow()
    email = _fold(email)
    code = (code or "").strip()

    row = (
        db.query(VerificationCode)
        .filter(
            VerificationCode.email == email,
            VerificationCode.purpose == purpose,
            VerificationCode.verified.is_(False),
        )
        .order_by(VerificationCode.created_at.desc())
        .first()
    )
    if row is None:
        raise NotFoundError("Invalid or already used code.", code="INVALID_CODE")

    if now >= row.expires_at:
        raise NotFoundError("Verification code has expired.", code="CODE_EXPIRED")

    if (row.attempts or 0) >= MAX_CODE_ATTEMPTS:
        raise NotFoundError("Too many attempts; try again later.", code="TOO_MANY_ATTEMPTS")

    if not secrets.compare_digest(row.code, code):
        row.attempts = (row.attempts or 0) + 1
        db.commit()
        if row.attempts >= MAX_CODE_ATTEMPTS:
            log.warning("Locked %s code for %s after %s bad attempts", purpose, email, MAX_CODE_ATTEMPTS)
            raise NotFoundError("Too many attempts; try again later.", code="TOO_MANY_ATTEMPTS")
        raise NotFoundError("Invalid or already used code.", code="INVALID_CODE")

    generated_password = row.password

    # single use: only one consumer can flip verified=false -> true
    result = db.execute(
        update(VerificationCode)
        .where(VerificationCode.id == row.id, VerificationCode.verified.is_(False))
        .values(verified=True, password=None)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise NotFoundError("Invalid or already used code.", code="INVALID_CODE")

    db.flush()
    db.refresh(row)
    return row, generated_password


def purge_expired_codes(db: Session, now: Optional[datetime] = None) -> int:
    """Delete every expired code. Returns how many were removed."""
    now = now or utcnow()
    removed = (
        db.query(VerificationCode)
        .filter(VerificationCode.expires_at <= now)
        .delete(synchronize_session=False)
    )
    db.commit()
    return removed

# app/api/v1/auth.py
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.auth import authenticate_user, get_current_user, get_db
from app.core.errors import AuthenticationError, ConflictError, NotFoundError
from app.core.security import create_access_token, generate_password, get_password_hash
from app.crud.creds import list_creds_for_user, touch_last_login
from app.crud.user import build_user, change_password, commit_or_conflict, get_user_by_email
from app.crud.verification import consume_code, issue_code
from app.models.user import User
from app.models.verification_code import PURPOSE_PASSWORD_RESET, PURPOSE_SIGNUP
from app.schemas.auth import (
    ChangePasswordIn,
    EmailIn,
    LoginIn,
    ResetPasswordIn,
    SignupIn,
    TokenOut,
    ValidateEmailIn,
)
from app.schemas.common import ok
from app.schemas.user import UserOut
from app.services import email as mailer

router = APIRouter()
log = logging.getLogger("app.auth")


def _token_out(user: User) -> dict:
    token = create_access_token(user.uid, user.email, user.role)
    return TokenOut(access_token=token, user=UserOut.model_validate(user)).model_dump(mode="json")


@router.post("/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: SignupIn, db: Session = Depends(get_db)):
    user = build_user(
        db,
        email=payload.email,
        password=payload.password,
        username=payload.username,
        first_name=payload.first_name,
        last_name=payload.last_name,
        time_zone=payload.time_zone,
        email_verified=False,
    )
    commit_or_conflict(db)
    db.refresh(user)
    log.info("Signup uid=%s email=%s", user.uid, user.email)

    code = issue_code(db, user.email, PURPOSE_SIGNUP)
    # state above is committed; a failed send does not undo it
    mailer.send_validation_code(user.email, user.first_name, code.code)
    return ok(_token_out(user))


@router.post("/send-code")
def send_code(payload: EmailIn, db: Session = Depends(get_db)):
    """
    (Re)issue a signup code.
    For an address with no account yet this starts the generated-password signup:
    the account is created when the code is validated.
    """
    user = get_user_by_email(db, payload.email)
    if user is not None and user.email_verified:
        raise ConflictError("Email is already verified.", code="EMAIL_ALREADY_VERIFIED")

    password = generate_password() if user is None else None
    code = issue_code(db, payload.email, PURPOSE_SIGNUP, password=password)
    mailer.send_validation_code(code.email, user.first_name if user else None, code.code)
    return ok({"email": code.email, "expires_at": code.expires_at.isoformat()})


@router.post("/validate-email")
def validate_email(payload: ValidateEmailIn, db: Session = Depends(get_db)):
    row, generated_password = consume_code(db, payload.email, payload.code, PURPOSE_SIGNUP)

    user = get_user_by_email(db, row.email)
    if user is None:
        if not row.hashed_password:
            db.rollback()
            raise NotFoundError("User not found.", code="USER_NOT_FOUND")
        user = build_user(
            db,
            email=row.email,
            hashed_password=row.hashed_password,
            email_verified=True,
        )
    else:
        user.email_verified = True

    commit_or_conflict(db)
    db.refresh(user)
    log.info("Email verified uid=%s", user.uid)

    if generated_password:
        mailer.send_welcome(user.email, user.first_name, generated_password)
    return ok(_token_out(user))


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = authenticate_user(db, payload.email, payload.password)
    if not user:
        raise AuthenticationError("Incorrect email or password.", code="INVALID_CREDENTIALS")

    touch_last_login(db, user.uid)
    db.commit()
    return ok(_token_out(user))


@router.get("/me")
def me(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    memberships = [
        {
            "company_id": c.company_id,
            "role": c.role,
            "status": c.status,
            "active": c.active,
            "last_login": c.last_login.isoformat() if c.last_login else None,
        }
        for c in list_creds_for_user(db, current_user.uid)
    ]
    user = UserOut.model_validate(current_user).model_dump(mode="json")
    return ok({"user": user, "memberships": memberships})


@router.post("/forgot-password")
def forgot_password(payload: EmailIn, db: Session = Depends(get_db)):
    """Always 200; the answer does not reveal whether the account exists."""
    user = get_user_by_email(db, payload.email)
    if user is not None and not user.removed:
        code = issue_code(db, user.email, PURPOSE_PASSWORD_RESET)
        mailer.send_password_reset_code(user.email, user.first_name, code.code)
    return ok({"message": "If the account exists, a reset code has been sent."})


@router.post("/reset-password")
def reset_password(payload: ResetPasswordIn, db: Session = Depends(get_db)):
    row, _ = consume_code(db, payload.email, payload.code, PURPOSE_PASSWORD_RESET)

    user = get_user_by_email(db, row.email)
    if user is None:
        db.rollback()
        raise NotFoundError("Invalid or already used code.", code="INVALID_CODE")

    user.hashed_password = get_password_hash(payload.new_password)
    user.must_change_password = False
    # the code reached this inbox
    user.email_verified = True
    db.commit()
    log.info("Password reset uid=%s", user.uid)
    return ok({"message": "Password has been reset."})


@router.post("/change-password")
def change_password_route(
    payload: ChangePasswordIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    change_password(db, current_user, payload.current_password, payload.new_password)
    return ok({"message": "Password changed."})

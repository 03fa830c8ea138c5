# app/core/auth.py
import logging
from typing import Iterator, Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError, AuthorizationError
from app.core.security import decode_access_token, verify_password
from app.models.user import User

log = logging.getLogger("app.auth")

# OAuth2 bearer scheme for Swagger "Authorize" button and DI.
# auto_error=False so a missing header goes through our own error envelope.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_db(request: Request) -> Iterator[Session]:
    """Yield a DB session from the app's session factory and make sure it's closed afterwards."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Attempt authentication:
      - if user doesn't exist or is removed -> None (do not reveal existence)
      - if password is incorrect -> None
    """
    email_l = (email or "").strip().lower()
    user = db.query(User).filter(User.email == email_l).first()
    if not user or user.removed:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def _user_from_token(request: Request, token: str, db: Session) -> User:
    payload = decode_access_token(token)

    user = db.get(User, payload["sub"])
    if user is None or user.removed:
        raise AuthenticationError("Could not validate credentials.", code="TOKEN_INVALID")

    # Expose user context to middleware/loggers
    request.state.user_id = user.uid
    return user


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Decode the bearer token and load the user, or 401."""
    if not token:
        raise AuthenticationError("Not authenticated.", code="AUTH_REQUIRED")
    return _user_from_token(request, token, db)


def get_optional_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None. A bad token is still 401."""
    if not token:
        return None
    return _user_from_token(request, token, db)


def get_active_user(user: User = Depends(get_current_user)) -> User:
    """
    Authenticated user that has rotated any generated password.
    Accounts created by an invite are held here until they change it.
    """
    if user.must_change_password:
        log.info("Blocked uid=%s until password rotation", user.uid)
        raise AuthorizationError(
            "Password change required before continuing.",
            code="PASSWORD_ROTATION_REQUIRED",
        )
    return user

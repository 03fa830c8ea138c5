# app/core/security.py
import os
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.core.clock import utcnow
from app.core.errors import AuthenticationError

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "1440"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


# ---- Passwords --------------------------------------------------------------

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        # unknown / malformed hash
        return False


def generate_password(nbytes: int = 12) -> str:
    """High-entropy random password for generated accounts."""
    return secrets.token_urlsafe(nbytes)


# ---- Tokens -----------------------------------------------------------------

def create_access_token(
    uid: str,
    email: str,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode: Dict[str, Any] = {"sub": uid, "email": email, "exp": expire}
    if role:
        to_encode["role"] = role
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Return the decoded payload.
    Raises AuthenticationError with TOKEN_EXPIRED or TOKEN_INVALID.
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        raise AuthenticationError("Token has expired.", code="TOKEN_EXPIRED")
    except JWTError:
        raise AuthenticationError("Could not validate credentials.", code="TOKEN_INVALID")

    if not payload.get("sub"):
        raise AuthenticationError("Could not validate credentials.", code="TOKEN_INVALID")
    return payload

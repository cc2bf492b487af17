"""Password hashing and JWT access tokens"""
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from infrastructure.config import Settings

# bcrypt only reads the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__ident="2b")


def _bcrypt_input(password: str) -> str:
    """Longer passwords are reduced to their SHA256 hex digest so no byte is ignored"""
    raw = password.encode("utf-8")
    if len(raw) > BCRYPT_MAX_BYTES:
        return hashlib.sha256(raw).hexdigest()
    return password


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(_bcrypt_input(plain_password), hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(_bcrypt_input(password))


def create_access_token(data: Dict[str, Any], settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    """Signed token carrying ``data`` plus an expiry claim"""
    lifetime = expires_delta if expires_delta is not None else timedelta(minutes=settings.access_token_expire_minutes)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: Settings) -> Optional[Dict[str, Any]]:
    """Return the token claims, or None when the token is invalid or expired"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None

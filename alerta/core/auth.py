"""Password hashing and access-token helpers."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from alerta.core.settings import get_settings

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class InvalidTokenError(Exception):
    """Raised when an access token cannot be decoded or has expired."""


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims; must include ``sub`` (profile id). ``role`` is copied
            verbatim so the edge middleware can expose it without a DB lookup.
        expires_delta: Token lifetime, defaults to ACCESS_TOKEN_TTL_HOURS.
    """
    settings = get_settings()
    to_encode = data.copy()
    lifetime = expires_delta or timedelta(hours=settings.access_token_ttl_hours)
    to_encode["exp"] = datetime.now(timezone.utc) + lifetime
    return jwt.encode(to_encode, settings.session_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    if not token:
        raise InvalidTokenError("missing token")
    try:
        claims = jwt.decode(token, get_settings().session_secret, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError(str(exc)) from exc
    if not claims.get("sub"):
        raise InvalidTokenError("token has no subject")
    return claims


__all__ = [
    "InvalidTokenError",
    "create_access_token",
    "decode_access_token",
    "get_password_hash",
    "verify_password",
]

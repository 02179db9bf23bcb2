from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, Request
from jose import ExpiredSignatureError, JWTError, jwt

from .config import Settings
from .errors import AuthError


def create_access_token(user_id: str, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    return jwt.encode({"userId": user_id, "exp": expire}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> str:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise AuthError("Token expired.")
    except JWTError:
        raise AuthError("Invalid token.")
    user_id = claims.get("userId")
    if not user_id:
        raise AuthError("Invalid token.")
    return str(user_id)


def get_current_user(request: Request, authorization: Optional[str] = Header(default=None)) -> str:
    """Resolve the caller from an ``Authorization: Bearer <jwt>`` header."""
    prefix = "Bearer "
    if not authorization or not authorization.startswith(prefix):
        raise AuthError("Access denied. No token provided.")
    token = authorization[len(prefix) :].strip()
    if not token:
        raise AuthError("Access denied. No token provided.")
    return decode_token(token, request.app.state.settings)

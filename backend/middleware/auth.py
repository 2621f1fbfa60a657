"""
User authentication helpers.

Preferred:
  - Authorization: Bearer <jwt>, issued by POST /auth/login (see routes/auth.py)

Legacy (demo clients that only know the logged-in user's id):
  - X-User-Id: <user id>  (not cryptographically secure)

Passwords are hashed with bcrypt.
"""
import logging
from datetime import datetime, timezone, timedelta
from typing import Optional

import bcrypt
import jwt
from fastapi import HTTPException, Header

from config import settings

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes and newer releases reject longer input
_BCRYPT_MAX_BYTES = 72


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], password_hash.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash
        return False


def _parse_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    token = parts[1].strip()
    return token or None


def decode_access_token(token: str) -> dict:
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=500,
            detail="Server auth misconfigured (JWT secret missing).",
        )
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "iat", "iss", "sub"]},
        )
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Access token expired.")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid access token.")


def issue_access_token(*, user_id: int, username: str) -> str:
    now = _now_utc()
    exp = now.replace(microsecond=0) + timedelta(minutes=settings.jwt_access_ttl_minutes)
    payload = {
        "iss": settings.jwt_issuer,
        "sub": str(user_id),
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    }
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=500,
            detail="Server auth misconfigured (JWT secret missing).",
        )
    return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")


async def require_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> int:
    """
    Resolve the calling user's id.

      - Prefer Authorization Bearer JWT
      - Fall back to legacy X-User-Id header (NOT secure)
    """
    token = _parse_bearer_token(authorization)
    if token:
        payload = decode_access_token(token)
        user_id = payload.get("sub")
    else:
        user_id = x_user_id

    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide Authorization: Bearer <token> (preferred) or X-User-Id (legacy).",
        )
    try:
        return int(user_id)
    except (TypeError, ValueError):
        logger.warning(f"Rejected malformed user id: {str(user_id)[:16]!r}")
        raise HTTPException(status_code=401, detail="Invalid user id.")

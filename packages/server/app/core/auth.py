"""
Authentication and Authorization.

Supports:
- Email/Password login with bcrypt hashes
- JWT sessions (cookie or Bearer header) with a Redis revocation list
- Role-based authorization dependencies (any user / ADMIN)
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.database import get_session
from app.core.redis import is_session_revoked
from app.models.user import User
from awase_shared.schemas.common import UserRole

log = structlog.get_logger()
settings = get_settings()

SESSION_COOKIE = "awase_session"
CSRF_COOKIE = "awase_csrf"

bearer_header = APIKeyHeader(name="Authorization", auto_error=False)

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with cost factor 12."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    role: str,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed session JWT. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def seconds_until_expiry(payload: dict) -> int:
    exp = payload.get("exp")
    if exp is None:
        return settings.jwt_expire_minutes * 60
    return int(exp - datetime.now(timezone.utc).timestamp())


def generate_csrf_token() -> str:
    return secrets.token_urlsafe(32)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

class AuthenticatedUser:
    """Container for the authenticated caller."""

    def __init__(self, user: User, jti: Optional[str] = None):
        self.user = user
        self.user_id = user.id
        self.role = user.role
        self.jti = jti

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def _extract_token(request: Request, authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip()
    return request.cookies.get(SESSION_COOKIE)


async def get_authenticated_user(
    request: Request,
    authorization: Optional[str] = Depends(bearer_header),
    session: AsyncSession = Depends(get_session),
) -> AuthenticatedUser:
    """Main authentication dependency. Accepts a Bearer JWT or the session cookie."""
    token = _extract_token(request, authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        payload = decode_jwt(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    jti = payload.get("jti")
    if jti and await is_session_revoked(jti):
        raise HTTPException(status_code=401, detail="Session has been revoked")

    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or user.is_deleted:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if user.is_banned:
        log.warning("auth.banned_user_rejected", user_id=str(user.id))
        raise HTTPException(status_code=403, detail="User is banned")

    auth_user = AuthenticatedUser(user=user, jti=jti)
    request.state.auth = auth_user
    return auth_user


# ---------------------------------------------------------------------------
# Authorization dependencies (role checks)
# ---------------------------------------------------------------------------

async def require_user(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
) -> AuthenticatedUser:
    """Any signed-in, non-banned, non-deleted user."""
    return auth


async def require_admin(
    auth: AuthenticatedUser = Depends(get_authenticated_user),
) -> AuthenticatedUser:
    """Requires the ADMIN role."""
    if not auth.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return auth

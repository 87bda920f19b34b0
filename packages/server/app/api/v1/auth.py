"""
Authentication endpoints.

- Email/Password registration & login
- JWT session cookies (logout revokes the token id in Redis)
- Current-user lookup
"""

from __future__ import annotations

import uuid
from typing import Optional

import jwt
import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import (
    CSRF_COOKIE,
    SESSION_COOKIE,
    AuthenticatedUser,
    create_jwt,
    decode_jwt,
    generate_csrf_token,
    hash_password,
    require_user,
    seconds_until_expiry,
    verify_password,
)
from app.core.config import get_settings
from app.core.database import get_session
from app.core.redis import revoke_session
from app.models.user import User
from awase_shared.schemas.common import UserRole

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()

COOKIE_KWARGS = {
    "httponly": True,
    "secure": not settings.debug,
    "samesite": "lax",
    "path": "/",
    "max_age": settings.jwt_expire_minutes * 60,
}


def _set_session_cookies(response: Response, token: str, csrf: str) -> None:
    """Set the session JWT and CSRF cookies on a response."""
    response.set_cookie(key=SESSION_COOKIE, value=token, **COOKIE_KWARGS)
    response.set_cookie(
        key=CSRF_COOKIE,
        value=csrf,
        httponly=False,  # JS must read this
        secure=not settings.debug,
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    name: str = Field(min_length=1, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class AuthResponse(BaseModel):
    user_id: str
    email: str
    role: str
    message: str


class MeResponse(BaseModel):
    user_id: str
    email: str
    name: str
    display_name: Optional[str]
    role: str


# ---------------------------------------------------------------------------
# Email/Password
# ---------------------------------------------------------------------------

@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Register a new user. The very first account becomes an administrator."""
    result = await session.execute(select(User).where(User.email == body.email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Email already registered")

    if len(body.password) < 8:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")

    result = await session.execute(select(func.count()).select_from(User))
    role = UserRole.ADMIN if result.scalar_one() == 0 else UserRole.USER

    user = User(
        id=uuid.uuid4(),
        email=body.email,
        name=body.name,
        display_name=body.display_name,
        role=role.value,
        password_hash=hash_password(body.password),
    )
    session.add(user)
    await session.flush()

    token, _jti = create_jwt(user.id, user.role)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("user.registered", user_id=str(user.id), role=user.role)
    return AuthResponse(
        user_id=str(user.id), email=user.email, role=user.role, message="Registration successful"
    )


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_session),
):
    """Authenticate with email/password and receive a JWT session."""
    result = await session.execute(select(User).where(User.email == body.email))
    user = result.scalar_one_or_none()

    if not user or not user.password_hash or user.is_deleted:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", email=body.email, reason="bad_password")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user.is_banned:
        log.warning("auth.login_failure", user_id=str(user.id), reason="banned")
        raise HTTPException(status_code=403, detail="User is banned")

    token, _jti = create_jwt(user.id, user.role)
    _set_session_cookies(response, token, generate_csrf_token())

    log.info("auth.login_success", user_id=str(user.id))
    return AuthResponse(
        user_id=str(user.id), email=user.email, role=user.role, message="Login successful"
    )


# ---------------------------------------------------------------------------
# Session Management
# ---------------------------------------------------------------------------

@router.post("/logout")
async def logout(request: Request, response: Response):
    """Invalidate the current session."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        try:
            payload = decode_jwt(token)
        except jwt.PyJWTError:
            payload = None  # already invalid, just clear cookies
        if payload and payload.get("jti"):
            await revoke_session(payload["jti"], seconds_until_expiry(payload))

    response.delete_cookie(SESSION_COOKIE, path="/")
    response.delete_cookie(CSRF_COOKIE, path="/")
    return {"message": "Logged out"}


@router.get("/me", response_model=MeResponse)
async def me(auth: AuthenticatedUser = Depends(require_user)):
    user = auth.user
    return MeResponse(
        user_id=str(user.id),
        email=user.email,
        name=user.name,
        display_name=user.display_name,
        role=user.role,
    )

"""
Auth endpoints — username/password registration and login.

Flow:
  1) POST /auth/register -> creates the user, returns a JWT access token
  2) POST /auth/login    -> verifies the password, returns a JWT access token
  3) Client sends Authorization: Bearer <token> on /orders endpoints
  4) GET /auth/me          -> profile of the caller
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from db_models import User
from domain.errors import ConflictError, NotFoundError, UnauthorizedError
from middleware.auth import hash_password, issue_access_token, require_user, verify_password
from models import LoginRequest, RegisterRequest, TokenResponse, UserProfileResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: User) -> TokenResponse:
    return TokenResponse(
        userId=user.id,
        username=user.username,
        accessToken=issue_access_token(user_id=user.id, username=user.username),
        expiresInSeconds=settings.jwt_access_ttl_minutes * 60,
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    q = await db.execute(
        select(User).where(or_(User.username == request.username, User.email == request.email))
    )
    if q.scalars().first():
        raise ConflictError("Username or email already registered")

    user = User(
        username=request.username,
        email=request.email,
        password_hash=hash_password(request.password),
    )
    db.add(user)
    await db.flush()
    response = _token_response(user)
    await db.commit()

    logger.info(f"Registered user {user.id} ({user.username})")
    return response


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    q = await db.execute(select(User).where(User.username == request.username))
    user = q.scalar_one_or_none()
    if not user or not verify_password(request.password, user.password_hash):
        logger.info(f"Failed login for {request.username!r}")
        raise UnauthorizedError("Invalid username or password")

    return _token_response(user)


@router.get("/me", response_model=UserProfileResponse)
async def me(
    user_id: int = Depends(require_user),
    db: AsyncSession = Depends(get_db),
):
    """Profile of the authenticated caller."""
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", str(user_id))
    return UserProfileResponse.model_validate(user)

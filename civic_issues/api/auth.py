"""
Authentication endpoints: registration, login, logout and session lookup.

Sessions are JWTs carried in an HTTP-only cookie.
"""

import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.api.deps import get_current_user, get_db
from civic_issues.config import settings
from civic_issues.errors import (
    AuthenticationRequiredError,
    ConflictError,
    PermissionDeniedError,
)
from civic_issues.models import ROLE_CITIZEN, User
from civic_issues.schemas import LoginRequest, MessageResponse, RegisterRequest, UserResponse
from civic_issues.security import create_access_token, hash_password, verify_password
from civic_issues.services.notifier import Notifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def set_session_cookie(response: Response, user: User) -> None:
    token = create_access_token(user.id, user.email, user.role, user.department_id)
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_DAYS * 24 * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    data: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """
    Citizen self-registration.

    Staff accounts are created by administrators, so every account made
    here has the citizen role. Signs the new user in.
    """
    email = data.email.lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Email is already registered", details={"field": "email"})

    user = User(
        name=data.name.strip(),
        email=email,
        password_hash=hash_password(data.password),
        phone=data.phone,
        address=data.address,
        role=ROLE_CITIZEN,
        department=None,
        is_active=True,
    )
    db.add(user)
    await db.flush()

    user.welcome_email_sent = await notifier.send_welcome(user)
    set_session_cookie(response, user)
    logger.info(f"Registered citizen {user.email}")
    return user


@router.post("/login", response_model=UserResponse)
async def login(
    data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(User).where(User.email == data.email.lower()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(data.password, user.password_hash):
        logger.warning(f"Failed login for {data.email}")
        raise AuthenticationRequiredError("Invalid email or password")
    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")

    set_session_cookie(response, user)
    logger.info(f"User {user.email} logged in")
    return user


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    response.delete_cookie(settings.AUTH_COOKIE_NAME, path="/")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user

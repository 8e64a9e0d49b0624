"""
API dependency functions for database sessions and authentication.
"""

from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from civic_issues.config import settings
from civic_issues.database import get_db
from civic_issues.errors import AuthenticationRequiredError, PermissionDeniedError
from civic_issues.models import User
from civic_issues.security import decode_access_token

__all__ = ["get_db", "get_current_user", "get_optional_user", "require_roles"]


async def _user_from_cookie(request: Request, db: AsyncSession) -> Optional[User]:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if not token:
        return None

    claims = decode_access_token(token)
    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise AuthenticationRequiredError("Invalid session token")

    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationRequiredError("User no longer exists")
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Authenticated user from the session cookie.

    Raises:
        AuthenticationRequiredError: 401 if there is no valid session
        PermissionDeniedError: 403 if the account is deactivated
    """
    user = await _user_from_cookie(request, db)
    if user is None:
        raise AuthenticationRequiredError()
    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """Authenticated user, or None for anonymous or invalid sessions."""
    try:
        user = await _user_from_cookie(request, db)
    except AuthenticationRequiredError:
        return None
    if user is None or not user.is_active:
        return None
    return user


def require_roles(*roles: str) -> Callable:
    """
    Dependency factory restricting a route to the given roles.

    Usage:
        user: User = Depends(require_roles(ROLE_ADMIN))
    """
    async def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDeniedError(
                f"This action requires one of the roles: {', '.join(roles)}"
            )
        return user

    return dependency

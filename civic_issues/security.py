"""
Password hashing and session token helpers.

Passwords are hashed with bcrypt; sessions are HS256 JWTs carried in an
HTTP-only cookie.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError

from civic_issues.config import settings
from civic_issues.errors import AuthenticationRequiredError


def hash_password(password: str) -> str:
    """Hash a password with the configured bcrypt work factor."""
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    password_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    department_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed session token.

    Args:
        user_id: Subject of the token
        email: User email, embedded for convenience
        role: User role at the time of login
        department_id: Department for department staff
        expires_delta: Custom lifetime (default: ACCESS_TOKEN_EXPIRE_DAYS)

    Returns:
        Encoded JWT string
    """
    expire = datetime.utcnow() + (
        expires_delta or timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    )
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "department_id": str(department_id) if department_id else None,
        "exp": expire,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a session token.

    Raises:
        AuthenticationRequiredError: If the token is expired or malformed
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["exp", "sub"]},
        )
    except ExpiredSignatureError:
        raise AuthenticationRequiredError("Session expired, please log in again")
    except InvalidTokenError:
        raise AuthenticationRequiredError("Invalid session token")

"""
Authentication Dependencies

Customers sign in with the identity provider and call the API with its
session token as ``Authorization: Bearer <jwt>``. The token's ``sub`` is
the provider user id (``users.clerk_id``).

    - development: HS256 with AUTH_JWT_SECRET
    - staging/production: RS256 with AUTH_JWT_PUBLIC_KEY

Anonymous shoppers are identified by the ``X-Session-Id`` header.
"""

import logging
from typing import Optional

import jwt
from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.config import get_settings
from foodapp.core.errors import AuthenticationError, AuthorizationError
from foodapp.database import get_db
from foodapp.models import User, UserRole

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """
    Verify a bearer token and return its claims.

    Raises:
        AuthenticationError: bad signature, expired, no ``sub`` claim, or no
            public key configured outside development
    """
    settings = get_settings()
    if settings.use_real_services:
        if not settings.auth_jwt_public_key:
            logger.error("❌ AUTH_JWT_PUBLIC_KEY is not set, bearer tokens cannot be verified")
            raise AuthenticationError("Authentication is not configured")
        key, algorithm = settings.auth_jwt_public_key, "RS256"
    else:
        key, algorithm = settings.auth_jwt_secret, "HS256"

    options = {"require": ["sub", "exp"]}
    try:
        claims = jwt.decode(
            token,
            key,
            algorithms=[algorithm],
            issuer=settings.auth_jwt_issuer or None,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected token: {e}")
        raise AuthenticationError("Invalid authentication token")
    return claims


async def _user_from_credentials(
    db: AsyncSession, credentials: Optional[HTTPAuthorizationCredentials]
) -> Optional[User]:
    if credentials is None or not credentials.credentials:
        return None

    claims = decode_token(credentials.credentials)
    result = await db.execute(select(User).where(User.clerk_id == claims["sub"]))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthenticationError("User is not registered")
    if not user.is_active:
        raise AuthorizationError("Account is deactivated")
    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """401 without a valid token, 403 for deactivated accounts."""
    user = await _user_from_credentials(db, credentials)
    if user is None:
        raise AuthenticationError()
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """The signed-in user, or None for anonymous callers."""
    return await _user_from_credentials(db, credentials)


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN:
        raise AuthorizationError("Admin access required")
    return user


async def require_staff(user: User = Depends(get_current_user)) -> User:
    """Admins and kitchen staff (order status board)."""
    if user.role not in (UserRole.ADMIN, UserRole.KITCHEN_STAFF):
        raise AuthorizationError("Staff access required")
    return user


async def get_session_id(
    x_session_id: Optional[str] = Header(None, alias="X-Session-Id", max_length=255),
) -> Optional[str]:
    return x_session_id.strip() if x_session_id and x_session_id.strip() else None

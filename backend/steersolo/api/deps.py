"""
Request dependencies: current user and role checks.
"""

from typing import Callable

import jwt
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.database import get_db
from steersolo.core.security import decode_access_token
from steersolo.models.user import User, UserRole


async def get_current_user(
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Current logged-in user (login required).

    Reads a bearer JWT from the Authorization header.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )
    if scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication scheme",
        )

    try:
        payload = decode_access_token(token)
        user_id = int(payload.get("sub") or 0)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except (jwt.PyJWTError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    user = await db.get(User, user_id) if user_id else None
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return user


async def get_current_user_optional(
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Current user if a valid token was sent, otherwise None."""
    if not authorization:
        return None

    try:
        return await get_current_user(authorization, db)
    except HTTPException:
        return None


def require_roles(*roles: UserRole) -> Callable:
    """
    Dependency factory restricting an endpoint to some roles.

    Admins always pass.

    Usage:
        @router.post("/", dependencies=[Depends(require_roles(UserRole.SHOP_OWNER))])
    """

    async def checker(user: User = Depends(get_current_user)) -> User:
        if user.role == UserRole.ADMIN or user.role in roles:
            return user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )

    return checker


require_admin = require_roles(UserRole.ADMIN)
require_shop_owner = require_roles(UserRole.SHOP_OWNER)

"""
Auth API Endpoints.

Registration, login and the current user's profile.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user
from steersolo.api.v1.serializers import user_to_dict
from steersolo.core.config import settings
from steersolo.core.database import get_db
from steersolo.models.user import User, UserRole
from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client
from steersolo.modules.billing.subscriptions import SubscriptionService
from steersolo.modules.users import UserService

router = APIRouter()


# ==================== Schemas ====================


class RegisterRequest(BaseModel):
    """New account."""

    email: EmailStr
    password: str
    full_name: str | None = None
    phone: str | None = None
    role: UserRole = UserRole.CUSTOMER


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def token_response(user: User, token: str) -> dict[str, Any]:
    return {
        "access_token": token,
        "token_type": "bearer",
        "expires_in": settings.jwt_access_token_expire_minutes * 60,
        "user": user_to_dict(user),
    }


# ==================== Endpoints ====================


@router.post("/register", status_code=201)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Create an account and log it in.

    Shop owners start on a free trial.
    """
    users = UserService(db)
    await users.register(
        email=request.email,
        password=request.password,
        full_name=request.full_name,
        role=request.role,
        phone=request.phone,
    )

    result = await users.login(request.email, request.password)
    if not result:
        raise HTTPException(status_code=500, detail="Registration failed")

    user, token = result
    return token_response(user, token)


@router.post("/login")
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Exchange email and password for a bearer token."""
    result = await UserService(db).login(request.email, request.password)
    if not result:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    user, token = result
    return token_response(user, token)


@router.get("/me")
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack_client),
) -> dict[str, Any]:
    """Profile with the computed subscription status."""
    status = await SubscriptionService(db, paystack=paystack).get_status(user)

    return {
        **user_to_dict(user),
        "subscription": status.to_dict(),
    }

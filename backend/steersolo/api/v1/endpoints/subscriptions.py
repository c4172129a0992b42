"""
Subscription API Endpoints.

Plans, subscription status, Paystack subscription checkout and
plan limits.
"""

from typing import Any, Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user
from steersolo.api.v1.serializers import iso, plan_to_dict
from steersolo.core.database import get_db
from steersolo.models.user import User
from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client
from steersolo.modules.billing.subscriptions import SubscriptionService

router = APIRouter()


# ==================== Schemas ====================


class InitializeSubscriptionRequest(BaseModel):
    """Start a subscription checkout."""

    plan_slug: str | None = None
    billing_cycle: Literal["monthly", "yearly"] = "monthly"
    callback_url: str | None = None


class VerifySubscriptionRequest(BaseModel):
    reference: str


def get_subscription_service(
    db: AsyncSession = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack_client),
) -> SubscriptionService:
    return SubscriptionService(db, paystack=paystack)


# ==================== Plans ====================


@router.get("/plans")
async def get_plans(
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> list[dict[str, Any]]:
    """Active plans in display order. Prices are in kobo."""
    plans = await subscriptions.get_plans()
    return [plan_to_dict(plan) for plan in plans]


@router.get("/status")
async def get_status(
    user: User = Depends(get_current_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> dict[str, Any]:
    """Current subscription status: active, trial, free or expired."""
    status = await subscriptions.get_status(user)
    plan = await subscriptions.get_user_plan(user)

    return {
        **status.to_dict(),
        "expires_at": iso(user.subscription_expires_at),
        "billing_cycle": user.subscription_type,
        "plan": plan_to_dict(plan) if plan else None,
    }


# ==================== Payment ====================


@router.post("/initialize")
async def initialize_subscription(
    request: InitializeSubscriptionRequest,
    user: User = Depends(get_current_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> dict[str, Any]:
    """
    Start a Paystack checkout for a plan.

    A running special offer replaces the plan price.
    """
    return await subscriptions.initialize_subscription_payment(
        user,
        plan_slug=request.plan_slug,
        billing_cycle=request.billing_cycle,
        callback_url=request.callback_url,
    )


@router.post("/verify")
async def verify_subscription(
    request: VerifySubscriptionRequest,
    user: User = Depends(get_current_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> dict[str, Any]:
    """Confirm a subscription payment and extend the subscription."""
    user = await subscriptions.verify_subscription_payment(user, request.reference)
    status = await subscriptions.get_status(user)

    return {
        **status.to_dict(),
        "expires_at": iso(user.subscription_expires_at),
        "billing_cycle": user.subscription_type,
    }


# ==================== Limits ====================


@router.get("/limits/products")
async def get_product_limit(
    user: User = Depends(get_current_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> dict[str, Any]:
    """Whether another product can be added on the current plan."""
    return await subscriptions.check_product_limit(user)


@router.get("/features/{feature_name}")
async def get_feature_usage(
    feature_name: str,
    user: User = Depends(get_current_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> dict[str, Any]:
    """This month's usage of a metered feature."""
    return await subscriptions.check_feature_usage(user, feature_name)


@router.post("/features/{feature_name}")
async def use_feature(
    feature_name: str,
    user: User = Depends(get_current_user),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
) -> dict[str, Any]:
    """Count one use of a metered feature. 403 once the allowance is used up."""
    count = await subscriptions.increment_feature_usage(user, feature_name)
    return {"feature_name": feature_name, "current_usage": count}

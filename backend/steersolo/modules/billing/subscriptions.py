"""
Subscription Service - plans, trials, paid activation and plan limits.

Status rules:
- active: subscribed and not yet expired
- trial: not subscribed but inside the trial window
- free: expired or never paid, with a small catalog
- expired: everything else
"""

import math
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from loguru import logger
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.config import settings
from steersolo.core.exceptions import (
    InvalidRequestError,
    LimitExceededError,
    NotFoundError,
    PaymentProviderError,
    PermissionDeniedError,
)
from steersolo.models.billing import (
    FeatureUsage,
    SpecialOffer,
    SubscriptionHistory,
    SubscriptionPlan,
)
from steersolo.models.shop import Product, Shop
from steersolo.models.user import User
from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client

BILLING_CYCLES = ("monthly", "yearly")

ACCESS_STATUSES = {"active", "trial", "free"}


@dataclass
class SubscriptionStatus:
    status: str
    days_remaining: int = 0

    @property
    def can_access_shop_features(self) -> bool:
        return self.status in ACCESS_STATUSES

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["can_access_shop_features"] = self.can_access_shop_features
        return data


def calculate_subscription_status(
    user: User | None,
    product_count: int | None = None,
    now: datetime | None = None,
) -> SubscriptionStatus:
    """
    Work out a user's subscription status.

    Args:
        user: Account to check (None means anonymous)
        product_count: Products the user lists, if known
        now: Override the current time

    Returns:
        Status and whole days left (rounded up)
    """
    if user is None:
        return SubscriptionStatus("expired")

    now = now or datetime.utcnow()
    expires_at = user.subscription_expires_at

    if expires_at and expires_at > now:
        days = math.ceil((expires_at - now).total_seconds() / 86400)
        return SubscriptionStatus("active" if user.is_subscribed else "trial", days)

    if product_count is not None and product_count <= settings.free_plan_max_products:
        return SubscriptionStatus("free")

    return SubscriptionStatus("expired")


def offer_price(offer: SpecialOffer, base_amount: int) -> int:
    """Subscription price in kobo once an offer is applied."""
    if offer.subscription_price:
        return offer.subscription_price
    if offer.discount_percentage:
        original = Decimal(offer.original_price or base_amount)
        discounted = original * (1 - Decimal(offer.discount_percentage) / 100)
        return int(discounted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return base_amount


def current_period(now: datetime | None = None) -> str:
    return (now or datetime.utcnow()).strftime("%Y-%m")


class SubscriptionService:
    """
    Service for shop owner subscriptions.

    Usage:
        subscriptions = SubscriptionService(db_session)
        status = await subscriptions.get_status(user)
        limits = await subscriptions.check_product_limit(user)
    """

    def __init__(self, db: AsyncSession, paystack: PaystackClient | None = None) -> None:
        self.db = db
        self.paystack = paystack or get_paystack_client()

    # ==================== Plans ====================

    async def get_plans(self) -> list[SubscriptionPlan]:
        """Active plans in display order."""
        query = (
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active == True)
            .order_by(SubscriptionPlan.display_order, SubscriptionPlan.id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_plan(self, slug: str) -> SubscriptionPlan | None:
        query = select(SubscriptionPlan).where(SubscriptionPlan.slug == slug)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_user_plan(self, user: User) -> SubscriptionPlan | None:
        if not user.subscription_plan_id:
            return None
        return await self.db.get(SubscriptionPlan, user.subscription_plan_id)

    async def create_plan(self, **fields: Any) -> SubscriptionPlan:
        plan = SubscriptionPlan(**fields)
        self.db.add(plan)
        await self.db.flush()
        return plan

    async def get_active_offer(self, now: datetime | None = None) -> SpecialOffer | None:
        """Newest live subscription offer for shop owners."""
        now = now or datetime.utcnow()
        query = (
            select(SpecialOffer)
            .where(
                SpecialOffer.target_audience == "shop_owners",
                SpecialOffer.is_active == True,
                SpecialOffer.applies_to_subscription == True,
                or_(SpecialOffer.valid_until.is_(None), SpecialOffer.valid_until >= now),
            )
            .order_by(SpecialOffer.created_at.desc(), SpecialOffer.id.desc())
            .limit(1)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    # ==================== Status ====================

    async def count_user_products(self, user: User) -> int:
        """Products across every shop the user owns."""
        total = await self.db.scalar(
            select(func.count(Product.id))
            .join(Shop, Product.shop_id == Shop.id)
            .where(Shop.owner_id == user.id)
        )
        return total or 0

    async def get_status(self, user: User) -> SubscriptionStatus:
        product_count = await self.count_user_products(user)
        return calculate_subscription_status(user, product_count)

    # ==================== Payment ====================

    async def initialize_subscription_payment(
        self,
        user: User,
        plan_slug: str | None = None,
        billing_cycle: str = "monthly",
        callback_url: str | None = None,
    ) -> dict[str, Any]:
        """
        Start a Paystack checkout for a subscription.

        Args:
            user: Paying shop owner
            plan_slug: Plan to buy (base price when omitted)
            billing_cycle: monthly or yearly
            callback_url: Redirect after payment

        Returns:
            {authorization_url, access_code, reference, amount, offer_code}
        """
        if billing_cycle not in BILLING_CYCLES:
            raise InvalidRequestError(f"Unknown billing cycle: {billing_cycle}")

        plan = None
        if plan_slug:
            plan = await self.get_plan(plan_slug)
            if not plan or not plan.is_active:
                raise NotFoundError("Subscription plan not found")

        amount = settings.subscription_base_price_kobo
        if plan and billing_cycle == "yearly" and plan.price_yearly:
            amount = plan.price_yearly
        elif plan and plan.price_monthly:
            amount = plan.price_monthly

        offer = await self.get_active_offer()
        offer_code = None
        if offer:
            amount = offer_price(offer, amount)
            offer_code = offer.code

        days = (
            settings.subscription_days_yearly
            if billing_cycle == "yearly"
            else settings.subscription_days_monthly
        )

        logger.info(
            f"Subscription pricing for user {user.id}: {amount} kobo "
            f"(plan={plan_slug}, cycle={billing_cycle}, offer={offer_code})"
        )

        data = await self.paystack.initialize_transaction(
            email=user.email,
            amount_kobo=amount,
            reference=f"SUB_{user.id}_{int(time.time() * 1000)}",
            callback_url=callback_url or f"{settings.public_site_url}/dashboard",
            metadata={
                "user_id": user.id,
                "plan_id": plan.id if plan else None,
                "billing_cycle": billing_cycle,
                "subscription_type": billing_cycle,
                "subscription_days": days,
                "offer_code": offer_code,
                "original_amount": settings.subscription_base_price_kobo,
            },
        )

        return {
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
            "reference": data.get("reference"),
            "amount": amount,
            "offer_code": offer_code,
        }

    async def activate_subscription(
        self,
        user: User,
        days: int | None = None,
        plan_id: int | None = None,
        billing_cycle: str = "monthly",
        reference: str | None = None,
        now: datetime | None = None,
    ) -> User:
        """
        Extend a subscription by a number of days.

        Time left on an unexpired subscription or trial is kept; the new
        period starts when the current one ends. Re-processing a reference
        that was already applied changes nothing.
        """
        if reference and await self._history_for_reference(reference):
            logger.info(f"Subscription payment {reference} already applied")
            return user

        now = now or datetime.utcnow()
        days = days or settings.subscription_days_monthly

        starts_at = now
        if user.subscription_expires_at and user.subscription_expires_at > now:
            starts_at = user.subscription_expires_at
        expires_at = starts_at + timedelta(days=days)

        user.is_subscribed = True
        user.subscription_expires_at = expires_at
        user.subscription_type = billing_cycle
        if plan_id:
            user.subscription_plan_id = plan_id

        self.db.add(
            SubscriptionHistory(
                user_id=user.id,
                plan_id=plan_id,
                billing_cycle=billing_cycle,
                payment_reference=reference,
                starts_at=starts_at,
                expires_at=expires_at,
            )
        )
        await self.db.flush()

        logger.info(
            f"Subscription activated for user {user.id}: plan={plan_id}, "
            f"cycle={billing_cycle}, expires={expires_at.isoformat()}, ref={reference}"
        )
        return user

    async def verify_subscription_payment(self, user: User, reference: str) -> User:
        """
        Verify a subscription payment and activate it.

        Raises:
            PaymentProviderError: Transaction not successful
            PermissionDeniedError: Payment belongs to another user
        """
        data = await self.paystack.verify_transaction(reference)
        if data.get("status") != "success":
            logger.error(f"Subscription payment {reference} not successful: {data.get('status')}")
            raise PaymentProviderError("Payment verification failed")

        metadata = data.get("metadata") or {}
        owner_id = metadata.get("user_id")
        if owner_id is not None and str(owner_id) != str(user.id):
            raise PermissionDeniedError("Payment belongs to another account")

        return await self.activate_subscription(
            user,
            days=int(metadata.get("subscription_days") or settings.subscription_days_monthly),
            plan_id=metadata.get("plan_id"),
            billing_cycle=metadata.get("billing_cycle") or "monthly",
            reference=reference,
        )

    async def _history_for_reference(self, reference: str) -> SubscriptionHistory | None:
        result = await self.db.execute(
            select(SubscriptionHistory).where(SubscriptionHistory.payment_reference == reference)
        )
        return result.scalars().first()

    # ==================== Limits ====================

    async def check_product_limit(self, user: User) -> dict[str, Any]:
        """
        Whether the user may add another product.

        Returns:
            {can_create, current_count, max_allowed, plan_slug}; max_allowed
            is None for unlimited plans
        """
        current_count = await self.count_user_products(user)
        status = calculate_subscription_status(user, current_count)
        plan = await self.get_user_plan(user)

        if status.status == "active":
            max_allowed = plan.max_products if plan else None
        else:
            max_allowed = settings.free_plan_max_products

        return {
            "can_create": max_allowed is None or current_count < max_allowed,
            "current_count": current_count,
            "max_allowed": max_allowed,
            "plan_slug": plan.slug if plan and status.status == "active" else status.status,
        }

    async def _get_usage(self, user: User, feature_name: str, period: str) -> FeatureUsage | None:
        result = await self.db.execute(
            select(FeatureUsage).where(
                FeatureUsage.user_id == user.id,
                FeatureUsage.feature_name == feature_name,
                FeatureUsage.period == period,
            )
        )
        return result.scalar_one_or_none()

    async def check_feature_usage(self, user: User, feature_name: str) -> dict[str, Any]:
        """
        Monthly allowance for a metered feature.

        Returns:
            {can_use, blocked_by_plan, current_usage, max_usage, is_business, plan_slug}
        """
        status = await self.get_status(user)
        plan = await self.get_user_plan(user)
        plan_slug = plan.slug if plan and status.status == "active" else status.status
        is_business = plan_slug == settings.unlimited_feature_plan_slug

        usage = await self._get_usage(user, feature_name, current_period())
        current_usage = usage.usage_count if usage else 0
        max_usage = None if is_business else settings.feature_usage_monthly_limit

        blocked_by_plan = status.status == "expired"
        can_use = not blocked_by_plan and (max_usage is None or current_usage < max_usage)

        return {
            "can_use": can_use,
            "blocked_by_plan": blocked_by_plan,
            "current_usage": current_usage,
            "max_usage": max_usage,
            "is_business": is_business,
            "plan_slug": plan_slug,
        }

    async def increment_feature_usage(self, user: User, feature_name: str) -> int:
        """
        Count one use of a feature this month.

        Raises:
            LimitExceededError: Allowance used up or plan expired

        Returns:
            Usage count after the increment
        """
        check = await self.check_feature_usage(user, feature_name)
        if check["blocked_by_plan"]:
            raise LimitExceededError("Your subscription has expired")
        if not check["can_use"]:
            raise LimitExceededError(
                f"Monthly limit of {check['max_usage']} reached for {feature_name}"
            )

        period = current_period()
        usage = await self._get_usage(user, feature_name, period)
        if usage is None:
            usage = FeatureUsage(
                user_id=user.id,
                feature_name=feature_name,
                period=period,
                usage_count=0,
            )
            self.db.add(usage)
        usage.usage_count += 1
        await self.db.flush()
        return usage.usage_count

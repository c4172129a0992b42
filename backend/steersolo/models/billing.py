"""
Billing models.

Includes:
- Subscription plans, special offers and subscription history
- Monthly feature usage counters
- Revenue transactions from paid orders
- Shop payouts
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from steersolo.core.database import Base
from steersolo.models.user import enum_values


class PayoutStatus(str, PyEnum):
    """Shop payout request status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SubscriptionPlan(Base):
    """Paid plan for shop owners. Prices are in kobo."""

    __tablename__ = "subscription_plans"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    price_monthly: Mapped[int] = mapped_column(Integer)
    price_yearly: Mapped[int | None] = mapped_column(Integer)
    features: Mapped[list[str]] = mapped_column(JSON, default=list)
    max_products: Mapped[int | None] = mapped_column(Integer)  # None = unlimited
    ai_features_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    priority_support: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<SubscriptionPlan {self.slug}>"


class SpecialOffer(Base):
    """Time-boxed discount on the subscription price."""

    __tablename__ = "special_offers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50))
    title: Mapped[str] = mapped_column(String(255))
    target_audience: Mapped[str] = mapped_column(String(50), default="shop_owners")
    applies_to_subscription: Mapped[bool] = mapped_column(Boolean, default=True)
    subscription_price: Mapped[int | None] = mapped_column(Integer)  # kobo
    original_price: Mapped[int | None] = mapped_column(Integer)  # kobo
    discount_percentage: Mapped[int | None] = mapped_column(Integer)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class SubscriptionHistory(Base):
    """One row per subscription activation or renewal."""

    __tablename__ = "subscription_history"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    plan_id: Mapped[int | None] = mapped_column(ForeignKey("subscription_plans.id"))
    billing_cycle: Mapped[str] = mapped_column(String(20))
    payment_reference: Mapped[str | None] = mapped_column(String(255))
    starts_at: Mapped[datetime] = mapped_column(DateTime)
    expires_at: Mapped[datetime] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class FeatureUsage(Base):
    """Per-user, per-feature usage counter for a calendar month."""

    __tablename__ = "feature_usage"
    __table_args__ = (
        UniqueConstraint("user_id", "feature_name", "period", name="uq_feature_usage_period"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    feature_name: Mapped[str] = mapped_column(String(100))
    period: Mapped[str] = mapped_column(String(7))  # YYYY-MM
    usage_count: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class RevenueTransaction(Base):
    """Money received for a shop through the platform."""

    __tablename__ = "revenue_transactions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), index=True)
    order_id: Mapped[int | None] = mapped_column(ForeignKey("orders.id"))

    gross_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    platform_fee_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))  # net to shop
    currency: Mapped[str] = mapped_column(String(3), default="NGN")

    payment_reference: Mapped[str | None] = mapped_column(String(255), unique=True)
    payment_method: Mapped[str] = mapped_column(String(50))
    transaction_type: Mapped[str] = mapped_column(String(50))
    extra: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)

    recorded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ShopPayout(Base):
    """Withdrawal request from a shop's platform balance."""

    __tablename__ = "shop_payouts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    shop_id: Mapped[int] = mapped_column(ForeignKey("shops.id"), index=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    bank_name: Mapped[str] = mapped_column(String(100))
    account_number: Mapped[str] = mapped_column(String(20))
    account_name: Mapped[str] = mapped_column(String(255))

    status: Mapped[PayoutStatus] = mapped_column(
        Enum(PayoutStatus, values_callable=enum_values, native_enum=False, length=20),
        default=PayoutStatus.PENDING,
    )
    reference: Mapped[str | None] = mapped_column(String(255))
    admin_notes: Mapped[str | None] = mapped_column(Text)

    requested_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime)

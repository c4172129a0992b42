"""
Admin Service - platform-wide figures for the back office.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.models.billing import RevenueTransaction
from steersolo.models.order import Order, PaymentStatus
from steersolo.models.shop import Product, Shop
from steersolo.models.user import User, UserRole


class AdminService:
    """
    Service for admin dashboards.

    Usage:
        admin = AdminService(db_session)
        stats = await admin.get_platform_stats()
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_platform_stats(self) -> dict[str, Any]:
        """
        Headline platform numbers.

        Returns:
            Users by role, shops, products, orders, paid revenue and fees
        """
        result = await self.db.execute(select(User.role, func.count(User.id)).group_by(User.role))
        users_by_role = {role.value: 0 for role in UserRole}
        for role, count in result.all():
            users_by_role[role.value if hasattr(role, "value") else role] = count

        total_shops = await self.db.scalar(select(func.count(Shop.id)))
        active_shops = await self.db.scalar(
            select(func.count(Shop.id)).where(Shop.is_active == True)
        )
        total_products = await self.db.scalar(select(func.count(Product.id)))
        total_orders = await self.db.scalar(select(func.count(Order.id)))
        paid_orders = await self.db.scalar(
            select(func.count(Order.id)).where(Order.payment_status == PaymentStatus.PAID)
        )
        paid_revenue = await self.db.scalar(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(
                Order.payment_status == PaymentStatus.PAID
            )
        )
        platform_fees = await self.db.scalar(
            select(func.coalesce(func.sum(RevenueTransaction.platform_fee), 0))
        )

        return {
            "users": {"total": sum(users_by_role.values()), "by_role": users_by_role},
            "shops": {"total": total_shops or 0, "active": active_shops or 0},
            "products": total_products or 0,
            "orders": {"total": total_orders or 0, "paid": paid_orders or 0},
            "revenue": {
                "paid_total": str(Decimal(str(paid_revenue or 0)).quantize(Decimal("0.01"))),
                "platform_fees": str(Decimal(str(platform_fees or 0)).quantize(Decimal("0.01"))),
            },
        }

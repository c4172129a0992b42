"""
Coupon Service - shop discount codes.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.exceptions import ConflictError, InvalidRequestError, NotFoundError
from steersolo.core.utils import format_naira
from steersolo.models.shop import Coupon, DiscountType, Shop


@dataclass
class CouponValidation:
    """Outcome of checking a coupon against an order total."""

    valid: bool
    discount: Decimal = Decimal("0")
    error: str | None = None
    coupon: Coupon | None = None


def normalize_code(code: str) -> str:
    return code.strip().upper()


def calculate_discount(coupon: Coupon, order_total: Decimal) -> Decimal:
    """Discount for an order total, never more than the total itself."""
    value = Decimal(str(coupon.discount_value))
    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = (order_total * value / 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    else:
        discount = value
    return min(discount, order_total)


def check_coupon(
    coupon: Coupon | None,
    order_total: Decimal,
    now: datetime | None = None,
) -> CouponValidation:
    """
    Apply the coupon rules to an already loaded coupon.

    Rules are checked in order and the first failure wins.
    """
    now = now or datetime.utcnow()

    if coupon is None or not coupon.is_active:
        return CouponValidation(valid=False, error="Invalid coupon code")

    if coupon.valid_from and coupon.valid_from > now:
        return CouponValidation(valid=False, error="Coupon not yet active", coupon=coupon)

    if coupon.valid_until and coupon.valid_until < now:
        return CouponValidation(valid=False, error="Coupon expired", coupon=coupon)

    # 0 or None means unlimited
    if coupon.max_uses and coupon.used_count >= coupon.max_uses:
        return CouponValidation(valid=False, error="Coupon fully redeemed", coupon=coupon)

    if coupon.min_order_amount is not None and order_total < coupon.min_order_amount:
        return CouponValidation(
            valid=False,
            error=f"Minimum order {format_naira(coupon.min_order_amount)}",
            coupon=coupon,
        )

    return CouponValidation(
        valid=True,
        discount=calculate_discount(coupon, order_total),
        coupon=coupon,
    )


class CouponService:
    """
    Service for shop coupons.

    Usage:
        coupons = CouponService(db_session)
        result = await coupons.validate_coupon("SAVE10", shop.id, Decimal("5000"))
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_coupon(self, coupon_id: int) -> Coupon | None:
        return await self.db.get(Coupon, coupon_id)

    async def get_by_code(self, shop_id: int, code: str) -> Coupon | None:
        query = select(Coupon).where(
            Coupon.shop_id == shop_id,
            Coupon.code == normalize_code(code),
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_coupons(self, shop: Shop) -> list[Coupon]:
        """Shop coupons, newest first."""
        query = (
            select(Coupon)
            .where(Coupon.shop_id == shop.id)
            .order_by(Coupon.created_at.desc(), Coupon.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_coupon(
        self,
        shop: Shop,
        code: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        min_order_amount: Decimal | None = None,
        max_uses: int | None = None,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
    ) -> Coupon:
        """
        Create a coupon for a shop.

        Raises:
            InvalidRequestError: Empty code or out-of-range discount
            ConflictError: Code already used in this shop
        """
        code = normalize_code(code)
        if not code:
            raise InvalidRequestError("Coupon code is required")

        if discount_value <= 0:
            raise InvalidRequestError("Discount value must be positive")
        if discount_type == DiscountType.PERCENTAGE and discount_value > 100:
            raise InvalidRequestError("Percentage discount cannot exceed 100")

        if await self.get_by_code(shop.id, code):
            raise ConflictError(f"Coupon code {code} already exists")

        coupon = Coupon(
            shop_id=shop.id,
            code=code,
            discount_type=discount_type,
            discount_value=discount_value,
            min_order_amount=min_order_amount,
            max_uses=max_uses,
            valid_from=valid_from,
            valid_until=valid_until,
            is_active=True,
            used_count=0,
        )
        self.db.add(coupon)
        await self.db.flush()
        return coupon

    async def toggle_coupon(self, coupon: Coupon, is_active: bool) -> Coupon:
        coupon.is_active = is_active
        await self.db.flush()
        return coupon

    async def delete_coupon(self, coupon: Coupon) -> None:
        await self.db.delete(coupon)
        await self.db.flush()

    async def validate_coupon(
        self,
        code: str,
        shop_id: int,
        order_total: Decimal,
    ) -> CouponValidation:
        """Look up a code for a shop and check it against the order total."""
        coupon = await self.get_by_code(shop_id, code)
        return check_coupon(coupon, order_total)

    async def increment_usage(self, coupon: Coupon) -> None:
        coupon.used_count = (coupon.used_count or 0) + 1
        await self.db.flush()

    async def require_coupon(self, shop: Shop, coupon_id: int) -> Coupon:
        coupon = await self.get_coupon(coupon_id)
        if not coupon or coupon.shop_id != shop.id:
            raise NotFoundError("Coupon not found")
        return coupon

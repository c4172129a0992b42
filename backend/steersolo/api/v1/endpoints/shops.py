"""
Shop API Endpoints.

Storefronts and everything an owner manages under a shop:
products, coupons, payouts and bookings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user, get_current_user_optional, require_shop_owner
from steersolo.api.v1.serializers import (
    booking_to_dict,
    coupon_to_dict,
    money,
    payout_to_dict,
    product_to_dict,
    shop_to_dict,
)
from steersolo.core.database import get_db
from steersolo.models.order import BookingStatus
from steersolo.models.shop import DiscountType, ProductType, Shop
from steersolo.models.user import User
from steersolo.modules.billing.payments import PaymentService
from steersolo.modules.billing.payouts import PayoutService
from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client
from steersolo.modules.notifications.whatsapp import (
    build_chat_link,
    check_phone,
    product_inquiry_message,
    shop_inquiry_message,
)
from steersolo.modules.shop.bookings import BookingService
from steersolo.modules.shop.coupons import CouponService
from steersolo.modules.shop.service import ShopService, ensure_shop_owner

router = APIRouter()


# ==================== Schemas ====================


class ShopSettings(BaseModel):
    """Branding and payment fields shared by create and update."""

    description: str | None = None
    whatsapp_number: str | None = None
    state: str | None = None
    country: str | None = None
    logo_url: str | None = None
    banner_url: str | None = None
    primary_color: str | None = None
    secondary_color: str | None = None
    accent_color: str | None = None
    theme_mode: str | None = None
    font_style: str | None = None
    payment_method: str | None = None
    bank_name: str | None = None
    bank_account_name: str | None = None
    bank_account_number: str | None = None
    paystack_subaccount_code: str | None = None

    @field_validator("whatsapp_number")
    @classmethod
    def validate_whatsapp_number(cls, v: str | None) -> str | None:
        """Reject numbers that cannot be used for WhatsApp links."""
        return check_phone(v)


class CreateShopRequest(ShopSettings):
    """Open a new shop."""

    shop_name: str
    shop_slug: str | None = None


class UpdateShopRequest(ShopSettings):
    shop_name: str | None = None


class CreateProductRequest(BaseModel):
    """Add a product or service."""

    name: str
    price: Decimal = Field(ge=0)
    type: ProductType = ProductType.PRODUCT
    description: str | None = None
    stock_quantity: int = Field(0, ge=0)
    is_available: bool = True
    duration_minutes: int | None = None
    booking_required: bool = False
    image_url: str | None = None
    video_url: str | None = None


class CreateCouponRequest(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    min_order_amount: Decimal | None = None
    max_uses: int | None = Field(None, ge=1)
    valid_from: datetime | None = None
    valid_until: datetime | None = None


class ToggleCouponRequest(BaseModel):
    is_active: bool


class ValidateCouponRequest(BaseModel):
    code: str
    order_total: Decimal


class PayoutRequest(BaseModel):
    """Withdraw from the shop balance. Bank fields default to the shop's."""

    amount: Decimal
    bank_name: str | None = None
    account_number: str | None = None
    account_name: str | None = None


class SubaccountRequest(BaseModel):
    """Settlement account for split payments. Bank codes come from GET /payments/banks."""

    bank_code: str = Field(..., min_length=1, max_length=20)
    account_number: str = Field(..., pattern=r"^\d{10}$")
    business_name: str | None = Field(None, max_length=200)


async def get_owned_shop(shop_id: int, user: User, db: AsyncSession) -> Shop:
    shop = await ShopService(db).require_shop(shop_id)
    ensure_shop_owner(shop, user)
    return shop


# ==================== Shops ====================


@router.get("")
async def list_shops(
    search: str | None = Query(None, description="Search by name or description"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Active shops directory."""
    result = await ShopService(db).list_shops(page=page, limit=limit, search=search)

    return {
        "items": [shop_to_dict(shop) for shop in result["items"]],
        "meta": result["meta"],
    }


@router.post("", status_code=201)
async def create_shop(
    request: CreateShopRequest,
    user: User = Depends(require_shop_owner),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Open a shop. The URL slug is generated from the name unless given."""
    fields = request.model_dump(exclude_none=True)
    shop = await ShopService(db).create_shop(
        owner=user,
        shop_name=fields.pop("shop_name"),
        description=fields.pop("description", None),
        whatsapp_number=fields.pop("whatsapp_number", None),
        shop_slug=fields.pop("shop_slug", None),
        **fields,
    )
    return shop_to_dict(shop, private=True)


@router.get("/mine")
async def get_my_shops(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Shops owned by the current user."""
    shops = await ShopService(db).get_owner_shops(user)
    return [shop_to_dict(shop, private=True) for shop in shops]


@router.get("/{slug}")
async def get_shop(
    slug: str,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Public storefront by slug. Suspended shops are only visible to their owner."""
    shop = await ShopService(db).get_shop_by_slug(slug)
    is_owner = bool(user and (user.id == shop.owner_id or user.is_admin)) if shop else False

    if not shop or (not shop.is_active and not is_owner):
        raise HTTPException(status_code=404, detail="Shop not found")

    return shop_to_dict(shop, private=is_owner)


@router.patch("/{shop_id}")
async def update_shop(
    shop_id: int,
    request: UpdateShopRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Update profile, branding or payment settings."""
    shops = ShopService(db)
    shop = await shops.require_shop(shop_id)
    shop = await shops.update_shop(shop, user, **request.model_dump(exclude_unset=True))
    return shop_to_dict(shop, private=True)


@router.get("/{slug}/whatsapp")
async def get_shop_whatsapp_link(
    slug: str,
    product_id: int | None = Query(None, description="Ask about a specific product"),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Click-to-chat link for contacting the shop."""
    shops = ShopService(db)
    shop = await shops.get_shop_by_slug(slug)
    if not shop or not shop.is_active:
        raise HTTPException(status_code=404, detail="Shop not found")
    if not shop.whatsapp_number:
        raise HTTPException(status_code=404, detail="Shop has no WhatsApp number")

    message = shop_inquiry_message(shop.shop_name)
    if product_id is not None:
        product = await shops.get_product(product_id)
        if not product or product.shop_id != shop.id:
            raise HTTPException(status_code=404, detail="Product not found")
        message = product_inquiry_message(shop.shop_name, product.name)

    return {"url": build_chat_link(shop.whatsapp_number, message), "message": message}


# ==================== Products ====================


@router.get("/{shop_id}/products")
async def list_shop_products(
    shop_id: int,
    type: ProductType | None = Query(None, description="product or service"),
    available_only: bool = Query(False),
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Catalog of one shop."""
    shops = ShopService(db)
    await shops.require_shop(shop_id)
    result = await shops.list_products(
        shop_id,
        type=type,
        available_only=available_only,
        search=search,
        page=page,
        limit=limit,
    )

    return {
        "items": [product_to_dict(product) for product in result["items"]],
        "meta": result["meta"],
    }


@router.post("/{shop_id}/products", status_code=201)
async def create_product(
    shop_id: int,
    request: CreateProductRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Add a product or service. Subject to the plan's product limit."""
    shops = ShopService(db)
    shop = await shops.require_shop(shop_id)
    product = await shops.create_product(shop, user, **request.model_dump())
    return product_to_dict(product)


# ==================== Coupons ====================


@router.get("/{shop_id}/coupons")
async def list_coupons(
    shop_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    shop = await get_owned_shop(shop_id, user, db)
    coupons = await CouponService(db).list_coupons(shop)
    return [coupon_to_dict(coupon) for coupon in coupons]


@router.post("/{shop_id}/coupons", status_code=201)
async def create_coupon(
    shop_id: int,
    request: CreateCouponRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    shop = await get_owned_shop(shop_id, user, db)
    coupon = await CouponService(db).create_coupon(shop, **request.model_dump())
    return coupon_to_dict(coupon)


@router.patch("/{shop_id}/coupons/{coupon_id}")
async def toggle_coupon(
    shop_id: int,
    coupon_id: int,
    request: ToggleCouponRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Switch a coupon on or off."""
    shop = await get_owned_shop(shop_id, user, db)
    coupons = CouponService(db)
    coupon = await coupons.require_coupon(shop, coupon_id)
    coupon = await coupons.toggle_coupon(coupon, request.is_active)
    return coupon_to_dict(coupon)


@router.delete("/{shop_id}/coupons/{coupon_id}")
async def delete_coupon(
    shop_id: int,
    coupon_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    shop = await get_owned_shop(shop_id, user, db)
    coupons = CouponService(db)
    coupon = await coupons.require_coupon(shop, coupon_id)
    await coupons.delete_coupon(coupon)
    return {"status": "deleted", "id": coupon_id}


@router.post("/{shop_id}/coupons/validate")
async def validate_coupon(
    shop_id: int,
    request: ValidateCouponRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Check a coupon code against an order total.

    Always returns 200; `valid` and `error` say whether it applies.
    """
    result = await CouponService(db).validate_coupon(request.code, shop_id, request.order_total)

    return {
        "valid": result.valid,
        "discount": money(result.discount),
        "error": result.error,
        "code": result.coupon.code if result.coupon and result.valid else None,
    }


# ==================== Payouts ====================


@router.get("/{shop_id}/payouts/balance")
async def get_payout_balance(
    shop_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Revenue, payouts and what is left to withdraw."""
    shop = await get_owned_shop(shop_id, user, db)
    balance = await PayoutService(db).get_balance(shop)
    return {key: money(value) for key, value in balance.items()}


@router.get("/{shop_id}/payouts")
async def get_payout_history(
    shop_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    shop = await get_owned_shop(shop_id, user, db)
    payouts = await PayoutService(db).get_payout_history(shop)
    return [payout_to_dict(payout) for payout in payouts]


@router.post("/{shop_id}/payouts", status_code=201)
async def request_payout(
    shop_id: int,
    request: PayoutRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Request a withdrawal to the shop's bank account."""
    shop = await get_owned_shop(shop_id, user, db)
    payout = await PayoutService(db).request_payout(shop, **request.model_dump())
    return payout_to_dict(payout)


@router.post("/{shop_id}/paystack-subaccount")
async def connect_paystack_subaccount(
    shop_id: int,
    request: SubaccountRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack_client),
) -> dict[str, Any]:
    """Connect the shop's bank account so order payments settle to it directly."""
    shop = await get_owned_shop(shop_id, user, db)
    shop = await PaymentService(db, paystack=paystack).connect_subaccount(
        shop, user, **request.model_dump()
    )
    return shop_to_dict(shop, private=True)


# ==================== Bookings ====================


@router.get("/{shop_id}/bookings")
async def list_shop_bookings(
    shop_id: int,
    status: BookingStatus | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Shop calendar, earliest first."""
    await get_owned_shop(shop_id, user, db)
    bookings = await BookingService(db).list_bookings(shop_id, status=status)
    return [booking_to_dict(booking) for booking in bookings]

"""
Shop Service - Storefront and catalog management.
"""

from decimal import Decimal
from typing import Any

from loguru import logger
from slugify import slugify
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.exceptions import (
    ConflictError,
    InvalidRequestError,
    LimitExceededError,
    NotFoundError,
    PermissionDeniedError,
)
from steersolo.core.utils import page_meta
from steersolo.models.order import Booking, OrderItem
from steersolo.models.shop import Product, ProductReview, ProductType, Shop, WishlistItem
from steersolo.models.user import User
from steersolo.modules.activity import ActivityLogService
from steersolo.modules.billing.subscriptions import SubscriptionService

SHOP_UPDATABLE_FIELDS = {
    "shop_name",
    "description",
    "whatsapp_number",
    "state",
    "country",
    "logo_url",
    "banner_url",
    "primary_color",
    "secondary_color",
    "accent_color",
    "theme_mode",
    "font_style",
    "payment_method",
    "bank_name",
    "bank_account_name",
    "bank_account_number",
    "paystack_subaccount_code",
}

PRODUCT_UPDATABLE_FIELDS = {
    "name",
    "description",
    "type",
    "price",
    "stock_quantity",
    "is_available",
    "duration_minutes",
    "booking_required",
    "image_url",
    "video_url",
}


def is_available(product: Product, quantity: int = 1) -> bool:
    """Listed as available and, for physical products, enough stock."""
    if not product.is_available:
        return False
    if product.type == ProductType.PRODUCT:
        return product.stock_quantity >= quantity
    return True


def ensure_shop_owner(shop: Shop, user: User) -> None:
    """Raise unless the user owns the shop or is an admin."""
    if shop.owner_id != user.id and not user.is_admin:
        raise PermissionDeniedError("You do not manage this shop")


class ShopService:
    """
    Service for managing shops and their products.

    Usage:
        shops = ShopService(db_session)
        shop = await shops.create_shop(owner, name="Ada's Kitchen")
        products = await shops.list_products(shop.id, type=ProductType.SERVICE)
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize shop service with database session."""
        self.db = db
        self.activity = ActivityLogService(db)

    # ==================== Shops ====================

    async def _slug_taken(self, slug: str) -> bool:
        existing = await self.db.execute(select(Shop.id).where(Shop.shop_slug == slug))
        return existing.scalar_one_or_none() is not None

    async def _unique_slug(self, name: str) -> str:
        base_slug = slugify(name)[:200] or "shop"
        slug = base_slug

        counter = 1
        while await self._slug_taken(slug):
            slug = f"{base_slug}-{counter}"
            counter += 1

        return slug

    async def create_shop(
        self,
        owner: User,
        shop_name: str,
        description: str | None = None,
        whatsapp_number: str | None = None,
        shop_slug: str | None = None,
        **fields: Any,
    ) -> Shop:
        """
        Create a shop for an entrepreneur.

        Args:
            owner: Shop owner
            shop_name: Display name
            description: Shop description
            whatsapp_number: Contact number for click-to-chat
            shop_slug: Requested slug (generated from the name when omitted)
            **fields: Branding or payment settings

        Returns:
            Created shop

        Raises:
            ConflictError: Requested slug already taken
        """
        if not shop_name or not shop_name.strip():
            raise InvalidRequestError("Shop name is required")

        if shop_slug:
            slug = slugify(shop_slug)[:200]
            if not slug:
                raise InvalidRequestError("Invalid shop slug")
            if await self._slug_taken(slug):
                raise ConflictError(f"Shop URL '{slug}' is already taken")
        else:
            slug = await self._unique_slug(shop_name)

        shop = Shop(
            owner_id=owner.id,
            shop_name=shop_name.strip(),
            shop_slug=slug,
            description=description,
            whatsapp_number=whatsapp_number,
            is_active=True,
            **{key: value for key, value in fields.items() if key in SHOP_UPDATABLE_FIELDS},
        )
        self.db.add(shop)
        await self.db.flush()

        logger.info(f"Shop created: {shop.shop_slug} (owner {owner.id})")
        await self.activity.log(
            "create", "shop", user=owner, resource_id=shop.id, resource_name=shop.shop_name
        )
        return shop

    async def get_shop(self, shop_id: int) -> Shop | None:
        return await self.db.get(Shop, shop_id)

    async def get_shop_by_slug(self, slug: str) -> Shop | None:
        """Get shop by slug."""
        query = select(Shop).where(Shop.shop_slug == slug)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_shop(self, shop_id: int) -> Shop:
        shop = await self.get_shop(shop_id)
        if not shop:
            raise NotFoundError("Shop not found")
        return shop

    async def get_owner_shops(self, owner: User) -> list[Shop]:
        query = (
            select(Shop)
            .where(Shop.owner_id == owner.id)
            .order_by(Shop.created_at.desc(), Shop.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_shops(
        self,
        page: int = 1,
        limit: int = 20,
        search: str | None = None,
        include_inactive: bool = False,
    ) -> dict[str, Any]:
        """
        Paginated shop directory.

        Args:
            page: 1-based page number
            limit: Page size
            search: Match in name or description
            include_inactive: Admin listing

        Returns:
            {"items": [...], "meta": {...}}
        """
        conditions = []
        if not include_inactive:
            conditions.append(Shop.is_active == True)
        if search:
            search_pattern = f"%{search}%"
            conditions.append(
                Shop.shop_name.ilike(search_pattern) | Shop.description.ilike(search_pattern)
            )

        total = await self.db.scalar(select(func.count(Shop.id)).where(*conditions))
        query = (
            select(Shop)
            .where(*conditions)
            .order_by(Shop.created_at.desc(), Shop.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        result = await self.db.execute(query)

        return {"items": list(result.scalars().all()), "meta": page_meta(page, limit, total or 0)}

    async def update_shop(self, shop: Shop, user: User, **fields: Any) -> Shop:
        """Update profile, branding or payment settings. Unknown fields are ignored."""
        ensure_shop_owner(shop, user)

        changed = []
        for key, value in fields.items():
            if key in SHOP_UPDATABLE_FIELDS:
                setattr(shop, key, value)
                changed.append(key)

        await self.db.flush()
        await self.activity.log(
            "update",
            "shop",
            user=user,
            resource_id=shop.id,
            resource_name=shop.shop_name,
            details={"fields": changed},
        )
        return shop

    async def set_shop_active(self, shop: Shop, is_active: bool, admin: User) -> Shop:
        """Activate or suspend a shop."""
        if not admin.is_admin:
            raise PermissionDeniedError("Admin access required")

        shop.is_active = is_active
        await self.db.flush()

        logger.info(f"Shop {shop.shop_slug} {'activated' if is_active else 'deactivated'}")
        await self.activity.log(
            "approve" if is_active else "reject",
            "shop",
            user=admin,
            resource_id=shop.id,
            resource_name=shop.shop_name,
        )
        return shop

    # ==================== Products ====================

    async def list_products(
        self,
        shop_id: int,
        type: ProductType | None = None,
        available_only: bool = False,
        search: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> dict[str, Any]:
        """
        Get shop products with filters.

        Args:
            shop_id: Shop to list
            type: product or service
            available_only: Hide unavailable items
            search: Search in name/description
            page: 1-based page number
            limit: Page size

        Returns:
            {"items": [...], "meta": {...}}
        """
        conditions = [Product.shop_id == shop_id]
        if type:
            conditions.append(Product.type == type)
        if available_only:
            conditions.append(Product.is_available == True)
        if search:
            search_pattern = f"%{search}%"
            conditions.append(
                Product.name.ilike(search_pattern) | Product.description.ilike(search_pattern)
            )

        total = await self.db.scalar(select(func.count(Product.id)).where(*conditions))
        query = (
            select(Product)
            .where(*conditions)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        result = await self.db.execute(query)

        return {"items": list(result.scalars().all()), "meta": page_meta(page, limit, total or 0)}

    async def get_product(self, product_id: int) -> Product | None:
        return await self.db.get(Product, product_id)

    async def require_product(self, product_id: int) -> Product:
        product = await self.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found")
        return product

    async def create_product(
        self,
        shop: Shop,
        user: User,
        name: str,
        price: Decimal,
        type: ProductType = ProductType.PRODUCT,
        description: str | None = None,
        stock_quantity: int = 0,
        is_available: bool = True,
        duration_minutes: int | None = None,
        booking_required: bool = False,
        image_url: str | None = None,
        video_url: str | None = None,
    ) -> Product:
        """
        Add a product or service to a shop.

        Raises:
            PermissionDeniedError: Not the shop owner
            LimitExceededError: Plan product limit reached
        """
        ensure_shop_owner(shop, user)

        if price < 0:
            raise InvalidRequestError("Price cannot be negative")
        if stock_quantity < 0:
            raise InvalidRequestError("Stock cannot be negative")

        if not user.is_admin:
            limit = await SubscriptionService(self.db).check_product_limit(user)
            if not limit["can_create"]:
                raise LimitExceededError(
                    f"Product limit reached ({limit['current_count']}/{limit['max_allowed']}). "
                    "Upgrade your plan to add more products."
                )

        product = Product(
            shop_id=shop.id,
            name=name,
            description=description,
            type=type,
            price=price,
            stock_quantity=stock_quantity,
            is_available=is_available,
            duration_minutes=duration_minutes if type == ProductType.SERVICE else None,
            booking_required=booking_required if type == ProductType.SERVICE else False,
            image_url=image_url,
            video_url=video_url,
        )
        self.db.add(product)
        await self.db.flush()

        await self.activity.log(
            "create", "product", user=user, resource_id=product.id, resource_name=product.name
        )
        return product

    async def update_product(self, product: Product, user: User, **fields: Any) -> Product:
        shop = await self.require_shop(product.shop_id)
        ensure_shop_owner(shop, user)

        if fields.get("price") is not None and fields["price"] < 0:
            raise InvalidRequestError("Price cannot be negative")
        if fields.get("stock_quantity") is not None and fields["stock_quantity"] < 0:
            raise InvalidRequestError("Stock cannot be negative")

        for key, value in fields.items():
            if key in PRODUCT_UPDATABLE_FIELDS:
                setattr(product, key, value)

        await self.db.flush()
        await self.activity.log(
            "update", "product", user=user, resource_id=product.id, resource_name=product.name
        )
        return product

    async def delete_product(self, product: Product, user: User) -> None:
        """
        Remove a product. Order lines keep their snapshot but lose the link.

        Raises:
            ConflictError: Service still has bookings
        """
        shop = await self.require_shop(product.shop_id)
        ensure_shop_owner(shop, user)

        bookings = await self.db.scalar(
            select(func.count(Booking.id)).where(Booking.service_id == product.id)
        )
        if bookings:
            raise ConflictError("Service has bookings; mark it unavailable instead")

        await self.db.execute(
            update(OrderItem).where(OrderItem.product_id == product.id).values(product_id=None)
        )
        await self.db.execute(delete(WishlistItem).where(WishlistItem.product_id == product.id))
        await self.db.execute(delete(ProductReview).where(ProductReview.product_id == product.id))

        await self.activity.log(
            "delete", "product", user=user, resource_id=product.id, resource_name=product.name
        )
        await self.db.delete(product)
        await self.db.flush()

    async def adjust_stock(self, product: Product, delta: int) -> int:
        """
        Change stock by delta, clamped at zero.

        Returns:
            New stock quantity
        """
        product.stock_quantity = max(0, (product.stock_quantity or 0) + delta)
        await self.db.flush()
        return product.stock_quantity

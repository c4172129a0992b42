"""
Cart Service - Shopping cart management with Redis.
"""

import json
from decimal import Decimal
from typing import Any

import redis.asyncio as redis
from loguru import logger

from steersolo.core.config import settings


class CartService:
    """
    Shopping cart service using Redis for storage.

    One cart per user/session and shop, stored with a TTL for automatic
    expiration. Prices are kept as decimal strings.

    Usage:
        cart = CartService()
        await cart.add_item(user_id, shop_id, product_id, "Ankara Dress", Decimal("15000"))
        items = await cart.get_items(user_id, shop_id)
    """

    def __init__(self, client: redis.Redis | None = None) -> None:
        """
        Initialize cart service.

        Args:
            client: Ready Redis client (connects lazily from settings when omitted)
        """
        self._redis: redis.Redis | None = client
        self.ttl = settings.cart_ttl_seconds

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.from_url(
            str(settings.redis_url),
            encoding="utf-8",
            decode_responses=True,
        )

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    def _cart_key(self, owner: int | str, shop_id: int) -> str:
        """Generate Redis key for a cart."""
        return f"cart:{owner}:{shop_id}"

    async def get_items(self, owner: int | str, shop_id: int) -> list[dict[str, Any]]:
        """
        Get all items in a cart.

        Returns:
            List of cart items with product info and quantities
        """
        if not self._redis:
            await self.connect()

        cart_data = await self._redis.get(self._cart_key(owner, shop_id))
        if not cart_data:
            return []

        try:
            return json.loads(cart_data)
        except json.JSONDecodeError:
            logger.warning(f"Invalid cart data for {owner} in shop {shop_id}")
            return []

    async def _save_items(
        self,
        owner: int | str,
        shop_id: int,
        items: list[dict[str, Any]],
    ) -> None:
        """Save cart items to Redis."""
        key = self._cart_key(owner, shop_id)
        if not items:
            await self._redis.delete(key)
            return
        await self._redis.setex(key, self.ttl, json.dumps(items))

    async def add_item(
        self,
        owner: int | str,
        shop_id: int,
        product_id: int,
        product_name: str,
        price: Decimal,
        quantity: int = 1,
        image_url: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Add item to cart or update quantity if exists.

        Args:
            owner: User or session ID
            shop_id: Shop the cart belongs to
            product_id: Product ID
            product_name: Product name for display
            price: Unit price
            quantity: Quantity to add
            image_url: Product image URL

        Returns:
            Updated cart items
        """
        items = await self.get_items(owner, shop_id)

        # Check if product already in cart
        for item in items:
            if item["product_id"] == product_id:
                item["quantity"] += quantity
                item["total"] = str(Decimal(item["price"]) * item["quantity"])
                await self._save_items(owner, shop_id, items)
                return items

        items.append(
            {
                "product_id": product_id,
                "name": product_name,
                "price": str(price),
                "quantity": quantity,
                "total": str(price * quantity),
                "image_url": image_url,
            }
        )
        await self._save_items(owner, shop_id, items)
        return items

    async def get_quantity(self, owner: int | str, shop_id: int, product_id: int) -> int:
        """Quantity of a product already in the cart, 0 if absent."""
        items = await self.get_items(owner, shop_id)
        return sum(item["quantity"] for item in items if item["product_id"] == product_id)

    async def update_quantity(
        self,
        owner: int | str,
        shop_id: int,
        product_id: int,
        quantity: int,
    ) -> list[dict[str, Any]]:
        """
        Update item quantity in cart.

        Args:
            owner: User or session ID
            shop_id: Shop the cart belongs to
            product_id: Product ID
            quantity: New quantity (0 to remove)

        Returns:
            Updated cart items
        """
        items = await self.get_items(owner, shop_id)

        if quantity <= 0:
            items = [item for item in items if item["product_id"] != product_id]
        else:
            for item in items:
                if item["product_id"] == product_id:
                    item["quantity"] = quantity
                    item["total"] = str(Decimal(item["price"]) * quantity)
                    break

        await self._save_items(owner, shop_id, items)
        return items

    async def remove_item(
        self,
        owner: int | str,
        shop_id: int,
        product_id: int,
    ) -> list[dict[str, Any]]:
        """Remove item from cart."""
        return await self.update_quantity(owner, shop_id, product_id, 0)

    async def clear(self, owner: int | str, shop_id: int) -> None:
        """Clear all items from cart."""
        if not self._redis:
            await self.connect()
        await self._redis.delete(self._cart_key(owner, shop_id))

    async def get_totals(self, owner: int | str, shop_id: int) -> dict[str, Any]:
        """
        Calculate cart totals.

        Returns:
            {"subtotal": "<decimal>", "item_count": n}
        """
        items = await self.get_items(owner, shop_id)

        subtotal = Decimal("0")
        item_count = 0
        for item in items:
            subtotal += Decimal(item["total"])
            item_count += item["quantity"]

        return {"subtotal": str(subtotal), "item_count": item_count}


# Singleton instance
_cart_service: CartService | None = None


async def get_cart_service() -> CartService:
    """Get or create cart service singleton."""
    global _cart_service
    if _cart_service is None:
        _cart_service = CartService()
        await _cart_service.connect()
    return _cart_service


async def close_cart_service() -> None:
    global _cart_service
    if _cart_service is not None:
        await _cart_service.disconnect()
        _cart_service = None

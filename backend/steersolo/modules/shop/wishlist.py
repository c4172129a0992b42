"""
Wishlist Service - products saved by users.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from steersolo.core.exceptions import NotFoundError
from steersolo.models.shop import Product, WishlistItem
from steersolo.models.user import User


class WishlistService:
    """
    Service for user wishlists.

    Usage:
        wishlist = WishlistService(db_session)
        added = await wishlist.toggle(user, product.id)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def _get_item(self, user: User, product_id: int) -> WishlistItem | None:
        result = await self.db.execute(
            select(WishlistItem).where(
                WishlistItem.user_id == user.id,
                WishlistItem.product_id == product_id,
            )
        )
        return result.scalar_one_or_none()

    async def toggle(self, user: User, product_id: int) -> bool:
        """
        Add the product, or remove it if already saved.

        Returns:
            True when added, False when removed
        """
        item = await self._get_item(user, product_id)
        if item:
            await self.db.delete(item)
            await self.db.flush()
            return False

        if not await self.db.get(Product, product_id):
            raise NotFoundError("Product not found")

        self.db.add(WishlistItem(user_id=user.id, product_id=product_id))
        await self.db.flush()
        return True

    async def is_in_wishlist(self, user: User, product_id: int) -> bool:
        return await self._get_item(user, product_id) is not None

    async def get_wishlist(self, user: User) -> list[WishlistItem]:
        """Saved products with their shop, newest first."""
        query = (
            select(WishlistItem)
            .options(selectinload(WishlistItem.product).selectinload(Product.shop))
            .where(WishlistItem.user_id == user.id)
            .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

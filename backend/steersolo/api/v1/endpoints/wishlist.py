"""
Wishlist API Endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user
from steersolo.api.v1.serializers import iso, product_to_dict
from steersolo.core.database import get_db
from steersolo.models.user import User
from steersolo.modules.shop.wishlist import WishlistService

router = APIRouter()


@router.get("")
async def get_wishlist(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Saved products with their shop, newest first."""
    items = await WishlistService(db).get_wishlist(user)

    return [
        {
            "id": item.id,
            "added_at": iso(item.created_at),
            "product": product_to_dict(item.product),
            "shop": {
                "id": item.product.shop.id,
                "shop_name": item.product.shop.shop_name,
                "shop_slug": item.product.shop.shop_slug,
            },
        }
        for item in items
    ]


@router.post("/{product_id}/toggle")
async def toggle_wishlist(
    product_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Save a product, or remove it if already saved."""
    added = await WishlistService(db).toggle(user, product_id)
    return {"product_id": product_id, "in_wishlist": added}

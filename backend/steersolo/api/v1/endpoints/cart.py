"""
Cart API Endpoints.

Carts are kept in Redis per shop. Logged-in users are keyed by user
id; guests send an X-Session-Id header.
"""

from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user_optional
from steersolo.core.database import get_db
from steersolo.models.user import User
from steersolo.modules.shop.cart import CartService, get_cart_service
from steersolo.modules.shop.service import ShopService, is_available

router = APIRouter()


# ==================== Schemas ====================


class AddToCartRequest(BaseModel):
    """Add item to cart. Name and price are taken from the catalog."""

    shop_id: int
    product_id: int
    quantity: int = Field(1, ge=1)


class UpdateCartRequest(BaseModel):
    """Update cart item quantity. Zero removes the item."""

    shop_id: int
    product_id: int
    quantity: int = Field(ge=0)


async def get_cart_owner(
    user: User | None = Depends(get_current_user_optional),
    x_session_id: str | None = Header(None),
) -> str:
    """Cart key owner: the user id, or the guest session id."""
    if user:
        return str(user.id)
    if x_session_id:
        return f"guest-{x_session_id}"
    raise HTTPException(status_code=400, detail="Login or send an X-Session-Id header")


async def cart_response(cart: CartService, owner: str, shop_id: int) -> dict[str, Any]:
    items = await cart.get_items(owner, shop_id)
    totals = await cart.get_totals(owner, shop_id)
    return {"shop_id": shop_id, "items": items, **totals}


# ==================== Endpoints ====================


@router.get("")
async def get_cart(
    shop_id: int = Query(...),
    owner: str = Depends(get_cart_owner),
    cart: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    """Get the shopping cart for one shop."""
    return await cart_response(cart, owner, shop_id)


@router.post("/add")
async def add_to_cart(
    request: AddToCartRequest,
    owner: str = Depends(get_cart_owner),
    cart: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Add item to cart."""
    product = await ShopService(db).get_product(request.product_id)
    if not product or product.shop_id != request.shop_id:
        raise HTTPException(status_code=404, detail="Product not found")
    in_cart = await cart.get_quantity(owner, request.shop_id, product.id)
    if not is_available(product, in_cart + request.quantity):
        raise HTTPException(status_code=400, detail=f"{product.name} is not available")

    await cart.add_item(
        owner,
        request.shop_id,
        product.id,
        product.name,
        product.price,
        quantity=request.quantity,
        image_url=product.image_url,
    )
    return await cart_response(cart, owner, request.shop_id)


@router.put("/update")
async def update_cart(
    request: UpdateCartRequest,
    owner: str = Depends(get_cart_owner),
    cart: CartService = Depends(get_cart_service),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Update item quantity in cart."""
    if request.quantity > 0:
        product = await ShopService(db).get_product(request.product_id)
        if not product or product.shop_id != request.shop_id:
            raise HTTPException(status_code=404, detail="Product not found")
        if not is_available(product, request.quantity):
            raise HTTPException(status_code=400, detail=f"{product.name} is not available")

    await cart.update_quantity(owner, request.shop_id, request.product_id, request.quantity)
    return await cart_response(cart, owner, request.shop_id)


@router.delete("/{product_id}")
async def remove_from_cart(
    product_id: int,
    shop_id: int = Query(...),
    owner: str = Depends(get_cart_owner),
    cart: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    """Remove item from cart."""
    await cart.remove_item(owner, shop_id, product_id)
    return await cart_response(cart, owner, shop_id)


@router.delete("")
async def clear_cart(
    shop_id: int = Query(...),
    owner: str = Depends(get_cart_owner),
    cart: CartService = Depends(get_cart_service),
) -> dict[str, Any]:
    """Clear the cart for one shop."""
    await cart.clear(owner, shop_id)
    return {"status": "cleared", "shop_id": shop_id}

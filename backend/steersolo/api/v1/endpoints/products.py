"""
Product API Endpoints.

Single product reads and owner edits, plus customer reviews.
Listing and creation live under /shops/{shop_id}/products.
"""

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user
from steersolo.api.v1.serializers import product_to_dict, review_to_dict
from steersolo.core.database import get_db
from steersolo.models.shop import ProductType
from steersolo.models.user import User
from steersolo.modules.shop.reviews import ReviewService
from steersolo.modules.shop.service import ShopService

router = APIRouter()


# ==================== Schemas ====================


class UpdateProductRequest(BaseModel):
    """Fields an owner may change. Omitted fields stay as they are."""

    name: str | None = None
    description: str | None = None
    type: ProductType | None = None
    price: Decimal | None = Field(None, ge=0)
    stock_quantity: int | None = Field(None, ge=0)
    is_available: bool | None = None
    duration_minutes: int | None = None
    booking_required: bool | None = None
    image_url: str | None = None
    video_url: str | None = None


class CreateReviewRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    order_id: int | None = None


# ==================== Products ====================


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get product by ID."""
    product = await ShopService(db).get_product(product_id)

    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    return product_to_dict(product)


@router.patch("/{product_id}")
async def update_product(
    product_id: int,
    request: UpdateProductRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    shops = ShopService(db)
    product = await shops.require_product(product_id)
    product = await shops.update_product(product, user, **request.model_dump(exclude_unset=True))
    return product_to_dict(product)


@router.delete("/{product_id}")
async def delete_product(
    product_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Delete a product.

    Past orders keep their line snapshot. Services with bookings
    cannot be deleted (409); mark them unavailable instead.
    """
    shops = ShopService(db)
    product = await shops.require_product(product_id)
    await shops.delete_product(product, user)
    return {"status": "deleted", "id": product_id}


# ==================== Reviews ====================


@router.get("/{product_id}/reviews")
async def list_reviews(
    product_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Reviews for a product, newest first."""
    await ShopService(db).require_product(product_id)
    result = await ReviewService(db).list_product_reviews(product_id, page=page, limit=limit)

    return {
        "items": [review_to_dict(review) for review in result["items"]],
        "meta": result["meta"],
    }


@router.post("/{product_id}/reviews", status_code=201)
async def create_review(
    product_id: int,
    request: CreateReviewRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Review a product once."""
    review = await ReviewService(db).create_review(
        product_id,
        request.rating,
        request.comment,
        customer=user,
        order_id=request.order_id,
    )
    return review_to_dict(review)

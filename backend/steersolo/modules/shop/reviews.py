"""
Review Service - product ratings.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.exceptions import ConflictError, InvalidRequestError, NotFoundError
from steersolo.core.utils import page_meta
from steersolo.models.shop import Product, ProductReview
from steersolo.models.user import User
from steersolo.modules.activity import ActivityLogService


class ReviewService:
    """
    Service for product reviews.

    Usage:
        reviews = ReviewService(db_session)
        await reviews.create_review(product.id, 5, "Great!", customer=user)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def create_review(
        self,
        product_id: int,
        rating: int,
        comment: str | None,
        customer: User,
        order_id: int | None = None,
    ) -> ProductReview:
        """
        Review a product. One review per customer per product.

        Raises:
            InvalidRequestError: Rating outside 1-5
            ConflictError: Customer already reviewed this product
        """
        if not 1 <= rating <= 5:
            raise InvalidRequestError("Rating must be between 1 and 5")

        product = await self.db.get(Product, product_id)
        if not product:
            raise NotFoundError("Product not found")

        existing = await self.db.execute(
            select(ProductReview.id).where(
                ProductReview.product_id == product_id,
                ProductReview.customer_id == customer.id,
            )
        )
        if existing.scalar_one_or_none():
            raise ConflictError("You have already reviewed this product")

        review = ProductReview(
            product_id=product_id,
            customer_id=customer.id,
            order_id=order_id,
            customer_name=customer.full_name,
            rating=rating,
            comment=comment,
        )
        self.db.add(review)
        await self.db.flush()

        await self._refresh_rating(product)
        await ActivityLogService(self.db).log(
            "create", "review", user=customer, resource_id=review.id, resource_name=product.name
        )
        return review

    async def _refresh_rating(self, product: Product) -> None:
        row = (
            await self.db.execute(
                select(func.avg(ProductReview.rating), func.count(ProductReview.id)).where(
                    ProductReview.product_id == product.id
                )
            )
        ).one()
        average, count = row
        product.average_rating = (
            Decimal(str(average)).quantize(Decimal("0.01")) if average is not None else None
        )
        product.total_reviews = count or 0
        await self.db.flush()

    async def list_product_reviews(
        self,
        product_id: int,
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        """Reviews for a product, newest first."""
        total = await self.db.scalar(
            select(func.count(ProductReview.id)).where(ProductReview.product_id == product_id)
        )
        query = (
            select(ProductReview)
            .where(ProductReview.product_id == product_id)
            .order_by(ProductReview.created_at.desc(), ProductReview.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        result = await self.db.execute(query)
        return {"items": list(result.scalars().all()), "meta": page_meta(page, limit, total or 0)}

"""
Admin API Endpoints.

Back office: platform stats, orders, shop moderation, payouts,
prizes, courses, plans and the activity log. Admin role required.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import require_admin
from steersolo.api.v1.serializers import (
    activity_to_dict,
    claim_to_dict,
    course_to_dict,
    order_to_dict,
    payout_to_dict,
    plan_to_dict,
    prize_to_dict,
    shop_to_dict,
)
from steersolo.core.database import get_db
from steersolo.models.billing import PayoutStatus
from steersolo.models.order import OrderStatus
from steersolo.models.user import User
from steersolo.modules.activity import ActivityLogService
from steersolo.modules.admin import AdminService
from steersolo.modules.billing.payouts import PayoutService
from steersolo.modules.billing.subscriptions import SubscriptionService
from steersolo.modules.rewards import CourseService, RewardsService
from steersolo.modules.shop.orders import OrderService
from steersolo.modules.shop.service import ShopService

router = APIRouter()


# ==================== Schemas ====================


class ShopActiveRequest(BaseModel):
    is_active: bool


class PayoutStatusRequest(BaseModel):
    status: PayoutStatus
    admin_notes: str | None = None
    reference: str | None = None


class PrizeRequest(BaseModel):
    title: str
    description: str = ""
    points_required: int = Field(gt=0)
    image_url: str | None = None
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True


class UpdatePrizeRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    points_required: int | None = Field(None, gt=0)
    image_url: str | None = None
    stock_quantity: int | None = Field(None, ge=0)
    is_active: bool | None = None


class CourseRequest(BaseModel):
    title: str
    description: str | None = None
    content: str = ""
    image_url: str | None = None
    video_url: str | None = None
    reward_points: int = Field(0, ge=0)
    target_audience: str = "all"
    is_active: bool = True


class UpdateCourseRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    content: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    reward_points: int | None = Field(None, ge=0)
    target_audience: str | None = None
    is_active: bool | None = None


class PlanRequest(BaseModel):
    """Subscription plan. Prices in kobo."""

    name: str
    slug: str
    description: str | None = None
    price_monthly: int = Field(ge=0)
    price_yearly: int | None = Field(None, ge=0)
    features: list[str] = []
    max_products: int | None = Field(None, ge=0)
    ai_features_enabled: bool = False
    priority_support: bool = False
    display_order: int = 0


# ==================== Stats ====================


@router.get("/stats")
async def get_stats(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Headline platform numbers."""
    return await AdminService(db).get_platform_stats()


# ==================== Orders ====================


@router.get("/orders")
async def list_all_orders(
    status: OrderStatus | None = Query(None),
    shop_id: int | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    result = await OrderService(db).list_orders(
        shop_id=shop_id, status=status, page=page, limit=limit
    )
    return {
        "items": [order_to_dict(order) for order in result["items"]],
        "meta": result["meta"],
    }


# ==================== Shops ====================


@router.get("/shops")
async def list_all_shops(
    search: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """All shops, suspended ones included."""
    result = await ShopService(db).list_shops(
        page=page, limit=limit, search=search, include_inactive=True
    )
    return {
        "items": [shop_to_dict(shop, private=True) for shop in result["items"]],
        "meta": result["meta"],
    }


@router.patch("/shops/{shop_id}/active")
async def set_shop_active(
    shop_id: int,
    request: ShopActiveRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Activate or suspend a shop."""
    shops = ShopService(db)
    shop = await shops.require_shop(shop_id)
    shop = await shops.set_shop_active(shop, request.is_active, admin)
    return shop_to_dict(shop, private=True)


# ==================== Payouts ====================


@router.get("/payouts")
async def list_pending_payouts(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Payouts waiting to be processed, oldest first."""
    payouts = await PayoutService(db).list_pending_payouts()
    return [payout_to_dict(payout) for payout in payouts]


@router.patch("/payouts/{payout_id}")
async def update_payout(
    payout_id: int,
    request: PayoutStatusRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    payouts = PayoutService(db)
    payout = await payouts.get_payout(payout_id)
    payout = await payouts.update_payout_status(
        payout,
        request.status,
        admin_notes=request.admin_notes,
        reference=request.reference,
    )
    await ActivityLogService(db).log(
        "update",
        "payout",
        user=admin,
        resource_id=payout.id,
        details={"status": payout.status.value},
    )
    return payout_to_dict(payout)


# ==================== Prizes ====================


@router.get("/prizes")
async def list_prizes(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    prizes = await RewardsService(db).get_prizes(include_inactive=True)
    return [prize_to_dict(prize) for prize in prizes]


@router.post("/prizes", status_code=201)
async def create_prize(
    request: PrizeRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    prize = await RewardsService(db).create_prize(**request.model_dump())
    return prize_to_dict(prize)


@router.patch("/prizes/{prize_id}")
async def update_prize(
    prize_id: int,
    request: UpdatePrizeRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    rewards = RewardsService(db)
    prize = await rewards.get_prize(prize_id)
    prize = await rewards.update_prize(prize, **request.model_dump(exclude_unset=True))
    return prize_to_dict(prize)


@router.delete("/prizes/{prize_id}")
async def delete_prize(
    prize_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Retire a prize. Existing claims are kept."""
    rewards = RewardsService(db)
    await rewards.delete_prize(await rewards.get_prize(prize_id))
    return {"status": "deactivated", "id": prize_id}


@router.get("/claims")
async def list_claims(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    claims = await RewardsService(db).get_claims()
    return [claim_to_dict(claim) for claim in claims]


@router.post("/claims/{claim_id}/fulfil")
async def fulfil_claim(
    claim_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    claim = await RewardsService(db).fulfil_claim(claim_id)
    return claim_to_dict(claim)


# ==================== Courses ====================


@router.get("/courses")
async def list_courses(
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    courses = await CourseService(db).get_courses(include_inactive=True)
    return [course_to_dict(course, with_content=True) for course in courses]


@router.post("/courses", status_code=201)
async def create_course(
    request: CourseRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    course = await CourseService(db).create_course(admin, **request.model_dump())
    return course_to_dict(course, with_content=True)


@router.patch("/courses/{course_id}")
async def update_course(
    course_id: int,
    request: UpdateCourseRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    courses = CourseService(db)
    course = await courses.get_course(course_id)
    course = await courses.update_course(course, **request.model_dump(exclude_unset=True))
    return course_to_dict(course, with_content=True)


@router.delete("/courses/{course_id}")
async def delete_course(
    course_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    courses = CourseService(db)
    await courses.delete_course(await courses.get_course(course_id))
    return {"status": "deactivated", "id": course_id}


# ==================== Plans ====================


@router.post("/plans", status_code=201)
async def create_plan(
    request: PlanRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    plan = await SubscriptionService(db).create_plan(**request.model_dump())
    return plan_to_dict(plan)


# ==================== Activity ====================


@router.get("/activity")
async def get_activity_logs(
    resource_type: str | None = Query(None),
    action_type: str | None = Query(None),
    user_id: int | None = Query(None),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    search: str | None = Query(None, description="Match user email or resource name"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Audit trail, newest first."""
    result = await ActivityLogService(db).get_activity_logs(
        page=page,
        limit=limit,
        resource_type=resource_type,
        action_type=action_type,
        user_id=user_id,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return {
        "items": [activity_to_dict(entry) for entry in result["items"]],
        "meta": result["meta"],
    }


@router.get("/activity/stats")
async def get_activity_stats(
    days: int = Query(7, ge=1, le=365),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    return await ActivityLogService(db).get_activity_stats(days=days)

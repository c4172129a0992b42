"""
Rewards API Endpoints.

Points balance, prize catalog and prize claims.
Prize management is under /admin/prizes.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user
from steersolo.api.v1.serializers import claim_to_dict, prize_to_dict
from steersolo.core.database import get_db
from steersolo.models.user import User
from steersolo.modules.rewards import RewardsService

router = APIRouter()


@router.get("/points")
async def get_points(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    return {"user_id": user.id, "total_points": await RewardsService(db).get_points(user)}


@router.get("/prizes")
async def get_prizes(
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Active prizes, cheapest first."""
    prizes = await RewardsService(db).get_prizes()
    return [prize_to_dict(prize) for prize in prizes]


@router.post("/prizes/{prize_id}/claim", status_code=201)
async def claim_prize(
    prize_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Spend points on a prize."""
    rewards = RewardsService(db)
    claim = await rewards.claim_prize(user, prize_id)

    return {
        **claim_to_dict(claim),
        "remaining_points": await rewards.get_points(user),
    }


@router.get("/claims")
async def get_my_claims(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    claims = await RewardsService(db).get_claims(user)
    return [claim_to_dict(claim) for claim in claims]

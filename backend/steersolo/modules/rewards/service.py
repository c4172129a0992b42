"""
Rewards Service - points, prizes and prize claims.
"""

from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from steersolo.core.exceptions import InvalidRequestError, NotFoundError
from steersolo.models.rewards import ClaimStatus, Prize, PrizeClaim, RewardsPoints
from steersolo.models.user import User
from steersolo.modules.activity import ActivityLogService

PRIZE_FIELDS = {"title", "description", "points_required", "image_url", "stock_quantity", "is_active"}


class RewardsService:
    """
    Service for reward points and prize redemption.

    Usage:
        rewards = RewardsService(db_session)
        await rewards.add_points(user, 50)
        claim = await rewards.claim_prize(user, prize.id)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ==================== Points ====================

    async def _get_account(self, user: User) -> RewardsPoints | None:
        result = await self.db.execute(
            select(RewardsPoints).where(RewardsPoints.user_id == user.id)
        )
        return result.scalar_one_or_none()

    async def get_points(self, user: User) -> int:
        account = await self._get_account(user)
        return account.total_points if account else 0

    async def add_points(self, user: User, points: int) -> int:
        """
        Credit points to a user.

        Returns:
            New balance
        """
        if points <= 0:
            raise InvalidRequestError("Points must be positive")

        account = await self._get_account(user)
        if account is None:
            account = RewardsPoints(user_id=user.id, total_points=0)
            self.db.add(account)

        account.total_points += points
        await self.db.flush()

        logger.info(f"User {user.id} earned {points} points (balance {account.total_points})")
        return account.total_points

    # ==================== Prizes ====================

    async def get_prizes(self, include_inactive: bool = False) -> list[Prize]:
        """Prizes, cheapest first."""
        query = select(Prize).order_by(Prize.points_required, Prize.id)
        if not include_inactive:
            query = query.where(Prize.is_active == True)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_prize(self, prize_id: int) -> Prize:
        prize = await self.db.get(Prize, prize_id)
        if not prize:
            raise NotFoundError("Prize not found")
        return prize

    async def create_prize(self, **fields: Any) -> Prize:
        if fields.get("points_required", 0) <= 0:
            raise InvalidRequestError("Points required must be positive")
        prize = Prize(**{key: value for key, value in fields.items() if key in PRIZE_FIELDS})
        self.db.add(prize)
        await self.db.flush()
        return prize

    async def update_prize(self, prize: Prize, **fields: Any) -> Prize:
        for key, value in fields.items():
            if key in PRIZE_FIELDS:
                setattr(prize, key, value)
        await self.db.flush()
        return prize

    async def delete_prize(self, prize: Prize) -> None:
        # Claims keep their history; retire the prize instead of deleting it
        prize.is_active = False
        await self.db.flush()

    # ==================== Claims ====================

    async def claim_prize(self, user: User, prize_id: int) -> PrizeClaim:
        """
        Redeem points for a prize.

        Raises:
            NotFoundError: Prize missing or inactive
            InvalidRequestError: Out of stock or not enough points
        """
        prize = await self.db.get(Prize, prize_id)
        if not prize or not prize.is_active:
            raise NotFoundError("Prize not found")
        if prize.stock_quantity <= 0:
            raise InvalidRequestError("Prize is out of stock")

        account = await self._get_account(user)
        balance = account.total_points if account else 0
        if account is None or balance < prize.points_required:
            raise InvalidRequestError(
                f"Not enough points: {prize.points_required} required, {balance} available"
            )

        account.total_points -= prize.points_required
        prize.stock_quantity -= 1

        claim = PrizeClaim(
            prize=prize,
            user_id=user.id,
            points_spent=prize.points_required,
            status=ClaimStatus.PENDING,
        )
        self.db.add(claim)
        await self.db.flush()

        logger.info(f"User {user.id} claimed prize {prize.id} for {prize.points_required} points")
        await ActivityLogService(self.db).log(
            "create", "prize", user=user, resource_id=prize.id, resource_name=prize.title
        )
        return claim

    async def get_claims(self, user: User | None = None) -> list[PrizeClaim]:
        """Claims of one user, or all claims for admins."""
        query = select(PrizeClaim).options(selectinload(PrizeClaim.prize))
        if user is not None:
            query = query.where(PrizeClaim.user_id == user.id)
        query = query.order_by(PrizeClaim.claimed_at.desc(), PrizeClaim.id.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def fulfil_claim(self, claim_id: int) -> PrizeClaim:
        query = select(PrizeClaim).options(selectinload(PrizeClaim.prize)).where(
            PrizeClaim.id == claim_id
        )
        claim = (await self.db.execute(query)).scalar_one_or_none()
        if not claim:
            raise NotFoundError("Claim not found")
        if claim.status != ClaimStatus.PENDING:
            raise InvalidRequestError(f"Claim is already {claim.status.value}")

        claim.status = ClaimStatus.FULFILLED
        claim.fulfilled_at = datetime.utcnow()
        await self.db.flush()
        return claim

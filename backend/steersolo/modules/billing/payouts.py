"""
Payout Service - shop revenue ledger and withdrawals.

Revenue rows are written when an order is paid through the platform;
payouts draw down the resulting balance.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.config import settings
from steersolo.core.exceptions import InvalidRequestError, NotFoundError
from steersolo.core.utils import format_naira
from steersolo.models.billing import PayoutStatus, RevenueTransaction, ShopPayout
from steersolo.models.order import Order
from steersolo.models.shop import Shop

CENT = Decimal("0.01")


def split_platform_fee(
    gross_amount: Decimal,
    fee_percentage: Decimal | None = None,
) -> tuple[Decimal, Decimal]:
    """
    Split a payment into platform fee and net amount for the shop.

    Returns:
        (platform_fee, net_amount)
    """
    pct = settings.platform_fee_percentage if fee_percentage is None else fee_percentage
    fee = (gross_amount * pct / 100).quantize(CENT)
    return fee, (gross_amount - fee).quantize(CENT)


class PayoutService:
    """
    Service for shop balances and payout requests.

    Usage:
        payouts = PayoutService(db_session)
        balance = await payouts.get_balance(shop)
        payout = await payouts.request_payout(shop, Decimal("10000"), ...)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ==================== Revenue ====================

    async def get_revenue_by_reference(self, reference: str) -> RevenueTransaction | None:
        result = await self.db.execute(
            select(RevenueTransaction).where(RevenueTransaction.payment_reference == reference)
        )
        return result.scalar_one_or_none()

    async def record_revenue(
        self,
        order: Order,
        reference: str | None,
        gross_amount: Decimal | None = None,
        payment_method: str = "paystack",
        metadata: dict[str, Any] | None = None,
    ) -> RevenueTransaction:
        """
        Record money received for an order. One row per payment reference.

        Args:
            order: Paid order
            reference: Provider reference
            gross_amount: Amount paid (defaults to the order total)
            payment_method: paystack, bank_transfer, cash...
            metadata: Extra provider data

        Returns:
            New or existing transaction
        """
        if reference:
            existing = await self.get_revenue_by_reference(reference)
            if existing:
                return existing

        gross = Decimal(str(gross_amount if gross_amount is not None else order.total_amount))
        fee, net = split_platform_fee(gross)

        transaction = RevenueTransaction(
            shop_id=order.shop_id,
            order_id=order.id,
            gross_amount=gross,
            platform_fee_percentage=settings.platform_fee_percentage,
            platform_fee=fee,
            amount=net,
            currency=settings.currency,
            payment_reference=reference,
            payment_method=payment_method,
            transaction_type="order_payment",
            extra=metadata,
        )
        self.db.add(transaction)
        await self.db.flush()

        logger.info(
            f"Revenue recorded for shop {order.shop_id}: gross={gross} fee={fee} net={net} "
            f"ref={reference}"
        )
        return transaction

    # ==================== Balance ====================

    async def get_balance(self, shop: Shop) -> dict[str, Decimal]:
        """
        Withdrawable balance for a shop.

        Returns:
            {total_revenue, completed_payouts, pending_payouts, available_balance}
        """
        revenue = await self.db.scalar(
            select(func.coalesce(func.sum(RevenueTransaction.amount), 0)).where(
                RevenueTransaction.shop_id == shop.id,
                RevenueTransaction.payment_method == "paystack",
            )
        )
        completed = await self._sum_payouts(shop, [PayoutStatus.COMPLETED])
        pending = await self._sum_payouts(shop, [PayoutStatus.PENDING, PayoutStatus.PROCESSING])

        total_revenue = Decimal(str(revenue or 0)).quantize(CENT)
        return {
            "total_revenue": total_revenue,
            "completed_payouts": completed,
            "pending_payouts": pending,
            "available_balance": (total_revenue - completed - pending).quantize(CENT),
        }

    async def _sum_payouts(self, shop: Shop, statuses: list[PayoutStatus]) -> Decimal:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(ShopPayout.amount), 0)).where(
                ShopPayout.shop_id == shop.id,
                ShopPayout.status.in_(statuses),
            )
        )
        return Decimal(str(total or 0)).quantize(CENT)

    # ==================== Payouts ====================

    async def request_payout(
        self,
        shop: Shop,
        amount: Decimal,
        bank_name: str | None = None,
        account_number: str | None = None,
        account_name: str | None = None,
    ) -> ShopPayout:
        """
        Ask for a withdrawal. Bank details default to the shop's settings.

        Raises:
            InvalidRequestError: Below minimum, above balance or no bank details
        """
        if amount < settings.min_payout_amount:
            raise InvalidRequestError(
                f"Minimum payout is {format_naira(settings.min_payout_amount)}"
            )

        balance = await self.get_balance(shop)
        if amount > balance["available_balance"]:
            raise InvalidRequestError(
                f"Insufficient balance. Available: {format_naira(balance['available_balance'])}"
            )

        bank_name = bank_name or shop.bank_name
        account_number = account_number or shop.bank_account_number
        account_name = account_name or shop.bank_account_name
        if not (bank_name and account_number and account_name):
            raise InvalidRequestError("Bank details are required for payouts")

        payout = ShopPayout(
            shop_id=shop.id,
            amount=amount,
            bank_name=bank_name,
            account_number=account_number,
            account_name=account_name,
            status=PayoutStatus.PENDING,
        )
        self.db.add(payout)
        await self.db.flush()

        logger.info(f"Payout requested for shop {shop.id}: {amount}")
        return payout

    async def get_payout_history(self, shop: Shop) -> list[ShopPayout]:
        query = (
            select(ShopPayout)
            .where(ShopPayout.shop_id == shop.id)
            .order_by(ShopPayout.requested_at.desc(), ShopPayout.id.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_pending_payouts(self) -> list[ShopPayout]:
        """Payouts waiting for an admin, oldest first."""
        query = (
            select(ShopPayout)
            .where(ShopPayout.status.in_([PayoutStatus.PENDING, PayoutStatus.PROCESSING]))
            .order_by(ShopPayout.requested_at, ShopPayout.id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_payout(self, payout_id: int) -> ShopPayout:
        payout = await self.db.get(ShopPayout, payout_id)
        if not payout:
            raise NotFoundError("Payout not found")
        return payout

    async def update_payout_status(
        self,
        payout: ShopPayout,
        status: PayoutStatus,
        admin_notes: str | None = None,
        reference: str | None = None,
    ) -> ShopPayout:
        """Admin processing of a payout."""
        payout.status = PayoutStatus(status)
        if admin_notes is not None:
            payout.admin_notes = admin_notes
        if reference is not None:
            payout.reference = reference
        if payout.status in (PayoutStatus.COMPLETED, PayoutStatus.FAILED):
            payout.processed_at = datetime.utcnow()

        await self.db.flush()
        logger.info(f"Payout {payout.id} marked {payout.status.value}")
        return payout

"""
Payment Service - Paystack checkout for orders and webhook processing.

Order payments are split to the shop's Paystack subaccount when it
has one (the subaccount bears the fees); otherwise the platform
collects directly.
"""

import time
from typing import Any

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.config import settings
from steersolo.core.exceptions import (
    ConflictError,
    InvalidRequestError,
    NotFoundError,
    PaymentProviderError,
)
from steersolo.core.utils import from_kobo, to_kobo
from steersolo.models.order import Order, OrderStatus, PaymentStatus
from steersolo.models.shop import Shop
from steersolo.models.user import User
from steersolo.modules.activity import ActivityLogService
from steersolo.modules.billing.paystack import PaystackClient, PaystackEvent, get_paystack_client
from steersolo.modules.billing.subscriptions import SubscriptionService
from steersolo.modules.shop.orders import OrderService
from steersolo.modules.shop.service import ensure_shop_owner


def order_reference(order_id: int) -> str:
    return f"ORDER_{order_id}_{int(time.time() * 1000)}"


def order_id_from_reference(reference: str) -> int | None:
    """Order id embedded in an ORDER_<id>_<ms> reference."""
    parts = reference.split("_")
    if len(parts) == 3 and parts[0] == "ORDER" and parts[1].isdigit():
        return int(parts[1])
    return None


class PaymentService:
    """
    Service for order payments.

    Usage:
        payments = PaymentService(db_session)
        checkout = await payments.initialize_order_payment(order)
        # ... customer pays on Paystack ...
        order = await payments.verify_order_payment(checkout["reference"])
    """

    def __init__(
        self,
        db: AsyncSession,
        paystack: PaystackClient | None = None,
        orders: OrderService | None = None,
    ) -> None:
        self.db = db
        self.paystack = paystack or get_paystack_client()
        self.orders = orders or OrderService(db)

    async def initialize_order_payment(
        self,
        order: Order,
        callback_url: str | None = None,
    ) -> dict[str, Any]:
        """
        Start a Paystack checkout for an order.

        Returns:
            {authorization_url, access_code, reference, payment_mode}

        Raises:
            ConflictError: Order already paid
            InvalidRequestError: Order cancelled or without an email
        """
        if order.payment_status == PaymentStatus.PAID:
            raise ConflictError("Order is already paid")
        if order.status == OrderStatus.CANCELLED:
            raise InvalidRequestError("Cancelled orders cannot be paid")
        if not order.customer_email:
            raise InvalidRequestError("Customer email is required for payment")

        shop = await self.db.get(Shop, order.shop_id)
        if not shop:
            raise NotFoundError("Shop not found")

        subaccount = shop.paystack_subaccount_code or None
        payment_mode = "split" if subaccount else "direct"
        reference = order_reference(order.id)

        logger.info(
            f"Initializing {payment_mode} payment for order {order.order_number}: "
            f"{order.total_amount} (subaccount={subaccount or 'none'})"
        )

        data = await self.paystack.initialize_transaction(
            email=order.customer_email,
            amount_kobo=to_kobo(order.total_amount),
            reference=reference,
            callback_url=callback_url or f"{settings.public_site_url}/orders/{order.id}",
            metadata={
                "order_id": order.id,
                "shop_id": order.shop_id,
                "order_number": order.order_number,
                "payment_mode": payment_mode,
                "custom_fields": [
                    {"display_name": "Order ID", "variable_name": "order_id", "value": order.id},
                    {"display_name": "Shop", "variable_name": "shop_name", "value": shop.shop_name},
                ],
            },
            subaccount=subaccount,
        )

        order.payment_reference = data.get("reference") or reference
        await self.db.flush()

        return {
            "authorization_url": data.get("authorization_url"),
            "access_code": data.get("access_code"),
            "reference": order.payment_reference,
            "payment_mode": payment_mode,
        }

    async def connect_subaccount(
        self,
        shop: Shop,
        user: User,
        bank_code: str,
        account_number: str,
        business_name: str | None = None,
    ) -> Shop:
        """
        Create a Paystack subaccount for the shop so order payments split to it.

        Raises:
            PermissionDeniedError: Not the shop owner
            PaymentProviderError: Paystack rejected the bank details
        """
        ensure_shop_owner(shop, user)

        data = await self.paystack.create_subaccount(
            business_name=business_name or shop.shop_name,
            bank_code=bank_code,
            account_number=account_number,
            contact_email=user.email,
        )
        code = data.get("subaccount_code")
        if not code:
            raise PaymentProviderError("Payment provider returned no subaccount code")

        shop.paystack_subaccount_code = code
        shop.bank_account_number = account_number
        if data.get("settlement_bank"):
            shop.bank_name = data["settlement_bank"]
        await self.db.flush()

        logger.info(f"Shop {shop.shop_slug} connected to Paystack subaccount {code}")
        await ActivityLogService(self.db).log(
            "update",
            "shop",
            user=user,
            resource_id=shop.id,
            resource_name=shop.shop_name,
            details={"paystack_subaccount_code": code},
        )
        return shop

    async def verify_order_payment(self, reference: str) -> Order:
        """
        Verify an order payment with Paystack and mark the order paid.

        Raises:
            PaymentProviderError: Transaction not successful
            NotFoundError: No order for the reference
            InvalidRequestError: Amount paid is less than the order total
        """
        data = await self.paystack.verify_transaction(reference)
        if data.get("status") != "success":
            logger.error(f"Order payment {reference} not successful: {data.get('status')}")
            raise PaymentProviderError("Payment verification failed")

        metadata = data.get("metadata") or {}
        order_id = metadata.get("order_id") or order_id_from_reference(reference)
        order = await self.orders.get_order(int(order_id)) if order_id else None
        if not order:
            raise NotFoundError("Order not found for payment")

        return await self._settle_order(order, reference, data)

    async def _settle_order(self, order: Order, reference: str, data: dict[str, Any]) -> Order:
        amount_kobo = data.get("amount")
        if amount_kobo is not None and int(amount_kobo) < to_kobo(order.total_amount):
            logger.warning(
                f"Order {order.order_number} underpaid: {amount_kobo} kobo "
                f"for total {order.total_amount}"
            )
            raise InvalidRequestError("Amount paid does not cover the order total")

        amount = from_kobo(amount_kobo) if amount_kobo is not None else None
        return await self.orders.mark_paid(order, reference, amount=amount)

    async def handle_webhook(self, event: PaystackEvent) -> dict[str, Any]:
        """
        Process a verified webhook event.

        charge.success with an order_id marks the order paid; with a
        user_id it activates that user's subscription. Underpaid order
        charges and everything else are acknowledged and ignored.
        """
        logger.info(f"Paystack webhook: {event.event} ref={event.reference}")

        if event.event != "charge.success":
            return {"received": True, "handled": False}

        metadata = event.metadata
        reference = event.reference

        if metadata.get("order_id"):
            order = await self.orders.get_order(int(metadata["order_id"]))
            if not order:
                logger.warning(f"Webhook for unknown order {metadata['order_id']}")
                return {"received": True, "handled": False}
            try:
                await self._settle_order(order, reference, event.data)
            except InvalidRequestError as e:
                # A retry carries the same amount, so underpayment is acknowledged
                logger.warning(
                    f"Webhook charge {reference} not applied to order {order.id}: {e.detail}"
                )
                return {"received": True, "handled": False, "order_id": order.id}
            return {"received": True, "handled": True, "order_id": order.id}

        if metadata.get("user_id"):
            user = await self.db.get(User, int(metadata["user_id"]))
            if not user:
                logger.warning(f"Webhook for unknown user {metadata['user_id']}")
                return {"received": True, "handled": False}
            await SubscriptionService(self.db, paystack=self.paystack).activate_subscription(
                user,
                days=int(metadata.get("subscription_days") or settings.subscription_days_monthly),
                plan_id=metadata.get("plan_id"),
                billing_cycle=metadata.get("billing_cycle") or "monthly",
                reference=reference,
            )
            return {"received": True, "handled": True, "user_id": user.id}

        logger.warning(f"charge.success without order or user metadata: {reference}")
        return {"received": True, "handled": False}

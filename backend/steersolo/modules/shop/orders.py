"""
Order Service - checkout and order lifecycle.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from steersolo.core.exceptions import InvalidRequestError, NotFoundError, PermissionDeniedError
from steersolo.core.utils import format_naira, page_meta
from steersolo.models.order import Order, OrderItem, OrderStatus, PaymentChoice, PaymentStatus
from steersolo.models.shop import Product, ProductType, Shop
from steersolo.models.user import User
from steersolo.modules.activity import ActivityLogService
from steersolo.modules.billing.payouts import PayoutService
from steersolo.modules.notifications.email import EmailService, get_email_service, short_order_id
from steersolo.modules.notifications.whatsapp import build_chat_link
from steersolo.modules.shop.coupons import CouponService
from steersolo.modules.shop.lifecycle import (
    ORDER_TIMESTAMP_FIELDS,
    ensure_order_transition,
    next_order_statuses,
    stamp_status_timestamp,
)
from steersolo.modules.shop.service import ensure_shop_owner, is_available

# payment choice -> (initial order status, initial payment status)
CHECKOUT_STATES: dict[str, tuple[OrderStatus, PaymentStatus]] = {
    "pay_before": (OrderStatus.PENDING, PaymentStatus.PENDING),
    "pay_on_delivery": (OrderStatus.AWAITING_APPROVAL, PaymentStatus.ON_DELIVERY),
    "bank_transfer": (OrderStatus.AWAITING_APPROVAL, PaymentStatus.UNPAID),
}

# Statuses a customer may still cancel from
CUSTOMER_CANCELLABLE = {"pending", "awaiting_approval"}


def generate_order_number() -> str:
    return f"SS-{uuid4().hex[:8].upper()}"


class OrderService:
    """
    Service for placing and managing orders.

    Usage:
        orders = OrderService(db_session)
        order = await orders.create_order(shop.id, [{"product_id": 1, "quantity": 2}], ...)
        await orders.update_status(order, "confirmed", actor=owner)
    """

    def __init__(self, db: AsyncSession, emails: EmailService | None = None) -> None:
        """Initialize order service with database session."""
        self.db = db
        self.emails = emails or get_email_service()
        self.activity = ActivityLogService(db)
        self.coupons = CouponService(db)
        self.payouts = PayoutService(db)

    # ==================== Queries ====================

    async def get_order(self, order_id: int) -> Order | None:
        """Get order with its items."""
        query = select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_order_by_number(self, order_number: str) -> Order | None:
        query = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.order_number == order_number)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_order(self, order_id: int) -> Order:
        order = await self.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")
        return order

    async def list_orders(
        self,
        shop_id: int | None = None,
        customer_id: int | None = None,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict[str, Any]:
        """
        Get orders with filters, newest first.

        Args:
            shop_id: Orders of one shop
            customer_id: Orders placed by one customer
            status: Filter by status
            page: 1-based page number
            limit: Page size

        Returns:
            {"items": [...], "meta": {...}}
        """
        conditions = []
        if shop_id:
            conditions.append(Order.shop_id == shop_id)
        if customer_id:
            conditions.append(Order.customer_id == customer_id)
        if status:
            conditions.append(Order.status == status)

        total = await self.db.scalar(select(func.count(Order.id)).where(*conditions))
        query = (
            select(Order)
            .options(selectinload(Order.items))
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        result = await self.db.execute(query)

        return {"items": list(result.scalars().all()), "meta": page_meta(page, limit, total or 0)}

    async def can_view(self, order: Order, user: User) -> bool:
        if user.is_admin or (order.customer_id and order.customer_id == user.id):
            return True
        shop = await self.db.get(Shop, order.shop_id)
        return bool(shop and shop.owner_id == user.id)

    # ==================== Checkout ====================

    async def create_order(
        self,
        shop_id: int,
        items: list[dict[str, Any]],
        customer_name: str,
        customer_email: str,
        customer_phone: str | None = None,
        delivery_address: str | None = None,
        delivery_city: str | None = None,
        delivery_state: str | None = None,
        delivery_fee: Decimal = Decimal("0"),
        notes: str | None = None,
        payment_choice: PaymentChoice | str = PaymentChoice.PAY_BEFORE,
        coupon_code: str | None = None,
        customer: User | None = None,
    ) -> Order:
        """
        Place an order with a shop.

        Args:
            shop_id: Shop being ordered from
            items: List of {product_id, quantity}
            customer_name: Buyer name
            customer_email: Buyer email (receives confirmations)
            customer_phone: Buyer phone
            delivery_address: Street address
            delivery_city: City
            delivery_state: State
            delivery_fee: Delivery charge added to the total
            notes: Note for the seller
            payment_choice: pay_before, pay_on_delivery or bank_transfer
            coupon_code: Optional shop coupon
            customer: Logged-in buyer, if any

        Returns:
            Created order with items

        Raises:
            NotFoundError: Shop missing or inactive
            InvalidRequestError: Empty order, unknown or unavailable product, bad coupon
        """
        shop = await self.db.get(Shop, shop_id)
        if not shop or not shop.is_active:
            raise NotFoundError("Shop not found")

        if not items:
            raise InvalidRequestError("Order must contain at least one item")
        if delivery_fee < 0:
            raise InvalidRequestError("Delivery fee cannot be negative")

        choice = PaymentChoice(payment_choice)
        status, payment_status = CHECKOUT_STATES[choice.value]

        # Merge repeated lines for the same product
        quantities: dict[int, int] = {}
        for item in items:
            product_id = int(item["product_id"])
            quantity = int(item.get("quantity", 1))
            if quantity < 1:
                raise InvalidRequestError("Quantity must be at least 1")
            quantities[product_id] = quantities.get(product_id, 0) + quantity

        subtotal = Decimal("0")
        order_items: list[OrderItem] = []

        for product_id, quantity in quantities.items():
            product = await self.db.get(Product, product_id)
            if not product or product.shop_id != shop.id:
                raise InvalidRequestError(f"Product {product_id} not found in this shop")
            if not is_available(product, quantity):
                raise InvalidRequestError(f"{product.name} is not available in that quantity")

            subtotal += product.price * quantity
            order_items.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    price=product.price,
                    quantity=quantity,
                )
            )

            if product.type == ProductType.PRODUCT:
                product.stock_quantity -= quantity

        discount = Decimal("0")
        coupon = None
        if coupon_code:
            validation = await self.coupons.validate_coupon(coupon_code, shop.id, subtotal)
            if not validation.valid:
                raise InvalidRequestError(validation.error)
            discount = validation.discount
            coupon = validation.coupon

        order = Order(
            order_number=generate_order_number(),
            shop_id=shop.id,
            customer_id=customer.id if customer else None,
            status=status,
            payment_status=payment_status,
            payment_choice=choice,
            subtotal=subtotal,
            discount_amount=discount,
            delivery_fee=delivery_fee,
            total_amount=subtotal - discount + delivery_fee,
            coupon_code=coupon.code if coupon else None,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            delivery_address=delivery_address,
            delivery_city=delivery_city,
            delivery_state=delivery_state,
            notes=notes,
            items=order_items,
        )
        self.db.add(order)
        if coupon:
            await self.coupons.increment_usage(coupon)
        await self.db.flush()

        logger.info(
            f"Order {order.order_number} placed with shop {shop.id}: "
            f"{order.total_amount} ({choice.value})"
        )
        await self.activity.log(
            "create",
            "order",
            user=customer,
            resource_id=order.id,
            resource_name=order.order_number,
            details={"shop_id": shop.id, "total": str(order.total_amount)},
        )

        owner = await self.db.get(User, shop.owner_id)
        await self.emails.send_order_placed(
            order, order_items, shop.shop_name, owner.email if owner else None
        )
        return order

    # ==================== Lifecycle ====================

    async def update_status(
        self,
        order: Order,
        new_status: OrderStatus | str,
        actor: User,
        payment_status: PaymentStatus | str | None = None,
        payment_reference: str | None = None,
    ) -> Order:
        """
        Move an order to a new status.

        Shop owners and admins drive the lifecycle; a customer may only
        cancel their own order before it is confirmed.

        Raises:
            PermissionDeniedError: Actor may not change this order
            InvalidTransitionError: Transition not in the order table
        """
        target = OrderStatus(new_status)
        shop = await self.db.get(Shop, order.shop_id)
        if shop is None:
            raise NotFoundError("Shop not found")

        is_customer_cancel = (
            order.customer_id == actor.id
            and target == OrderStatus.CANCELLED
            and order.status.value in CUSTOMER_CANCELLABLE
        )
        if not is_customer_cancel:
            ensure_shop_owner(shop, actor)

        # Payment fields belong to the shop, even on a customer cancel
        if payment_status is not None or payment_reference:
            ensure_shop_owner(shop, actor)

        ensure_order_transition(order.status, target)

        previous = order.status
        order.status = target
        stamp_status_timestamp(order, target, ORDER_TIMESTAMP_FIELDS)

        if target == OrderStatus.CANCELLED:
            order.cancelled_by = actor.id
            await self._restore_stock(order)

        if payment_status is not None:
            order.payment_status = PaymentStatus(payment_status)
            if order.payment_status == PaymentStatus.PAID and not order.paid_at:
                order.paid_at = datetime.utcnow()
        if payment_reference:
            order.payment_reference = payment_reference

        await self.db.flush()

        logger.info(f"Order {order.order_number}: {previous.value} -> {target.value}")
        await self.activity.log(
            "update",
            "order",
            user=actor,
            resource_id=order.id,
            resource_name=order.order_number,
            details={"from": previous.value, "to": target.value},
        )
        await self.emails.send_status_update(order, shop.shop_name)
        return order

    async def _restore_stock(self, order: Order) -> None:
        result = await self.db.execute(select(OrderItem).where(OrderItem.order_id == order.id))
        for item in result.scalars().all():
            if item.product_id is None:
                continue
            product = await self.db.get(Product, item.product_id)
            if product and product.type == ProductType.PRODUCT:
                product.stock_quantity += item.quantity

    def next_statuses(self, order: Order) -> list[str]:
        return next_order_statuses(order.status)

    async def mark_paid(
        self,
        order: Order,
        reference: str | None,
        amount: Decimal | None = None,
        payment_method: str = "paystack",
    ) -> Order:
        """
        Record a successful payment. Paying twice changes nothing.

        Args:
            order: Order being paid
            reference: Provider reference
            amount: Amount received in Naira (defaults to the order total)
            payment_method: How it was paid

        Returns:
            The order
        """
        if order.payment_status == PaymentStatus.PAID:
            logger.info(f"Order {order.order_number} already paid")
            return order

        order.payment_status = PaymentStatus.PAID
        order.paid_at = datetime.utcnow()
        if reference:
            order.payment_reference = reference

        if order.status in (OrderStatus.PENDING, OrderStatus.AWAITING_APPROVAL):
            order.status = OrderStatus.PAID_AWAITING_DELIVERY
            stamp_status_timestamp(order, order.status, ORDER_TIMESTAMP_FIELDS)

        await self.payouts.record_revenue(
            order,
            reference,
            gross_amount=amount,
            payment_method=payment_method,
        )
        await self.db.flush()

        logger.info(f"Order {order.order_number} paid: ref={reference}")
        await self.activity.log(
            "payment",
            "order",
            resource_id=order.id,
            resource_name=order.order_number,
            details={"reference": reference, "amount": str(amount or order.total_amount)},
        )

        shop = await self.db.get(Shop, order.shop_id)
        if shop:
            await self.emails.send_status_update(order, shop.shop_name)
        return order

    # ==================== WhatsApp ====================

    async def order_whatsapp_link(self, order: Order) -> str:
        """Click-to-chat link to the shop with an order summary."""
        shop = await self.db.get(Shop, order.shop_id)
        if not shop or not shop.whatsapp_number:
            raise InvalidRequestError("Shop has no WhatsApp number")

        result = await self.db.execute(select(OrderItem).where(OrderItem.order_id == order.id))
        lines = [
            f"• {item.product_name} x{item.quantity} - {format_naira(item.price * item.quantity)}"
            for item in result.scalars().all()
        ]
        message = "\n".join(
            [
                f"👋 Hello {shop.shop_name}!",
                "",
                f"I just placed order #{short_order_id(order.order_number)} on SteerSolo.",
                "",
                *lines,
                "",
                f"Total: {format_naira(order.total_amount)}",
            ]
        )
        return build_chat_link(shop.whatsapp_number, message)

    async def ensure_customer_access(self, order: Order, user: User) -> None:
        if not await self.can_view(order, user):
            raise PermissionDeniedError("You cannot view this order")

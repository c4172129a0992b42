"""
Order API Endpoints.

Checkout, the order lifecycle and Paystack order payments.
"""

from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user, get_current_user_optional
from steersolo.api.v1.serializers import order_to_dict
from steersolo.core.database import get_db
from steersolo.models.order import Order, OrderStatus, PaymentChoice, PaymentStatus
from steersolo.models.user import User
from steersolo.modules.billing.payments import PaymentService
from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client
from steersolo.modules.notifications.whatsapp import check_phone
from steersolo.modules.shop.orders import OrderService
from steersolo.modules.shop.service import ShopService, ensure_shop_owner

router = APIRouter()


# ==================== Schemas ====================


class OrderItemRequest(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)


class CreateOrderRequest(BaseModel):
    """Place an order with one shop."""

    shop_id: int
    items: list[OrderItemRequest] = Field(min_length=1)
    customer_name: str
    customer_email: EmailStr
    customer_phone: str | None = None
    delivery_address: str | None = None
    delivery_city: str | None = None
    delivery_state: str | None = None
    delivery_fee: Decimal = Field(Decimal("0"), ge=0)
    notes: str | None = None
    payment_choice: PaymentChoice = PaymentChoice.PAY_BEFORE
    coupon_code: str | None = None

    @field_validator("customer_phone")
    @classmethod
    def validate_customer_phone(cls, v: str | None) -> str | None:
        """Reject numbers that cannot be used for WhatsApp links."""
        return check_phone(v)


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    payment_status: PaymentStatus | None = None
    payment_reference: str | None = None


class PayOrderRequest(BaseModel):
    callback_url: str | None = None


class VerifyPaymentRequest(BaseModel):
    reference: str


async def get_visible_order(order_id: int, user: User | None, orders: OrderService) -> Order:
    """
    Order the caller may see.

    Guest orders are reachable by id alone; orders tied to an account
    need that customer, the shop owner or an admin.
    """
    order = await orders.require_order(order_id)
    if order.customer_id is None:
        return order
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    await orders.ensure_customer_access(order, user)
    return order


# ==================== Checkout ====================


@router.post("", status_code=201)
async def create_order(
    request: CreateOrderRequest,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Place an order.

    Pay-before orders start pending payment; pay-on-delivery and bank
    transfer orders wait for the shop to approve them.
    """
    fields = request.model_dump(exclude={"items"})
    order = await OrderService(db).create_order(
        items=[item.model_dump() for item in request.items],
        customer=user,
        **fields,
    )
    return order_to_dict(order)


# ==================== Orders ====================


@router.get("")
async def list_orders(
    shop_id: int | None = Query(None, description="Orders of a shop you own"),
    status: OrderStatus | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Orders of one of your shops, or the orders you placed."""
    if shop_id is not None:
        shop = await ShopService(db).require_shop(shop_id)
        ensure_shop_owner(shop, user)
        result = await OrderService(db).list_orders(
            shop_id=shop_id, status=status, page=page, limit=limit
        )
    else:
        result = await OrderService(db).list_orders(
            customer_id=user.id, status=status, page=page, limit=limit
        )

    return {
        "items": [order_to_dict(order) for order in result["items"]],
        "meta": result["meta"],
    }


@router.post("/verify-payment")
async def verify_payment(
    request: VerifyPaymentRequest,
    db: AsyncSession = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack_client),
) -> dict[str, Any]:
    """Confirm a Paystack payment after the customer returns from checkout."""
    order = await PaymentService(db, paystack=paystack).verify_order_payment(request.reference)
    return order_to_dict(order)


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    order = await get_visible_order(order_id, user, OrderService(db))
    return order_to_dict(order)


@router.patch("/{order_id}/status")
async def update_order_status(
    order_id: int,
    request: UpdateOrderStatusRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Move an order along its lifecycle.

    Shop owners drive the order; customers may cancel their own order
    until it is confirmed. Invalid transitions return 409.
    """
    orders = OrderService(db)
    order = await orders.require_order(order_id)
    order = await orders.update_status(
        order,
        request.status,
        actor=user,
        payment_status=request.payment_status,
        payment_reference=request.payment_reference,
    )
    return order_to_dict(order)


@router.get("/{order_id}/next-statuses")
async def get_next_statuses(
    order_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    orders = OrderService(db)
    order = await orders.require_order(order_id)
    await orders.ensure_customer_access(order, user)

    return {"status": order.status.value, "next_statuses": orders.next_statuses(order)}


@router.get("/{order_id}/whatsapp")
async def get_order_whatsapp_link(
    order_id: int,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Click-to-chat link to the shop with the order summary."""
    orders = OrderService(db)
    order = await get_visible_order(order_id, user, orders)
    return {"url": await orders.order_whatsapp_link(order)}


# ==================== Payment ====================


@router.post("/{order_id}/pay")
async def pay_order(
    order_id: int,
    request: PayOrderRequest,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack_client),
) -> dict[str, Any]:
    """
    Start a Paystack checkout for an order.

    Returns the authorization URL to redirect the customer to.
    """
    payments = PaymentService(db, paystack=paystack)
    order = await get_visible_order(order_id, user, payments.orders)
    return await payments.initialize_order_payment(order, callback_url=request.callback_url)

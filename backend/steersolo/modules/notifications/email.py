"""
Transactional Email Service.

Sends order emails through the Resend HTTP API.

Features:
- Order confirmation to the customer
- New order alert to the shop owner
- Order status updates with a message per status
"""

from html import escape
from typing import Any, Iterable

import httpx
from loguru import logger

from steersolo.core.config import settings
from steersolo.core.utils import format_naira
from steersolo.models.order import Order, OrderItem

STATUS_MESSAGES = {
    "confirmed": "Your order has been confirmed by the seller and will be processed soon.",
    "paid_awaiting_delivery": "Your payment was received. The seller will deliver your order soon.",
    "processing": "Your order is now being prepared.",
    "out_for_delivery": "Great news! Your order is on its way to you.",
    "delivered": "Your order has been delivered. Enjoy!",
    "completed": "Your order is complete. Thank you for shopping with us!",
    "cancelled": "Your order has been cancelled. If you have questions, please contact the seller.",
}

DEFAULT_STATUS_MESSAGE = "Your order status has been updated."


def short_order_id(order_number: str) -> str:
    """Eight character order id shown to people, e.g. 3FA9C1D2."""
    return order_number.split("-")[-1][:8].upper()


def status_label(status: str) -> str:
    return status.replace("_", " ")


class EmailService:
    """
    Resend email sender for order events.

    Sending never raises: failures are logged and reported as False so
    the order operation that triggered the email still succeeds.

    Usage:
        emails = EmailService()
        await emails.send_order_placed(order, items, shop_name, owner_email)
    """

    ITEM_ROW_TEMPLATE = (
        '<tr><td style="padding:8px">{name}</td>'
        '<td style="padding:8px;text-align:center">{quantity}</td>'
        '<td style="padding:8px;text-align:right">{amount}</td></tr>'
    )

    ITEMS_TABLE_TEMPLATE = """
<table style="width:100%;border-collapse:collapse;margin:16px 0">
  <thead><tr><th style="text-align:left">Item</th><th>Qty</th><th style="text-align:right">Amount</th></tr></thead>
  <tbody>{rows}</tbody>
  <tfoot><tr><td colspan="2"><b>Total</b></td><td style="text-align:right"><b>{total}</b></td></tr></tfoot>
</table>
    """.strip()

    CUSTOMER_ORDER_TEMPLATE = """
<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto">
  <h1>Order Confirmed! ✅</h1>
  <p>Hi {customer_name},</p>
  <p>Thank you for your order from <strong>{shop_name}</strong>!</p>
  <p><strong>Order ID:</strong> #{short_id}</p>
  {items_table}
  <p>The seller will review and process your order shortly.</p>
  <p style="color:#6b7280;font-size:12px">This is an automated email from SteerSolo. Please do not reply directly.</p>
</div>
    """.strip()

    OWNER_ORDER_TEMPLATE = """
<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto">
  <h1>New Order Received! 🎉</h1>
  <p>You have a new order on <strong>{shop_name}</strong>!</p>
  <p><strong>Order ID:</strong> #{short_id}</p>
  <p><strong>Customer:</strong> {customer_name}</p>
  <p><strong>Email:</strong> {customer_email}</p>
  {items_table}
  <p>Log in to your SteerSolo dashboard to review and process this order.</p>
</div>
    """.strip()

    STATUS_TEMPLATE = """
<div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto">
  <h1>Order Update 📦</h1>
  <p>Hi {customer_name},</p>
  <p><strong>Order #{short_id}</strong> from <strong>{shop_name}</strong></p>
  <p><strong>Status: {label}</strong></p>
  <p>{message}</p>
  <p>Amount: <strong>{amount}</strong></p>
</div>
    """.strip()

    def __init__(
        self,
        api_key: str | None = None,
        sender: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize email service.

        Args:
            api_key: Resend API key (or from env)
            sender: From address (or from env)
            transport: Custom httpx transport, used by tests
        """
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.sender = sender or settings.email_from
        self.api_url = settings.resend_api_url
        self._transport = transport

        if not self.api_key:
            logger.warning("RESEND_API_KEY not configured, emails will be skipped")

    async def send_email(self, to: str, subject: str, html: str) -> bool:
        """
        Send one email.

        Returns:
            True if Resend accepted it
        """
        if not self.api_key:
            logger.warning(f"Email to {to} skipped: email service not configured")
            return False

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                    timeout=10.0,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Resend HTTP error: {e.response.status_code}")
            return False
        except httpx.RequestError as e:
            logger.error(f"Resend request error: {e}")
            return False

        logger.debug(f"Email sent to {to}: {subject}")
        return True

    def _items_table(self, items: Iterable[OrderItem], total: Any) -> str:
        rows = "".join(
            self.ITEM_ROW_TEMPLATE.format(
                name=escape(item.product_name),
                quantity=item.quantity,
                amount=format_naira(item.price * item.quantity),
            )
            for item in items
        )
        return self.ITEMS_TABLE_TEMPLATE.format(rows=rows, total=format_naira(total))

    async def send_order_placed(
        self,
        order: Order,
        items: Iterable[OrderItem],
        shop_name: str,
        owner_email: str | None = None,
    ) -> dict[str, bool]:
        """
        Confirmation to the customer and an alert to the shop owner.

        Returns:
            {"customer": sent, "owner": sent}
        """
        short_id = short_order_id(order.order_number)
        formatted_amount = format_naira(order.total_amount)
        items_table = self._items_table(list(items), order.total_amount)
        sent = {"customer": False, "owner": False}

        if order.customer_email:
            sent["customer"] = await self.send_email(
                order.customer_email,
                f"Order Confirmed #{short_id} - {shop_name}",
                self.CUSTOMER_ORDER_TEMPLATE.format(
                    customer_name=escape(order.customer_name or "Valued Customer"),
                    shop_name=escape(shop_name),
                    short_id=short_id,
                    items_table=items_table,
                ),
            )

        if owner_email:
            sent["owner"] = await self.send_email(
                owner_email,
                f"🛒 New Order #{short_id} - {formatted_amount}",
                self.OWNER_ORDER_TEMPLATE.format(
                    shop_name=escape(shop_name),
                    short_id=short_id,
                    customer_name=escape(order.customer_name or "N/A"),
                    customer_email=escape(order.customer_email or "N/A"),
                    items_table=items_table,
                ),
            )

        return sent

    async def send_status_update(self, order: Order, shop_name: str) -> bool:
        """Tell the customer their order moved to a new status."""
        if not order.customer_email:
            return False

        status = order.status.value if hasattr(order.status, "value") else str(order.status)
        label = status_label(status)
        short_id = short_order_id(order.order_number)

        return await self.send_email(
            order.customer_email,
            f"Order #{short_id} - {label.capitalize()}",
            self.STATUS_TEMPLATE.format(
                customer_name=escape(order.customer_name or "Valued Customer"),
                short_id=short_id,
                shop_name=escape(shop_name),
                label=label.upper(),
                message=STATUS_MESSAGES.get(status, DEFAULT_STATUS_MESSAGE),
                amount=format_naira(order.total_amount),
            ),
        )


# Singleton instance
_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """Get or create email service singleton."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service

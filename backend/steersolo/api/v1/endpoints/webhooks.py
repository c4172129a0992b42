"""
Webhook Endpoints.

Handles incoming webhooks from external services:
- Paystack (order payments and subscription charges)
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.core.database import get_db
from steersolo.modules.billing.payments import PaymentService
from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client

router = APIRouter()


@router.post("/paystack", status_code=200)
async def paystack_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    paystack: PaystackClient = Depends(get_paystack_client),
) -> dict[str, Any]:
    """
    Paystack Webhook Endpoint.

    charge.success events mark orders paid or activate subscriptions,
    depending on the transaction metadata. Other events are acknowledged.

    Security:
    - Validates the HMAC-SHA512 signature of the raw body
    - Returns 401 on invalid signature

    Headers Required:
    - x-paystack-signature: <hex digest>
    """
    # Get raw body for signature verification
    body = await request.body()
    signature = request.headers.get("x-paystack-signature")

    if not paystack.verify_signature(body, signature):
        client_host = request.client.host if request.client else "unknown"
        logger.warning(f"Invalid Paystack webhook signature from {client_host}")
        raise HTTPException(
            status_code=401,
            detail="Invalid signature",
        )

    try:
        event = paystack.parse_event(body)
    except ValueError as e:
        logger.warning(f"Unreadable Paystack webhook: {e}")
        raise HTTPException(status_code=400, detail="Invalid payload")

    return await PaymentService(db, paystack=paystack).handle_webhook(event)

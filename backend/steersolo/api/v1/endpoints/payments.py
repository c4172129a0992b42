"""
Payment Reference Endpoints.

Lookups the dashboard needs while setting up shop payments.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from steersolo.api.deps import get_current_user
from steersolo.models.user import User
from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client

router = APIRouter()


@router.get("/banks")
async def list_banks(
    country: str | None = Query(None, description="Paystack country name, defaults to nigeria"),
    user: User = Depends(get_current_user),
    paystack: PaystackClient = Depends(get_paystack_client),
) -> list[dict[str, Any]]:
    """Active settlement banks with their Paystack codes."""
    return await paystack.list_banks(country)

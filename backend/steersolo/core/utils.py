"""
Small helpers shared by services and endpoints.
"""

import math
from decimal import Decimal
from typing import Any


def page_meta(page: int, limit: int, total: int) -> dict[str, Any]:
    """Pagination block returned alongside list results."""
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }


def format_naira(amount: Decimal | int | float | str | None) -> str:
    """Format an amount as Naira, e.g. ₦12,500 or ₦1,250.50."""
    value = Decimal(str(amount or 0))
    if value == value.to_integral_value():
        return f"₦{int(value):,}"
    return f"₦{value:,.2f}"


def to_kobo(amount: Decimal | int | float | str) -> int:
    """Convert a Naira amount to kobo for Paystack."""
    return int((Decimal(str(amount)) * 100).to_integral_value())


def from_kobo(amount: int | str | None) -> Decimal:
    """Convert a Paystack kobo amount back to Naira."""
    return (Decimal(str(amount or 0)) / 100).quantize(Decimal("0.01"))

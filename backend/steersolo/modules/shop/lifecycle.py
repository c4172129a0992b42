"""
Order and booking status tables.

Allowed transitions are a plain lookup table checked by the services
before a status is written. Nothing below the service layer enforces it.
"""

from datetime import datetime
from typing import Any

from steersolo.core.exceptions import InvalidTransitionError

ORDER_TRANSITIONS: dict[str, list[str]] = {
    "awaiting_approval": ["confirmed", "cancelled"],
    "pending": ["confirmed", "cancelled"],
    "confirmed": ["processing", "cancelled"],
    "paid_awaiting_delivery": ["processing", "cancelled"],
    "processing": ["out_for_delivery", "cancelled"],
    "out_for_delivery": ["delivered", "cancelled"],
    "delivered": ["completed"],
    "completed": [],
    "cancelled": [],
}

ORDER_TIMESTAMP_FIELDS: dict[str, str] = {
    "confirmed": "confirmed_at",
    "paid_awaiting_delivery": "confirmed_at",
    "processing": "processing_at",
    "out_for_delivery": "out_for_delivery_at",
    "delivered": "delivered_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
}

BOOKING_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["confirmed", "cancelled"],
    "confirmed": ["completed", "cancelled", "no_show"],
    "completed": [],
    "cancelled": [],
    "no_show": [],
}

BOOKING_TIMESTAMP_FIELDS: dict[str, str] = {
    "confirmed": "confirmed_at",
    "completed": "completed_at",
    "cancelled": "cancelled_at",
}


def _value(status: Any) -> str:
    return status.value if hasattr(status, "value") else str(status)


def next_order_statuses(current: str) -> list[str]:
    """Statuses an order may move to next. Unknown statuses have none."""
    return list(ORDER_TRANSITIONS.get(_value(current), []))


def next_booking_statuses(current: str) -> list[str]:
    """Statuses a booking may move to next. Unknown statuses have none."""
    return list(BOOKING_TRANSITIONS.get(_value(current), []))


def can_transition_order(current: str, target: str) -> bool:
    return _value(target) in next_order_statuses(current)


def can_transition_booking(current: str, target: str) -> bool:
    return _value(target) in next_booking_statuses(current)


def ensure_order_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    if not can_transition_order(current, target):
        raise InvalidTransitionError(_value(current), _value(target))


def ensure_booking_transition(current: str, target: str) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed."""
    if not can_transition_booking(current, target):
        raise InvalidTransitionError(_value(current), _value(target))


def stamp_status_timestamp(
    record: Any,
    status: str,
    fields: dict[str, str],
    now: datetime | None = None,
) -> str | None:
    """
    Set the timestamp column that belongs to a status.

    Args:
        record: Order or booking
        status: Status being entered
        fields: Status -> column mapping
        now: Override the current time

    Returns:
        Name of the column set, or None if the status has no timestamp
    """
    field = fields.get(_value(status))
    if field:
        setattr(record, field, now or datetime.utcnow())
    return field

"""
Booking API Endpoints.

Customers book service-type products; shop owners confirm and
complete them. Shop calendars are under /shops/{shop_id}/bookings.
"""

from datetime import date, time
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from steersolo.api.deps import get_current_user, get_current_user_optional
from steersolo.api.v1.serializers import booking_to_dict
from steersolo.core.database import get_db
from steersolo.models.order import BookingStatus
from steersolo.models.user import User
from steersolo.modules.notifications.whatsapp import check_phone
from steersolo.modules.shop.bookings import BookingService
from steersolo.modules.shop.service import ShopService, ensure_shop_owner

router = APIRouter()


# ==================== Schemas ====================


class CreateBookingRequest(BaseModel):
    """Book a service slot."""

    shop_id: int
    service_id: int
    booking_date: date
    booking_time: time
    customer_name: str
    customer_email: EmailStr
    customer_phone: str
    notes: str | None = None

    @field_validator("customer_phone")
    @classmethod
    def validate_customer_phone(cls, v: str | None) -> str | None:
        """Reject numbers that cannot be used for WhatsApp links."""
        return check_phone(v)


class UpdateBookingStatusRequest(BaseModel):
    status: BookingStatus


# ==================== Endpoints ====================


@router.post("", status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Book a service. The date may not be in the past."""
    booking = await BookingService(db).create_booking(customer=user, **request.model_dump())
    return booking_to_dict(booking)


@router.get("/mine")
async def get_my_bookings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> list[dict[str, Any]]:
    """Bookings made by the current user, latest first."""
    bookings = await BookingService(db).list_customer_bookings(user)
    return [booking_to_dict(booking) for booking in bookings]


@router.patch("/{booking_id}/status")
async def update_booking_status(
    booking_id: int,
    request: UpdateBookingStatusRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Confirm, complete, cancel or mark a no-show. Shop owner only."""
    bookings = BookingService(db)
    booking = await bookings.require_booking(booking_id)
    booking = await bookings.update_status(booking, request.status, actor=user)
    return booking_to_dict(booking)


@router.get("/{booking_id}/whatsapp")
async def get_booking_whatsapp_link(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Click-to-chat link from the shop to the customer."""
    bookings = BookingService(db)
    booking = await bookings.require_booking(booking_id)
    shop = await ShopService(db).require_shop(booking.shop_id)
    ensure_shop_owner(shop, user)

    return {"url": await bookings.booking_whatsapp_link(booking)}

"""
Booking Service - service appointments.
"""

from datetime import date, datetime, time

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from steersolo.core.exceptions import InvalidRequestError, NotFoundError
from steersolo.models.order import Booking, BookingStatus
from steersolo.models.shop import Product, ProductType, Shop
from steersolo.models.user import User
from steersolo.modules.activity import ActivityLogService
from steersolo.modules.notifications.whatsapp import build_chat_link
from steersolo.modules.shop.lifecycle import (
    BOOKING_TIMESTAMP_FIELDS,
    ensure_booking_transition,
    next_booking_statuses,
    stamp_status_timestamp,
)
from steersolo.modules.shop.service import ensure_shop_owner


class BookingService:
    """
    Service for booking service-type products.

    Usage:
        bookings = BookingService(db_session)
        booking = await bookings.create_booking(shop.id, service.id, date(2025, 1, 10), time(14, 0), ...)
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.activity = ActivityLogService(db)

    async def get_booking(self, booking_id: int) -> Booking | None:
        query = (
            select(Booking).options(selectinload(Booking.service)).where(Booking.id == booking_id)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_booking(self, booking_id: int) -> Booking:
        booking = await self.get_booking(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    async def create_booking(
        self,
        shop_id: int,
        service_id: int,
        booking_date: date,
        booking_time: time,
        customer_name: str,
        customer_email: str,
        customer_phone: str,
        notes: str | None = None,
        customer: User | None = None,
        today: date | None = None,
    ) -> Booking:
        """
        Book a service.

        Args:
            shop_id: Shop offering the service
            service_id: Service-type product
            booking_date: Day of the appointment (not in the past)
            booking_time: Start time
            customer_name: Who is booking
            customer_email: Contact email
            customer_phone: Contact phone
            notes: Note for the shop
            customer: Logged-in customer, if any
            today: Override the current date

        Returns:
            Pending booking
        """
        shop = await self.db.get(Shop, shop_id)
        if not shop or not shop.is_active:
            raise NotFoundError("Shop not found")

        service = await self.db.get(Product, service_id)
        if not service or service.shop_id != shop.id:
            raise NotFoundError("Service not found")
        if service.type != ProductType.SERVICE:
            raise InvalidRequestError("Only services can be booked")
        if not service.is_available:
            raise InvalidRequestError("Service is not available")

        if booking_date < (today or datetime.utcnow().date()):
            raise InvalidRequestError("Booking date cannot be in the past")

        booking = Booking(
            shop_id=shop.id,
            service=service,
            customer_id=customer.id if customer else None,
            booking_date=booking_date,
            booking_time=booking_time,
            duration_minutes=service.duration_minutes,
            status=BookingStatus.PENDING,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            notes=notes,
        )
        self.db.add(booking)
        await self.db.flush()

        logger.info(f"Booking {booking.id} created for service {service.id} on {booking_date}")
        await self.activity.log(
            "create",
            "booking",
            user=customer,
            resource_id=booking.id,
            resource_name=service.name,
        )
        return booking

    async def list_bookings(
        self,
        shop_id: int,
        status: BookingStatus | None = None,
    ) -> list[Booking]:
        """Shop bookings in calendar order."""
        query = (
            select(Booking)
            .options(selectinload(Booking.service))
            .where(Booking.shop_id == shop_id)
        )
        if status:
            query = query.where(Booking.status == status)
        query = query.order_by(Booking.booking_date, Booking.booking_time)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_customer_bookings(self, customer: User) -> list[Booking]:
        query = (
            select(Booking)
            .options(selectinload(Booking.service))
            .where(Booking.customer_id == customer.id)
            .order_by(Booking.booking_date.desc(), Booking.booking_time.desc())
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_status(
        self,
        booking: Booking,
        status: BookingStatus | str,
        actor: User,
    ) -> Booking:
        """
        Move a booking to a new status.

        Raises:
            PermissionDeniedError: Not the shop owner or an admin
            InvalidTransitionError: Transition not in the booking table
        """
        target = BookingStatus(status)
        shop = await self.db.get(Shop, booking.shop_id)
        if shop is None:
            raise NotFoundError("Shop not found")
        ensure_shop_owner(shop, actor)
        ensure_booking_transition(booking.status, target)

        previous = booking.status
        booking.status = target
        stamp_status_timestamp(booking, target, BOOKING_TIMESTAMP_FIELDS)
        await self.db.flush()

        logger.info(f"Booking {booking.id}: {previous.value} -> {target.value}")
        await self.activity.log(
            "update",
            "booking",
            user=actor,
            resource_id=booking.id,
            details={"from": previous.value, "to": target.value},
        )
        return booking

    def next_statuses(self, booking: Booking) -> list[str]:
        return next_booking_statuses(booking.status)

    async def booking_whatsapp_link(self, booking: Booking) -> str:
        """Click-to-chat link from the shop to the customer about the booking."""
        shop = await self.db.get(Shop, booking.shop_id)
        service = await self.db.get(Product, booking.service_id)
        message = (
            f"Hello {booking.customer_name}! 👋\n\n"
            f"This is {shop.shop_name if shop else 'your service provider'} about your booking "
            f"for {service.name if service else 'our service'} on "
            f"{booking.booking_date.strftime('%A, %d %B %Y')} at {booking.booking_time.strftime('%H:%M')}."
        )
        return build_chat_link(booking.customer_phone, message)


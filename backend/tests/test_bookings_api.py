"""
API tests for service bookings.
"""

from datetime import date, datetime, time, timedelta

from steersolo.models.order import Booking
from tests.conftest import auth_headers


def booking_payload(shop, service, **overrides) -> dict:
    payload = {
        "shop_id": shop.id,
        "service_id": service.id,
        "booking_date": (datetime.utcnow().date() + timedelta(days=3)).isoformat(),
        "booking_time": "14:30",
        "customer_name": "Ada Obi",
        "customer_email": "ada@example.com",
        "customer_phone": "08031112222",
    }
    payload.update(overrides)
    return payload


class TestCreateBooking:
    """POST /bookings"""

    async def test_book_service(self, client, customer, shop, service_product):
        response = await client.post(
            "/api/v1/bookings",
            json=booking_payload(shop, service_product),
            headers=auth_headers(customer),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["service_name"] == "Tailoring Session"
        assert data["booking_time"] == "14:30"
        assert data["duration_minutes"] == 60
        assert data["customer_id"] == customer.id
        assert data["next_statuses"] == ["confirmed", "cancelled"]

    async def test_past_date_rejected(self, client, shop, service_product):
        yesterday = (datetime.utcnow().date() - timedelta(days=1)).isoformat()

        response = await client.post(
            "/api/v1/bookings", json=booking_payload(shop, service_product, booking_date=yesterday)
        )

        assert response.status_code == 400

    async def test_physical_product_cannot_be_booked(self, client, shop, product):
        response = await client.post("/api/v1/bookings", json=booking_payload(shop, product))

        assert response.status_code == 400
        assert response.json()["detail"] == "Only services can be booked"

    async def test_unknown_service(self, client, shop, service_product):
        response = await client.post(
            "/api/v1/bookings", json=booking_payload(shop, service_product, service_id=999)
        )

        assert response.status_code == 404


class TestBookingLifecycle:
    """Owner-driven status changes."""

    async def create(self, client, shop, service_product, headers=None) -> dict:
        response = await client.post(
            "/api/v1/bookings", json=booking_payload(shop, service_product), headers=headers or {}
        )
        return response.json()

    async def test_confirm_then_complete(self, client, owner, shop, service_product):
        booking = await self.create(client, shop, service_product)
        headers = auth_headers(owner)

        confirmed = await client.patch(
            f"/api/v1/bookings/{booking['id']}/status", json={"status": "confirmed"}, headers=headers
        )
        completed = await client.patch(
            f"/api/v1/bookings/{booking['id']}/status", json={"status": "completed"}, headers=headers
        )

        assert confirmed.json()["confirmed_at"] is not None
        assert completed.json()["status"] == "completed"
        assert completed.json()["next_statuses"] == []

    async def test_pending_cannot_complete(self, client, owner, shop, service_product):
        booking = await self.create(client, shop, service_product)

        response = await client.patch(
            f"/api/v1/bookings/{booking['id']}/status",
            json={"status": "completed"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 409

    async def test_customer_cannot_change_status(self, client, customer, shop, service_product):
        booking = await self.create(client, shop, service_product, headers=auth_headers(customer))

        response = await client.patch(
            f"/api/v1/bookings/{booking['id']}/status",
            json={"status": "confirmed"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403

    async def test_shop_calendar_and_my_bookings(self, client, owner, customer, shop, service_product):
        await self.create(client, shop, service_product, headers=auth_headers(customer))

        calendar = await client.get(
            f"/api/v1/shops/{shop.id}/bookings",
            params={"status": "pending"},
            headers=auth_headers(owner),
        )
        mine = await client.get("/api/v1/bookings/mine", headers=auth_headers(customer))

        assert len(calendar.json()) == 1
        assert len(mine.json()) == 1

    async def test_whatsapp_link_to_customer(self, client, owner, shop, service_product):
        booking = await self.create(client, shop, service_product)

        response = await client.get(
            f"/api/v1/bookings/{booking['id']}/whatsapp", headers=auth_headers(owner)
        )

        assert response.json()["url"].startswith("https://wa.me/2348031112222?text=")

    async def test_phone_without_digits_rejected(self, client, shop, service_product):
        response = await client.post(
            "/api/v1/bookings",
            json=booking_payload(shop, service_product, customer_phone="call me"),
        )

        assert response.status_code == 422

    async def test_whatsapp_link_with_unusable_stored_number(
        self, client, db, owner, shop, service_product
    ):
        booking = Booking(
            shop_id=shop.id,
            service_id=service_product.id,
            booking_date=date(2030, 1, 10),
            booking_time=time(10, 0),
            duration_minutes=60,
            customer_name="Ada",
            customer_email="ada@example.com",
            customer_phone="call me",
        )
        db.add(booking)
        await db.commit()

        response = await client.get(
            f"/api/v1/bookings/{booking.id}/whatsapp", headers=auth_headers(owner)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidRequestError"

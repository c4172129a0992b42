"""
API tests for shops, products, reviews, coupons and the wishlist.
"""

from datetime import date, time
from decimal import Decimal

from steersolo.models.order import Booking
from steersolo.models.shop import Product
from steersolo.models.user import UserRole
from tests.conftest import auth_headers, make_user


class TestShops:
    """Shop creation and storefront reads."""

    async def test_owner_creates_shop_with_generated_slug(self, client, owner):
        response = await client.post(
            "/api/v1/shops",
            json={"shop_name": "Mama Put Kitchen", "whatsapp_number": "08030000000"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["shop_slug"] == "mama-put-kitchen"
        assert data["owner_id"] == owner.id
        assert "bank_name" in data

    async def test_whatsapp_number_without_digits_rejected(self, client, owner):
        response = await client.post(
            "/api/v1/shops",
            json={"shop_name": "Mama Put Kitchen", "whatsapp_number": "none yet"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 422

    async def test_duplicate_name_gets_numbered_slug(self, client, owner, shop):
        response = await client.post(
            "/api/v1/shops",
            json={"shop_name": "Chidi Fabrics"},
            headers=auth_headers(owner),
        )

        assert response.json()["shop_slug"] == "chidi-fabrics-1"

    async def test_requested_slug_taken(self, client, owner, shop):
        response = await client.post(
            "/api/v1/shops",
            json={"shop_name": "Another", "shop_slug": "chidi-fabrics"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 409

    async def test_customer_cannot_create_shop(self, client, customer):
        response = await client.post(
            "/api/v1/shops", json={"shop_name": "Nope"}, headers=auth_headers(customer)
        )

        assert response.status_code == 403

    async def test_public_view_hides_bank_details(self, client, shop):
        response = await client.get("/api/v1/shops/chidi-fabrics")

        assert response.status_code == 200
        assert response.json()["shop_name"] == "Chidi Fabrics"
        assert "bank_account_number" not in response.json()

    async def test_owner_view_includes_bank_details(self, client, owner, shop):
        response = await client.get("/api/v1/shops/chidi-fabrics", headers=auth_headers(owner))

        assert response.json()["bank_account_number"] == "0123456789"

    async def test_inactive_shop_hidden_from_public(self, client, db, owner, shop):
        shop.is_active = False
        await db.commit()

        assert (await client.get("/api/v1/shops/chidi-fabrics")).status_code == 404
        owner_view = await client.get("/api/v1/shops/chidi-fabrics", headers=auth_headers(owner))
        assert owner_view.status_code == 200

    async def test_directory_lists_active_shops(self, client, shop):
        response = await client.get("/api/v1/shops", params={"search": "chidi"})

        assert response.status_code == 200
        data = response.json()
        assert [item["shop_slug"] for item in data["items"]] == ["chidi-fabrics"]
        assert data["meta"]["total"] == 1

    async def test_update_shop_by_other_owner_forbidden(self, client, db, shop):
        other = await make_user(db, "other@example.com", role=UserRole.SHOP_OWNER)

        response = await client.patch(
            f"/api/v1/shops/{shop.id}",
            json={"shop_name": "Hijacked"},
            headers=auth_headers(other),
        )

        assert response.status_code == 403

    async def test_update_shop(self, client, owner, shop):
        response = await client.patch(
            f"/api/v1/shops/{shop.id}",
            json={"primary_color": "#ff6600", "description": None},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        assert response.json()["primary_color"] == "#ff6600"
        assert response.json()["description"] is None
        assert response.json()["shop_name"] == "Chidi Fabrics"

    async def test_my_shops(self, client, owner, shop):
        response = await client.get("/api/v1/shops/mine", headers=auth_headers(owner))

        assert [item["id"] for item in response.json()] == [shop.id]

    async def test_whatsapp_product_link(self, client, shop, product):
        response = await client.get(
            "/api/v1/shops/chidi-fabrics/whatsapp", params={"product_id": product.id}
        )

        assert response.status_code == 200
        assert response.json()["url"].startswith("https://wa.me/2348031234567?text=")
        assert "Ankara Dress" in response.json()["message"]

    async def test_whatsapp_link_without_number(self, client, db, shop):
        shop.whatsapp_number = None
        await db.commit()

        response = await client.get("/api/v1/shops/chidi-fabrics/whatsapp")

        assert response.status_code == 404


class TestProducts:
    """Catalog management."""

    async def test_create_and_list(self, client, owner, shop):
        response = await client.post(
            f"/api/v1/shops/{shop.id}/products",
            json={
                "name": "Gele Tying",
                "price": "3000",
                "type": "service",
                "duration_minutes": 30,
                "booking_required": True,
            },
            headers=auth_headers(owner),
        )
        assert response.status_code == 201
        assert response.json()["type"] == "service"
        assert response.json()["price"] == "3000.00"

        listing = await client.get(f"/api/v1/shops/{shop.id}/products", params={"type": "service"})
        assert [item["name"] for item in listing.json()["items"]] == ["Gele Tying"]

    async def test_product_limit_on_trial(self, client, db, owner, shop):
        for index in range(5):
            db.add(Product(shop_id=shop.id, name=f"Item {index}", price=Decimal("100")))
        await db.commit()

        response = await client.post(
            f"/api/v1/shops/{shop.id}/products",
            json={"name": "One too many", "price": "100"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 403
        assert response.json()["error"] == "LimitExceededError"
        assert "Product limit reached (5/5)" in response.json()["detail"]

    async def test_customer_cannot_add_products(self, client, customer, shop):
        response = await client.post(
            f"/api/v1/shops/{shop.id}/products",
            json={"name": "Nope", "price": "100"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403

    async def test_negative_price_rejected(self, client, owner, shop):
        response = await client.post(
            f"/api/v1/shops/{shop.id}/products",
            json={"name": "Bad", "price": "-1"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 422

    async def test_update_product(self, client, owner, product):
        response = await client.patch(
            f"/api/v1/products/{product.id}",
            json={"stock_quantity": 3, "is_available": False},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        assert response.json()["stock_quantity"] == 3
        assert response.json()["is_available"] is False
        assert response.json()["name"] == "Ankara Dress"

    async def test_delete_product(self, client, owner, product):
        response = await client.delete(
            f"/api/v1/products/{product.id}", headers=auth_headers(owner)
        )

        assert response.json() == {"status": "deleted", "id": product.id}
        assert (await client.get(f"/api/v1/products/{product.id}")).status_code == 404

    async def test_service_with_bookings_cannot_be_deleted(
        self, client, db, owner, shop, service_product
    ):
        db.add(
            Booking(
                shop_id=shop.id,
                service_id=service_product.id,
                booking_date=date(2030, 1, 10),
                booking_time=time(10, 0),
                duration_minutes=60,
                customer_name="Ada",
                customer_email="ada@example.com",
                customer_phone="08030000001",
            )
        )
        await db.commit()

        response = await client.delete(
            f"/api/v1/products/{service_product.id}", headers=auth_headers(owner)
        )

        assert response.status_code == 409


class TestReviews:
    """Product reviews and rating aggregates."""

    async def test_reviews_update_average(self, client, db, customer, product):
        second = await make_user(db, "bola@example.com", full_name="Bola")

        first = await client.post(
            f"/api/v1/products/{product.id}/reviews",
            json={"rating": 5, "comment": "Lovely fabric"},
            headers=auth_headers(customer),
        )
        await client.post(
            f"/api/v1/products/{product.id}/reviews",
            json={"rating": 4},
            headers=auth_headers(second),
        )

        assert first.status_code == 201
        assert first.json()["customer_name"] == "Ada Obi"

        product_data = (await client.get(f"/api/v1/products/{product.id}")).json()
        assert product_data["average_rating"] == 4.5
        assert product_data["total_reviews"] == 2

        reviews = (await client.get(f"/api/v1/products/{product.id}/reviews")).json()
        assert reviews["meta"]["total"] == 2

    async def test_one_review_per_customer(self, client, customer, product):
        payload = {"rating": 5}
        await client.post(
            f"/api/v1/products/{product.id}/reviews", json=payload, headers=auth_headers(customer)
        )

        response = await client.post(
            f"/api/v1/products/{product.id}/reviews", json=payload, headers=auth_headers(customer)
        )

        assert response.status_code == 409

    async def test_rating_out_of_range(self, client, customer, product):
        response = await client.post(
            f"/api/v1/products/{product.id}/reviews",
            json={"rating": 6},
            headers=auth_headers(customer),
        )

        assert response.status_code == 422


class TestCoupons:
    """Coupon endpoints."""

    async def test_create_and_validate(self, client, owner, shop):
        created = await client.post(
            f"/api/v1/shops/{shop.id}/coupons",
            json={"code": "launch20", "discount_type": "percentage", "discount_value": "20"},
            headers=auth_headers(owner),
        )
        assert created.status_code == 201
        assert created.json()["code"] == "LAUNCH20"

        response = await client.post(
            f"/api/v1/shops/{shop.id}/coupons/validate",
            json={"code": "launch20", "order_total": "15000"},
        )

        assert response.json() == {"valid": True, "discount": "3000.00", "error": None, "code": "LAUNCH20"}

    async def test_disabled_coupon_is_invalid(self, client, owner, shop):
        created = await client.post(
            f"/api/v1/shops/{shop.id}/coupons",
            json={"code": "OFF500", "discount_type": "fixed", "discount_value": "500"},
            headers=auth_headers(owner),
        )
        coupon_id = created.json()["id"]

        toggled = await client.patch(
            f"/api/v1/shops/{shop.id}/coupons/{coupon_id}",
            json={"is_active": False},
            headers=auth_headers(owner),
        )
        assert toggled.json()["is_active"] is False

        response = await client.post(
            f"/api/v1/shops/{shop.id}/coupons/validate",
            json={"code": "OFF500", "order_total": "15000"},
        )
        assert response.json()["valid"] is False
        assert response.json()["error"] == "Invalid coupon code"

    async def test_delete_coupon(self, client, owner, shop):
        created = await client.post(
            f"/api/v1/shops/{shop.id}/coupons",
            json={"code": "GONE", "discount_type": "fixed", "discount_value": "500"},
            headers=auth_headers(owner),
        )
        coupon_id = created.json()["id"]

        response = await client.delete(
            f"/api/v1/shops/{shop.id}/coupons/{coupon_id}", headers=auth_headers(owner)
        )

        assert response.json() == {"status": "deleted", "id": coupon_id}
        listing = await client.get(f"/api/v1/shops/{shop.id}/coupons", headers=auth_headers(owner))
        assert listing.json() == []

    async def test_coupons_are_owner_only(self, client, customer, shop):
        response = await client.get(
            f"/api/v1/shops/{shop.id}/coupons", headers=auth_headers(customer)
        )

        assert response.status_code == 403


class TestWishlist:
    async def test_toggle_and_list(self, client, customer, product):
        added = await client.post(
            f"/api/v1/wishlist/{product.id}/toggle", headers=auth_headers(customer)
        )
        assert added.json() == {"product_id": product.id, "in_wishlist": True}

        wishlist = (await client.get("/api/v1/wishlist", headers=auth_headers(customer))).json()
        assert len(wishlist) == 1
        assert wishlist[0]["product"]["name"] == "Ankara Dress"
        assert wishlist[0]["shop"]["shop_slug"] == "chidi-fabrics"

        removed = await client.post(
            f"/api/v1/wishlist/{product.id}/toggle", headers=auth_headers(customer)
        )
        assert removed.json()["in_wishlist"] is False

    async def test_unknown_product(self, client, customer):
        response = await client.post("/api/v1/wishlist/999/toggle", headers=auth_headers(customer))

        assert response.status_code == 404


class TestPaystackSubaccount:
    """POST /shops/{id}/paystack-subaccount and GET /payments/banks"""

    async def test_owner_connects_and_orders_split(
        self, client, owner, shop, product, fake_paystack
    ):
        response = await client.post(
            f"/api/v1/shops/{shop.id}/paystack-subaccount",
            json={"bank_code": "058", "account_number": "0123456789"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["paystack_subaccount_code"] == "ACCT_test1"
        assert data["bank_name"] == "Guaranty Trust Bank"
        assert fake_paystack.subaccounts[0]["business_name"] == "Chidi Fabrics"

        order = await client.post(
            "/api/v1/orders",
            json={
                "shop_id": shop.id,
                "items": [{"product_id": product.id, "quantity": 1}],
                "customer_name": "Ada Obi",
                "customer_email": "ada@example.com",
                "customer_phone": "08031112222",
                "delivery_address": "12 Allen Avenue, Ikeja",
            },
        )
        checkout = await client.post(f"/api/v1/orders/{order.json()['id']}/pay", json={})

        assert checkout.json()["payment_mode"] == "split"
        assert fake_paystack.requests[0]["subaccount"] == "ACCT_test1"

    async def test_other_owner_forbidden(self, client, db, shop, fake_paystack):
        intruder = await make_user(db, "ngozi@example.com", role=UserRole.SHOP_OWNER)

        response = await client.post(
            f"/api/v1/shops/{shop.id}/paystack-subaccount",
            json={"bank_code": "058", "account_number": "0123456789"},
            headers=auth_headers(intruder),
        )

        assert response.status_code == 403
        assert fake_paystack.subaccounts == []

    async def test_rejected_account_is_bad_gateway(self, client, db, owner, shop):
        response = await client.post(
            f"/api/v1/shops/{shop.id}/paystack-subaccount",
            json={"bank_code": "058", "account_number": "0000000000"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 502
        await db.refresh(shop)
        assert shop.paystack_subaccount_code is None

    async def test_account_number_must_be_ten_digits(self, client, owner, shop):
        response = await client.post(
            f"/api/v1/shops/{shop.id}/paystack-subaccount",
            json={"bank_code": "058", "account_number": "12345"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 422

    async def test_list_banks(self, client, owner):
        response = await client.get("/api/v1/payments/banks", headers=auth_headers(owner))

        assert response.status_code == 200
        assert [bank["code"] for bank in response.json()] == ["044", "058"]

    async def test_list_banks_requires_login(self, client):
        response = await client.get("/api/v1/payments/banks")

        assert response.status_code == 401

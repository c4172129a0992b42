"""
API tests for checkout, the order lifecycle and order payments.
"""

import hashlib
import hmac
import json
from decimal import Decimal

import pytest
from sqlalchemy import select

from steersolo.models.billing import RevenueTransaction
from steersolo.models.shop import Coupon, DiscountType
from tests.conftest import PAYSTACK_SECRET, auth_headers, make_user


def order_payload(shop, product, quantity: int = 2, **overrides) -> dict:
    payload = {
        "shop_id": shop.id,
        "items": [{"product_id": product.id, "quantity": quantity}],
        "customer_name": "Ada Obi",
        "customer_email": "ada@example.com",
        "customer_phone": "08031112222",
        "delivery_address": "12 Allen Avenue",
        "delivery_city": "Ikeja",
        "delivery_state": "Lagos",
    }
    payload.update(overrides)
    return payload


async def place_order(client, shop, product, headers=None, **overrides) -> dict:
    response = await client.post(
        "/api/v1/orders", json=order_payload(shop, product, **overrides), headers=headers or {}
    )
    assert response.status_code == 201, response.text
    return response.json()


def signed(body: dict) -> tuple[bytes, dict]:
    raw = json.dumps(body).encode()
    signature = hmac.new(PAYSTACK_SECRET.encode(), raw, hashlib.sha512).hexdigest()
    return raw, {"x-paystack-signature": signature, "Content-Type": "application/json"}


class TestCheckout:
    """POST /orders"""

    async def test_guest_order_totals_and_stock(self, client, db, shop, product):
        order = await place_order(client, shop, product, delivery_fee="1500")

        assert order["status"] == "pending"
        assert order["payment_status"] == "pending"
        assert order["customer_id"] is None
        assert order["subtotal"] == "30000.00"
        assert order["delivery_fee"] == "1500.00"
        assert order["total_amount"] == "31500.00"
        assert order["order_number"].startswith("SS-")
        assert order["items"][0]["product_name"] == "Ankara Dress"
        assert order["items"][0]["total"] == "30000.00"
        assert order["next_statuses"] == ["confirmed", "cancelled"]

        await db.refresh(product)
        assert product.stock_quantity == 8

    @pytest.mark.parametrize(
        "choice,status,payment_status",
        [
            ("pay_on_delivery", "awaiting_approval", "on_delivery"),
            ("bank_transfer", "awaiting_approval", "unpaid"),
        ],
    )
    async def test_offline_payment_choices(self, client, shop, product, choice, status, payment_status):
        order = await place_order(client, shop, product, payment_choice=choice)

        assert order["status"] == status
        assert order["payment_status"] == payment_status

    async def test_logged_in_order_is_linked(self, client, customer, shop, product):
        order = await place_order(client, shop, product, headers=auth_headers(customer))

        assert order["customer_id"] == customer.id
        mine = await client.get("/api/v1/orders", headers=auth_headers(customer))
        assert [item["id"] for item in mine.json()["items"]] == [order["id"]]

    async def test_repeated_lines_are_merged(self, client, shop, product):
        order = await place_order(
            client,
            shop,
            product,
            items=[
                {"product_id": product.id, "quantity": 1},
                {"product_id": product.id, "quantity": 2},
            ],
        )

        assert len(order["items"]) == 1
        assert order["items"][0]["quantity"] == 3

    async def test_insufficient_stock(self, client, db, shop, product):
        response = await client.post("/api/v1/orders", json=order_payload(shop, product, quantity=11))

        assert response.status_code == 400
        await db.refresh(product)
        assert product.stock_quantity == 10

    async def test_product_from_other_shop(self, client, shop, product):
        payload = order_payload(shop, product)
        payload["items"] = [{"product_id": 999, "quantity": 1}]

        response = await client.post("/api/v1/orders", json=payload)

        assert response.status_code == 400

    async def test_empty_order_rejected(self, client, shop, product):
        response = await client.post("/api/v1/orders", json=order_payload(shop, product, items=[]))

        assert response.status_code == 422

    async def test_coupon_applied_and_counted(self, client, db, shop, product):
        coupon = Coupon(
            shop_id=shop.id,
            code="SAVE10",
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("10"),
            used_count=0,
            is_active=True,
        )
        db.add(coupon)
        await db.commit()

        order = await place_order(client, shop, product, coupon_code="save10")

        assert order["discount_amount"] == "3000.00"
        assert order["total_amount"] == "27000.00"
        assert order["coupon_code"] == "SAVE10"
        await db.refresh(coupon)
        assert coupon.used_count == 1

    async def test_invalid_coupon_rejects_order(self, client, db, shop, product):
        response = await client.post(
            "/api/v1/orders", json=order_payload(shop, product, coupon_code="NOPE")
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid coupon code"
        await db.refresh(product)
        assert product.stock_quantity == 10

    async def test_inactive_shop(self, client, db, shop, product):
        shop.is_active = False
        await db.commit()

        response = await client.post("/api/v1/orders", json=order_payload(shop, product))

        assert response.status_code == 404


class TestOrderLifecycle:
    """PATCH /orders/{id}/status"""

    async def test_owner_walks_order_to_completion(self, client, owner, shop, product):
        order = await place_order(client, shop, product)
        headers = auth_headers(owner)

        for status in ["confirmed", "processing", "out_for_delivery", "delivered", "completed"]:
            response = await client.patch(
                f"/api/v1/orders/{order['id']}/status", json={"status": status}, headers=headers
            )
            assert response.status_code == 200, response.text
            assert response.json()["status"] == status

        data = response.json()
        assert data["completed_at"] is not None
        assert data["next_statuses"] == []

    async def test_invalid_transition_conflicts(self, client, owner, shop, product):
        order = await place_order(client, shop, product)

        response = await client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"status": "delivered"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidTransitionError"
        assert response.json()["detail"] == "Cannot change status from 'pending' to 'delivered'"

    async def test_cancel_restores_stock(self, client, db, owner, shop, product):
        order = await place_order(client, shop, product, quantity=4)

        response = await client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"status": "cancelled"},
            headers=auth_headers(owner),
        )

        assert response.json()["cancelled_by"] == owner.id
        await db.refresh(product)
        assert product.stock_quantity == 10

    async def test_customer_may_cancel_before_confirmation(self, client, customer, shop, product):
        order = await place_order(client, shop, product, headers=auth_headers(customer))

        response = await client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"status": "cancelled"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

    async def test_customer_cancel_cannot_touch_payment(self, client, db, customer, shop, product):
        order = await place_order(client, shop, product, headers=auth_headers(customer))

        response = await client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"status": "cancelled", "payment_status": "refunded", "payment_reference": "FAKE"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403
        fetched = await client.get(f"/api/v1/orders/{order['id']}", headers=auth_headers(customer))
        assert fetched.json()["status"] == "pending"
        assert fetched.json()["payment_status"] == "pending"
        assert fetched.json()["payment_reference"] is None

    async def test_customer_cannot_confirm(self, client, customer, shop, product):
        order = await place_order(client, shop, product, headers=auth_headers(customer))

        response = await client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"status": "confirmed"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403

    async def test_manual_payment_marking(self, client, owner, shop, product):
        order = await place_order(client, shop, product, payment_choice="bank_transfer")

        response = await client.patch(
            f"/api/v1/orders/{order['id']}/status",
            json={"status": "confirmed", "payment_status": "paid", "payment_reference": "TRF-001"},
            headers=auth_headers(owner),
        )

        data = response.json()
        assert data["payment_status"] == "paid"
        assert data["paid_at"] is not None
        assert data["payment_reference"] == "TRF-001"

    async def test_next_statuses(self, client, owner, shop, product):
        order = await place_order(client, shop, product, payment_choice="pay_on_delivery")

        response = await client.get(
            f"/api/v1/orders/{order['id']}/next-statuses", headers=auth_headers(owner)
        )

        assert response.json() == {
            "status": "awaiting_approval",
            "next_statuses": ["confirmed", "cancelled"],
        }


class TestOrderAccess:
    """Who may read an order."""

    async def test_guest_order_visible_by_id(self, client, shop, product):
        order = await place_order(client, shop, product)

        response = await client.get(f"/api/v1/orders/{order['id']}")

        assert response.status_code == 200

    async def test_account_order_requires_login(self, client, customer, shop, product):
        order = await place_order(client, shop, product, headers=auth_headers(customer))

        assert (await client.get(f"/api/v1/orders/{order['id']}")).status_code == 401

    async def test_other_customer_forbidden(self, client, db, customer, shop, product):
        order = await place_order(client, shop, product, headers=auth_headers(customer))
        stranger = await make_user(db, "stranger@example.com")

        response = await client.get(f"/api/v1/orders/{order['id']}", headers=auth_headers(stranger))

        assert response.status_code == 403

    async def test_shop_owner_lists_shop_orders(self, client, owner, shop, product):
        await place_order(client, shop, product)

        response = await client.get(
            "/api/v1/orders", params={"shop_id": shop.id}, headers=auth_headers(owner)
        )

        assert response.json()["meta"]["total"] == 1

    async def test_customer_cannot_list_shop_orders(self, client, customer, shop):
        response = await client.get(
            "/api/v1/orders", params={"shop_id": shop.id}, headers=auth_headers(customer)
        )

        assert response.status_code == 403

    async def test_whatsapp_summary_link(self, client, shop, product):
        order = await place_order(client, shop, product)

        response = await client.get(f"/api/v1/orders/{order['id']}/whatsapp")

        url = response.json()["url"]
        assert url.startswith("https://wa.me/2348031234567?text=")
        assert "Ankara%20Dress%20x2" in url


class TestOrderPayment:
    """Paystack checkout, verification and webhooks for orders."""

    async def test_pay_initializes_direct_checkout(self, client, shop, product, fake_paystack):
        order = await place_order(client, shop, product)

        response = await client.post(f"/api/v1/orders/{order['id']}/pay", json={})

        assert response.status_code == 200
        data = response.json()
        assert data["payment_mode"] == "direct"
        assert data["reference"].startswith(f"ORDER_{order['id']}_")
        assert data["authorization_url"].endswith(data["reference"])
        sent = fake_paystack.requests[0]
        assert sent["amount"] == 3000000
        assert sent["email"] == "ada@example.com"
        assert sent["metadata"]["order_id"] == order["id"]

    async def test_pay_splits_to_subaccount(self, client, db, shop, product, fake_paystack):
        shop.paystack_subaccount_code = "ACCT_chidi"
        await db.commit()
        order = await place_order(client, shop, product)

        response = await client.post(f"/api/v1/orders/{order['id']}/pay", json={})

        assert response.json()["payment_mode"] == "split"
        assert fake_paystack.requests[0]["subaccount"] == "ACCT_chidi"

    async def test_verify_marks_paid_and_records_revenue(self, client, db, owner, shop, product):
        order = await place_order(client, shop, product)
        checkout = (await client.post(f"/api/v1/orders/{order['id']}/pay", json={})).json()

        response = await client.post(
            "/api/v1/orders/verify-payment", json={"reference": checkout["reference"]}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["payment_status"] == "paid"
        assert data["status"] == "paid_awaiting_delivery"
        assert data["confirmed_at"] is not None

        balance = await client.get(
            f"/api/v1/shops/{shop.id}/payouts/balance", headers=auth_headers(owner)
        )
        assert balance.json()["total_revenue"] == "30000.00"

    async def test_verify_twice_records_revenue_once(self, client, db, shop, product):
        order = await place_order(client, shop, product)
        checkout = (await client.post(f"/api/v1/orders/{order['id']}/pay", json={})).json()

        for _ in range(2):
            await client.post("/api/v1/orders/verify-payment", json={"reference": checkout["reference"]})

        result = await db.execute(select(RevenueTransaction))
        assert len(result.scalars().all()) == 1

    async def test_underpayment_rejected(self, client, shop, product, fake_paystack):
        order = await place_order(client, shop, product)
        checkout = (await client.post(f"/api/v1/orders/{order['id']}/pay", json={})).json()
        fake_paystack.transactions[checkout["reference"]]["amount"] = 100

        response = await client.post(
            "/api/v1/orders/verify-payment", json={"reference": checkout["reference"]}
        )

        assert response.status_code == 400

    async def test_unknown_reference(self, client):
        response = await client.post("/api/v1/orders/verify-payment", json={"reference": "nope"})

        assert response.status_code == 502

    async def test_paid_order_cannot_be_paid_again(self, client, shop, product):
        order = await place_order(client, shop, product)
        checkout = (await client.post(f"/api/v1/orders/{order['id']}/pay", json={})).json()
        await client.post("/api/v1/orders/verify-payment", json={"reference": checkout["reference"]})

        response = await client.post(f"/api/v1/orders/{order['id']}/pay", json={})

        assert response.status_code == 409

    async def test_webhook_marks_order_paid(self, client, shop, product):
        order = await place_order(client, shop, product)
        body, headers = signed(
            {
                "event": "charge.success",
                "data": {
                    "reference": "ORDER_hook_1",
                    "amount": 3000000,
                    "metadata": {"order_id": order["id"]},
                },
            }
        )

        response = await client.post("/api/v1/webhooks/paystack", content=body, headers=headers)

        assert response.json() == {"received": True, "handled": True, "order_id": order["id"]}
        paid = (await client.get(f"/api/v1/orders/{order['id']}")).json()
        assert paid["payment_status"] == "paid"
        assert paid["payment_reference"] == "ORDER_hook_1"

    async def test_webhook_underpaid_charge_acknowledged(self, client, shop, product):
        order = await place_order(client, shop, product)
        body, headers = signed(
            {
                "event": "charge.success",
                "data": {
                    "reference": "ORDER_hook_2",
                    "amount": 100000,
                    "metadata": {"order_id": order["id"]},
                },
            }
        )

        response = await client.post("/api/v1/webhooks/paystack", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"received": True, "handled": False, "order_id": order["id"]}
        unpaid = (await client.get(f"/api/v1/orders/{order['id']}")).json()
        assert unpaid["payment_status"] == "pending"

    async def test_webhook_invalid_signature(self, client):
        body = json.dumps({"event": "charge.success", "data": {}}).encode()

        response = await client.post(
            "/api/v1/webhooks/paystack",
            content=body,
            headers={"x-paystack-signature": "bad"},
        )

        assert response.status_code == 401

    async def test_webhook_other_events_acknowledged(self, client):
        body, headers = signed({"event": "transfer.success", "data": {"reference": "TRF_1"}})

        response = await client.post("/api/v1/webhooks/paystack", content=body, headers=headers)

        assert response.json() == {"received": True, "handled": False}

    async def test_webhook_unreadable_payload(self, client):
        raw = b"not json"
        signature = hmac.new(PAYSTACK_SECRET.encode(), raw, hashlib.sha512).hexdigest()

        response = await client.post(
            "/api/v1/webhooks/paystack", content=raw, headers={"x-paystack-signature": signature}
        )

        assert response.status_code == 400


class TestPayouts:
    """Shop balance and withdrawals."""

    async def add_revenue(self, db, shop, amount: str, method: str = "paystack") -> None:
        db.add(
            RevenueTransaction(
                shop_id=shop.id,
                gross_amount=Decimal(amount),
                amount=Decimal(amount),
                payment_method=method,
                payment_reference=f"ref-{amount}-{method}",
                transaction_type="order_payment",
            )
        )
        await db.commit()

    async def test_balance_counts_only_paystack_revenue(self, client, db, owner, shop):
        await self.add_revenue(db, shop, "20000")
        await self.add_revenue(db, shop, "7000", method="bank_transfer")

        response = await client.get(
            f"/api/v1/shops/{shop.id}/payouts/balance", headers=auth_headers(owner)
        )

        assert response.json() == {
            "total_revenue": "20000.00",
            "completed_payouts": "0.00",
            "pending_payouts": "0.00",
            "available_balance": "20000.00",
        }

    async def test_request_payout_uses_shop_bank(self, client, db, owner, shop):
        await self.add_revenue(db, shop, "20000")

        response = await client.post(
            f"/api/v1/shops/{shop.id}/payouts", json={"amount": "15000"}, headers=auth_headers(owner)
        )

        assert response.status_code == 201
        assert response.json()["bank_name"] == "GTBank"
        assert response.json()["status"] == "pending"

        balance = await client.get(
            f"/api/v1/shops/{shop.id}/payouts/balance", headers=auth_headers(owner)
        )
        assert balance.json()["pending_payouts"] == "15000.00"
        assert balance.json()["available_balance"] == "5000.00"

        history = await client.get(f"/api/v1/shops/{shop.id}/payouts", headers=auth_headers(owner))
        assert len(history.json()) == 1

    @pytest.mark.parametrize("amount", ["4999", "25000"])
    async def test_payout_below_minimum_or_above_balance(self, client, db, owner, shop, amount):
        await self.add_revenue(db, shop, "20000")

        response = await client.post(
            f"/api/v1/shops/{shop.id}/payouts", json={"amount": amount}, headers=auth_headers(owner)
        )

        assert response.status_code == 400

    async def test_payouts_are_owner_only(self, client, customer, shop):
        response = await client.get(
            f"/api/v1/shops/{shop.id}/payouts/balance", headers=auth_headers(customer)
        )

        assert response.status_code == 403

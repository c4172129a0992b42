"""
API tests for plans, subscription checkout and metered features.
"""

import hashlib
import hmac
import json

from steersolo.core.config import settings
from steersolo.models.billing import SpecialOffer, SubscriptionPlan
from tests.conftest import PAYSTACK_SECRET, auth_headers


async def add_plan(db, **overrides) -> SubscriptionPlan:
    fields = {
        "name": "Pro",
        "slug": "pro",
        "price_monthly": 250000,
        "price_yearly": 2500000,
        "features": ["Unlimited products", "Priority support"],
        "max_products": None,
        "display_order": 1,
    }
    fields.update(overrides)
    plan = SubscriptionPlan(**fields)
    db.add(plan)
    await db.commit()
    return plan


class TestPlans:
    async def test_lists_active_plans_in_order(self, client, db):
        await add_plan(db)
        await add_plan(db, name="Basic", slug="basic", price_monthly=100000, display_order=0)
        await add_plan(db, name="Legacy", slug="legacy", price_monthly=50000, is_active=False)

        response = await client.get("/api/v1/subscriptions/plans")

        assert [plan["slug"] for plan in response.json()] == ["basic", "pro"]
        assert response.json()[1]["features"] == ["Unlimited products", "Priority support"]


class TestCheckout:
    """Subscription payment through Paystack."""

    async def test_base_price_without_plan(self, client, owner, fake_paystack):
        response = await client.post(
            "/api/v1/subscriptions/initialize", json={}, headers=auth_headers(owner)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["amount"] == settings.subscription_base_price_kobo
        assert data["reference"].startswith(f"SUB_{owner.id}_")
        metadata = fake_paystack.requests[0]["metadata"]
        assert metadata["user_id"] == owner.id
        assert metadata["subscription_days"] == settings.subscription_days_monthly

    async def test_yearly_plan_price(self, client, db, owner, fake_paystack):
        await add_plan(db)

        response = await client.post(
            "/api/v1/subscriptions/initialize",
            json={"plan_slug": "pro", "billing_cycle": "yearly"},
            headers=auth_headers(owner),
        )

        assert response.json()["amount"] == 2500000
        assert fake_paystack.requests[0]["metadata"]["subscription_days"] == 365

    async def test_offer_replaces_price(self, client, db, owner):
        await add_plan(db)
        db.add(SpecialOffer(code="LAUNCH", title="Launch week", subscription_price=50000))
        await db.commit()

        response = await client.post(
            "/api/v1/subscriptions/initialize",
            json={"plan_slug": "pro"},
            headers=auth_headers(owner),
        )

        assert response.json()["amount"] == 50000
        assert response.json()["offer_code"] == "LAUNCH"

    async def test_unknown_plan(self, client, owner):
        response = await client.post(
            "/api/v1/subscriptions/initialize",
            json={"plan_slug": "gold"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 404

    async def test_unknown_billing_cycle(self, client, owner):
        response = await client.post(
            "/api/v1/subscriptions/initialize",
            json={"billing_cycle": "weekly"},
            headers=auth_headers(owner),
        )

        assert response.status_code == 422

    async def test_verify_activates_plan(self, client, db, owner):
        plan = await add_plan(db)
        checkout = (
            await client.post(
                "/api/v1/subscriptions/initialize",
                json={"plan_slug": "pro"},
                headers=auth_headers(owner),
            )
        ).json()

        response = await client.post(
            "/api/v1/subscriptions/verify",
            json={"reference": checkout["reference"]},
            headers=auth_headers(owner),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.json()["billing_cycle"] == "monthly"

        status = (await client.get("/api/v1/subscriptions/status", headers=auth_headers(owner))).json()
        assert status["plan"]["id"] == plan.id

    async def test_verify_other_users_payment_forbidden(self, client, owner, customer):
        checkout = (
            await client.post(
                "/api/v1/subscriptions/initialize", json={}, headers=auth_headers(owner)
            )
        ).json()

        response = await client.post(
            "/api/v1/subscriptions/verify",
            json={"reference": checkout["reference"]},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403

    async def test_webhook_activates_once(self, client, db, owner):
        body = json.dumps(
            {
                "event": "charge.success",
                "data": {
                    "reference": "SUB_hook_1",
                    "amount": 100000,
                    "metadata": {
                        "user_id": owner.id,
                        "billing_cycle": "monthly",
                        "subscription_days": 30,
                    },
                },
            }
        ).encode()
        headers = {
            "x-paystack-signature": hmac.new(
                PAYSTACK_SECRET.encode(), body, hashlib.sha512
            ).hexdigest()
        }
        trial_end = owner.subscription_expires_at

        first = await client.post("/api/v1/webhooks/paystack", content=body, headers=headers)
        await client.post("/api/v1/webhooks/paystack", content=body, headers=headers)

        assert first.json() == {"received": True, "handled": True, "user_id": owner.id}
        await db.refresh(owner)
        assert owner.is_subscribed is True
        assert (owner.subscription_expires_at - trial_end).days == 30


class TestLimitsAndFeatures:
    async def test_product_limit_endpoint(self, client, owner, shop, product):
        response = await client.get(
            "/api/v1/subscriptions/limits/products", headers=auth_headers(owner)
        )

        assert response.json() == {
            "can_create": True,
            "current_count": 1,
            "max_allowed": settings.free_plan_max_products,
            "plan_slug": "trial",
        }

    async def test_feature_usage_until_limit(self, client, owner):
        headers = auth_headers(owner)
        for _ in range(settings.feature_usage_monthly_limit):
            response = await client.post(
                "/api/v1/subscriptions/features/ai_description", headers=headers
            )
            assert response.status_code == 200

        blocked = await client.post("/api/v1/subscriptions/features/ai_description", headers=headers)
        usage = await client.get("/api/v1/subscriptions/features/ai_description", headers=headers)

        assert blocked.status_code == 403
        assert usage.json()["current_usage"] == settings.feature_usage_monthly_limit
        assert usage.json()["can_use"] is False

"""
API tests for reward points, prize claims and courses.
"""

from sqlalchemy import select

from steersolo.models.rewards import Course, CourseEnrollment, Prize
from steersolo.modules.rewards import RewardsService
from tests.conftest import auth_headers


async def add_prize(db, **overrides) -> Prize:
    fields = {
        "title": "SteerSolo Tote Bag",
        "description": "Branded canvas tote",
        "points_required": 100,
        "stock_quantity": 3,
    }
    fields.update(overrides)
    prize = Prize(**fields)
    db.add(prize)
    await db.commit()
    return prize


async def add_course(db, **overrides) -> Course:
    fields = {
        "title": "Pricing your products",
        "description": "Set prices that sell",
        "content": "Start from your costs.",
        "reward_points": 50,
        "target_audience": "shop_owner",
    }
    fields.update(overrides)
    course = Course(**fields)
    db.add(course)
    await db.commit()
    return course


class TestPoints:
    async def test_new_user_has_no_points(self, client, customer):
        response = await client.get("/api/v1/rewards/points", headers=auth_headers(customer))

        assert response.json() == {"user_id": customer.id, "total_points": 0}

    async def test_points_require_login(self, client):
        response = await client.get("/api/v1/rewards/points")

        assert response.status_code == 401


class TestPrizes:
    """Prize catalog and redemption."""

    async def test_lists_active_prizes_cheapest_first(self, client, db):
        await add_prize(db, title="Phone stand", points_required=300)
        await add_prize(db)
        await add_prize(db, title="Retired mug", points_required=10, is_active=False)

        response = await client.get("/api/v1/rewards/prizes")

        assert [prize["title"] for prize in response.json()] == [
            "SteerSolo Tote Bag",
            "Phone stand",
        ]

    async def test_claim_spends_points_and_stock(self, client, db, customer):
        prize = await add_prize(db)
        await RewardsService(db).add_points(customer, 150)
        await db.commit()

        response = await client.post(
            f"/api/v1/rewards/prizes/{prize.id}/claim", headers=auth_headers(customer)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["points_spent"] == 100
        assert data["prize_title"] == "SteerSolo Tote Bag"
        assert data["remaining_points"] == 50

        await db.refresh(prize)
        assert prize.stock_quantity == 2

        claims = await client.get("/api/v1/rewards/claims", headers=auth_headers(customer))
        assert [claim["id"] for claim in claims.json()] == [data["id"]]

    async def test_not_enough_points(self, client, db, customer):
        prize = await add_prize(db)
        await RewardsService(db).add_points(customer, 40)
        await db.commit()

        response = await client.post(
            f"/api/v1/rewards/prizes/{prize.id}/claim", headers=auth_headers(customer)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Not enough points: 100 required, 40 available"

    async def test_out_of_stock(self, client, db, customer):
        prize = await add_prize(db, stock_quantity=0)
        await RewardsService(db).add_points(customer, 500)
        await db.commit()

        response = await client.post(
            f"/api/v1/rewards/prizes/{prize.id}/claim", headers=auth_headers(customer)
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Prize is out of stock"

    async def test_inactive_prize_not_found(self, client, db, customer):
        prize = await add_prize(db, is_active=False)

        response = await client.post(
            f"/api/v1/rewards/prizes/{prize.id}/claim", headers=auth_headers(customer)
        )

        assert response.status_code == 404


class TestCourses:
    """Course catalog and enrollment."""

    async def test_audience_filter_includes_all(self, client, db):
        await add_course(db)
        await add_course(db, title="Staying safe online", target_audience="all")
        await add_course(db, title="Shopping smart", target_audience="customer")
        await add_course(db, title="Old course", target_audience="all", is_active=False)

        response = await client.get("/api/v1/courses", params={"audience": "shop_owner"})

        titles = {course["title"] for course in response.json()}
        assert titles == {"Pricing your products", "Staying safe online"}
        assert "content" not in response.json()[0]

    async def test_course_detail_has_content(self, client, db):
        course = await add_course(db)

        response = await client.get(f"/api/v1/courses/{course.id}")

        assert response.json()["content"] == "Start from your costs."

    async def test_inactive_course_not_found(self, client, db):
        course = await add_course(db, is_active=False)

        response = await client.get(f"/api/v1/courses/{course.id}")

        assert response.status_code == 404

    async def test_enroll_twice_returns_same_enrollment(self, client, db, owner):
        course = await add_course(db)
        headers = auth_headers(owner)

        first = await client.post(f"/api/v1/courses/{course.id}/enroll", headers=headers)
        second = await client.post(f"/api/v1/courses/{course.id}/enroll", headers=headers)

        assert first.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["progress"] == 0

        mine = await client.get("/api/v1/courses/enrollments", headers=headers)
        assert len(mine.json()) == 1

    async def test_progress_requires_enrollment(self, client, db, owner):
        course = await add_course(db)

        response = await client.patch(
            f"/api/v1/courses/{course.id}/progress",
            json={"progress": 40},
            headers=auth_headers(owner),
        )

        assert response.status_code == 404

    async def test_progress_out_of_range(self, client, db, owner):
        course = await add_course(db)
        headers = auth_headers(owner)
        await client.post(f"/api/v1/courses/{course.id}/enroll", headers=headers)

        response = await client.patch(
            f"/api/v1/courses/{course.id}/progress", json={"progress": 120}, headers=headers
        )

        assert response.status_code == 422

    async def test_full_progress_completes_and_awards_points(self, client, db, owner):
        course = await add_course(db)
        headers = auth_headers(owner)
        await client.post(f"/api/v1/courses/{course.id}/enroll", headers=headers)

        partial = await client.patch(
            f"/api/v1/courses/{course.id}/progress", json={"progress": 40}, headers=headers
        )
        done = await client.patch(
            f"/api/v1/courses/{course.id}/progress", json={"progress": 100}, headers=headers
        )

        assert partial.json()["completed_at"] is None
        assert done.json()["completed_at"] is not None
        assert done.json()["reward_claimed"] is True

        points = await client.get("/api/v1/rewards/points", headers=headers)
        assert points.json()["total_points"] == 50

    async def test_points_awarded_once(self, client, db, owner):
        course = await add_course(db)
        headers = auth_headers(owner)
        await client.post(f"/api/v1/courses/{course.id}/enroll", headers=headers)

        await client.post(f"/api/v1/courses/{course.id}/complete", headers=headers)
        await client.post(f"/api/v1/courses/{course.id}/complete", headers=headers)

        points = await client.get("/api/v1/rewards/points", headers=headers)
        assert points.json()["total_points"] == 50

        result = await db.execute(
            select(CourseEnrollment).where(CourseEnrollment.user_id == owner.id)
        )
        assert result.scalar_one().progress == 100

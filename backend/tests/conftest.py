import json
import os
from decimal import Decimal
from typing import Any, AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite://"
PAYSTACK_SECRET = "sk_test_steersolo"

# Set test configuration before importing the app
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["PAYSTACK_SECRET_KEY"] = PAYSTACK_SECRET
os.environ["RESEND_API_KEY"] = ""
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-with-enough-length"

from steersolo.core.database import Base, create_sessionmaker, get_db  # noqa: E402
from steersolo.core.security import create_access_token  # noqa: E402
from steersolo.models.shop import Product, ProductType, Shop  # noqa: E402
from steersolo.models.user import User, UserRole  # noqa: E402
from steersolo.modules.billing.paystack import PaystackClient, get_paystack_client  # noqa: E402
from steersolo.modules.shop.cart import CartService, get_cart_service  # noqa: E402
from steersolo.modules.users import UserService  # noqa: E402

PASSWORD = "s3cret-pass"


# ==================== Fakes ====================


class FakeRedis:
    """In-memory stand-in for the redis.asyncio calls the cart makes."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.store[key] = value
        self.ttls[key] = ttl

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)
        self.ttls.pop(key, None)

    async def aclose(self) -> None:
        pass


class FakePaystack:
    """
    Paystack API served through httpx.MockTransport.

    Initialized transactions are remembered so verify returns them
    as successful, with the amount and metadata that were sent.
    """

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.transactions: dict[str, dict[str, Any]] = {}
        self.subaccounts: list[dict[str, Any]] = []
        self.bank_queries: list[dict[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path == "/transaction/initialize":
            payload = json.loads(request.content)
            self.requests.append(payload)
            reference = payload.get("reference") or f"ref_{len(self.requests)}"
            self.transactions[reference] = {
                "status": "success",
                "reference": reference,
                "amount": payload["amount"],
                "metadata": payload.get("metadata") or {},
            }
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "message": "Authorization URL created",
                    "data": {
                        "authorization_url": f"https://checkout.paystack.com/{reference}",
                        "access_code": f"code_{reference}",
                        "reference": reference,
                    },
                },
            )

        if request.method == "GET" and path.startswith("/transaction/verify/"):
            reference = path.rsplit("/", 1)[-1]
            transaction = self.transactions.get(reference)
            if transaction is None:
                return httpx.Response(
                    400, json={"status": False, "message": "Transaction reference not found"}
                )
            return httpx.Response(
                200, json={"status": True, "message": "Verification successful", "data": transaction}
            )

        if request.method == "POST" and path == "/subaccount":
            payload = json.loads(request.content)
            self.subaccounts.append(payload)
            if payload.get("account_number") == "0000000000":
                return httpx.Response(
                    400, json={"status": False, "message": "Account details are invalid"}
                )
            return httpx.Response(
                201,
                json={
                    "status": True,
                    "message": "Subaccount created",
                    "data": {
                        "subaccount_code": f"ACCT_test{len(self.subaccounts)}",
                        "business_name": payload["business_name"],
                        "settlement_bank": "Guaranty Trust Bank",
                        "account_number": payload["account_number"],
                        "percentage_charge": payload["percentage_charge"],
                    },
                },
            )

        if request.method == "GET" and path == "/bank":
            self.bank_queries.append(dict(request.url.params))
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "message": "Banks retrieved",
                    "data": [
                        {"name": "Access Bank", "code": "044", "type": "nuban", "active": True},
                        {"name": "GTBank", "code": "058", "type": "nuban", "active": True},
                        {"name": "Closed Bank", "code": "999", "type": "nuban", "active": False},
                    ],
                },
            )

        return httpx.Response(404, json={"status": False, "message": "Not found"})


# ==================== Database ====================


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    import steersolo.models  # noqa: F401

    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return create_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Session for setting up and inspecting data. Commit before calling the API."""
    async with session_maker() as session:
        yield session


# ==================== Integrations ====================


@pytest.fixture
def fake_paystack() -> FakePaystack:
    return FakePaystack()


@pytest.fixture
def paystack(fake_paystack: FakePaystack) -> PaystackClient:
    return PaystackClient(
        secret_key=PAYSTACK_SECRET,
        transport=httpx.MockTransport(fake_paystack.handler),
    )


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cart_service(fake_redis: FakeRedis) -> CartService:
    return CartService(client=fake_redis)


# ==================== API client ====================


@pytest_asyncio.fixture
async def client(session_maker, paystack, cart_service) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with test database, Paystack and Redis."""
    from steersolo.main import app

    async def get_db_override() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def get_cart_service_override() -> CartService:
        return cart_service

    app.dependency_overrides[get_db] = get_db_override
    app.dependency_overrides[get_paystack_client] = lambda: paystack
    app.dependency_overrides[get_cart_service] = get_cart_service_override

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ==================== Users and shops ====================


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role.value)}"}


async def make_user(
    db: AsyncSession,
    email: str,
    role: UserRole = UserRole.CUSTOMER,
    full_name: str | None = None,
) -> User:
    users = UserService(db)
    if role == UserRole.ADMIN:
        user = await users.register(email, PASSWORD, full_name=full_name)
        user.role = UserRole.ADMIN
    else:
        user = await users.register(email, PASSWORD, full_name=full_name, role=role)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def customer(db: AsyncSession) -> User:
    return await make_user(db, "ada@example.com", full_name="Ada Obi")


@pytest_asyncio.fixture
async def owner(db: AsyncSession) -> User:
    return await make_user(db, "chidi@example.com", UserRole.SHOP_OWNER, full_name="Chidi Okeke")


@pytest_asyncio.fixture
async def admin(db: AsyncSession) -> User:
    return await make_user(db, "admin@steersolo.com", UserRole.ADMIN, full_name="Admin")


@pytest_asyncio.fixture
async def shop(db: AsyncSession, owner: User) -> Shop:
    shop = Shop(
        owner_id=owner.id,
        shop_name="Chidi Fabrics",
        shop_slug="chidi-fabrics",
        description="Ankara and lace",
        whatsapp_number="08031234567",
        is_active=True,
        bank_name="GTBank",
        bank_account_name="Chidi Okeke",
        bank_account_number="0123456789",
    )
    db.add(shop)
    await db.commit()
    return shop


@pytest_asyncio.fixture
async def product(db: AsyncSession, shop: Shop) -> Product:
    product = Product(
        shop_id=shop.id,
        name="Ankara Dress",
        type=ProductType.PRODUCT,
        price=Decimal("15000.00"),
        stock_quantity=10,
        is_available=True,
    )
    db.add(product)
    await db.commit()
    return product


@pytest_asyncio.fixture
async def service_product(db: AsyncSession, shop: Shop) -> Product:
    product = Product(
        shop_id=shop.id,
        name="Tailoring Session",
        type=ProductType.SERVICE,
        price=Decimal("5000.00"),
        stock_quantity=0,
        is_available=True,
        duration_minutes=60,
        booking_required=True,
    )
    db.add(product)
    await db.commit()
    return product

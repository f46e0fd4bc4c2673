"""
Pytest configuration and shared fixtures for FuelGo tests.

Provides an in-memory SQLite session, an httpx client bound to the ASGI
app, and a small marketplace: admin, customer, verified vendor with one
PMS listing, and an available driver on that vendor's fleet.
"""
import os
import sys
import tempfile

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# ── Test Configuration ───────────────────────────────────────────────
# Must be set before config is imported anywhere
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-for-pytest-only")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="fuelgo-uploads-"))
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "test-webhook-secret")

from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from config import settings
from database import Base, get_db
from domain.enums import UserRole, UserStatus, VerificationStatus
from main import app
from middleware.auth import issue_access_token
from middleware.rate_limit import limiter
from services import auth_service, driver_service, order_service, product_service

if not settings.jwt_secret:
    settings.jwt_secret = "test-jwt-secret-for-pytest-only"

TEST_PASSWORD = "secret123"


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client for the FastAPI app with the in-memory database.

    Overrides get_db so routes share the test session.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    limiter.reset()


# ── Auth Helpers ─────────────────────────────────────────────────────


@pytest.fixture
def auth_headers():
    """Build an Authorization header for a user."""
    def _headers(user) -> dict:
        token = issue_access_token(user_id=user.id, role=user.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


# ── Test Data Fixtures ────────────────────────────────────────────────


async def create_account(
    db: AsyncSession,
    *,
    role: str,
    email: str,
    phone: str,
    status: str = UserStatus.ACTIVE.value,
    first_name: str = "Test",
    last_name: str = "User",
    vendor=None,
):
    user = await auth_service.create_user(
        db,
        first_name=first_name,
        last_name=last_name,
        email=email,
        password=TEST_PASSWORD,
        phone=phone,
        role=role,
        status=status,
        vendor=vendor,
    )
    await db.commit()
    return user


@pytest.fixture
async def admin_user(db_session: AsyncSession):
    return await create_account(
        db_session,
        role=UserRole.ADMIN.value,
        email="admin@fuelgo.test",
        phone="+2348000000001",
        first_name="Grace",
        last_name="Admin",
    )


@pytest.fixture
async def customer_user(db_session: AsyncSession):
    return await create_account(
        db_session,
        role=UserRole.CUSTOMER.value,
        email="ada@fuelgo.test",
        phone="+2348000000002",
        first_name="Ada",
        last_name="Obi",
    )


@pytest.fixture
async def vendor_user(db_session: AsyncSession):
    """Active vendor account with a verified business profile."""
    vendor = auth_service.build_default_vendor("Quick Fuel Station", "123 Victoria Island Road")
    vendor.verification_status = VerificationStatus.VERIFIED.value
    return await create_account(
        db_session,
        role=UserRole.VENDOR.value,
        email="john@quickfuel.test",
        phone="+2348000000003",
        first_name="John",
        last_name="Doe",
        vendor=vendor,
    )


@pytest.fixture
async def vendor(vendor_user):
    return vendor_user.vendor


@pytest.fixture
async def product(db_session: AsyncSession, vendor):
    """PMS at 600/litre, 1000 litres in stock, orders of 5-500 litres."""
    product = await product_service.create_product(
        db_session,
        vendor=vendor,
        type="PMS",
        name="Premium Motor Spirit",
        price_per_unit=600.0,
        available_qty=1000.0,
        min_order_qty=5.0,
        max_order_qty=500.0,
    )
    await db_session.commit()
    return product


@pytest.fixture
async def driver(db_session: AsyncSession, vendor):
    """Available driver on the vendor's fleet."""
    driver = await driver_service.create_vendor_driver(
        db_session,
        vendor=vendor,
        first_name="Musa",
        last_name="Bello",
        email="musa@quickfuel.test",
        phone="+2348000000004",
        password=TEST_PASSWORD,
        license_number="LAG-DRV-0001",
        vehicle_type="tanker",
        vehicle_plate="lnd-123-xy",
        vehicle_capacity=5000,
    )
    await db_session.commit()
    return driver


@pytest.fixture
def place_order(db_session: AsyncSession, customer_user, vendor, product):
    """Place an order for the sample product through the service."""
    async def _place(quantity: float = 10.0, payment_method: str = "cash", customer=None):
        order, _ = await order_service.create_order(
            db_session,
            customer=customer or customer_user,
            vendor_id=vendor.id,
            items=[{"product_id": product.id, "quantity": quantity}],
            delivery_street="12 Admiralty Way",
            delivery_city="Lekki",
            delivery_state="Lagos",
            payment_method=payment_method,
        )
        await db_session.commit()
        return order
    return _place


@pytest.fixture
async def delivered_order(db_session: AsyncSession, place_order, vendor, driver):
    """Cash order taken all the way through delivery by the sample driver."""
    order = await place_order()
    await order_service.assign_driver_by_vendor(db_session, vendor=vendor, order_id=order.id, driver_id=driver.id)
    for status in ("picked_up", "in_transit"):
        await order_service.update_status_by_driver(db_session, driver=driver, order_id=order.id, status=status)
    order, _ = await order_service.complete_delivery(db_session, driver=driver, order_id=order.id)
    await db_session.commit()
    return order


# ── Real-time Helpers ─────────────────────────────────────────────────


class FakeWebSocket:
    """Records what the hub sends; `fail=True` makes every send raise."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.accepted = False
        self.sent: list[dict] = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, message: dict):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    def events(self) -> list[str]:
        return [m.get("event") for m in self.sent]

"""Test configuration and fixtures"""

import os
from decimal import Decimal
from uuid import uuid4

# Keep the app's own engine off Postgres during tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from orderflow.main import app
from orderflow.database import Base, get_db
from orderflow.api.orders import get_notification_dispatcher
from orderflow.models import (
    CashRegister,
    Order,
    PaymentTerminalConfig,
    Product,
    Tenant,
)
from orderflow.notifications.dispatcher import NotificationResult


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class FakeDispatcher:
    """Records ready notifications instead of sending them"""

    def __init__(self, succeed=True, error=None):
        self.succeed = succeed
        self.error = error
        self.sent = []

    async def send_order_ready(self, order):
        self.sent.append(order.id)
        if self.error:
            raise self.error
        if not self.succeed:
            return NotificationResult(success=False, error="provider unavailable")
        return NotificationResult(success=True, channels_sent=[order.notification_method])


@pytest.fixture
async def test_db():
    """Create test database"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_tenant(test_db):
    """Create a test tenant"""
    tenant = Tenant(
        id=uuid4(),
        name="Test Cafe",
        slug="cafe",
        timezone="America/Mexico_City",
        tax_rate=Decimal("0.16"),
    )
    test_db.add(tenant)
    await test_db.commit()

    return tenant


@pytest.fixture
async def other_tenant(test_db):
    tenant = Tenant(id=uuid4(), name="Other Shop", slug="other")
    test_db.add(tenant)
    await test_db.commit()
    return tenant


@pytest.fixture
async def test_products(test_db, test_tenant):
    """Two stocked products and one without stock tracking"""
    products = [
        Product(
            tenant_id=test_tenant.id,
            sku="CHI-01",
            name="Chilaquiles",
            price=Decimal("95.00"),
            stock_quantity=10,
        ),
        Product(
            tenant_id=test_tenant.id,
            sku="CAF-01",
            name="Cafe de olla",
            price=Decimal("60.00"),
            stock_quantity=5,
        ),
        Product(
            tenant_id=test_tenant.id,
            sku="WAT-01",
            name="Tap water",
            price=Decimal("0.00"),
            stock_quantity=0,
            track_stock=False,
        ),
    ]

    for product in products:
        test_db.add(product)

    await test_db.commit()
    return products


@pytest.fixture
async def test_register(test_db, test_tenant):
    register = CashRegister(
        tenant_id=test_tenant.id,
        opened_by="cashier@example.com",
        opening_amount=Decimal("500.00"),
    )
    test_db.add(register)
    await test_db.commit()
    return register


@pytest.fixture
async def test_terminal_config(test_db, test_tenant):
    config = PaymentTerminalConfig(
        tenant_id=test_tenant.id,
        provider="clip",
        api_key="test-key",
        secret_key="test-secret",
    )
    test_db.add(config)
    await test_db.commit()
    return config


@pytest.fixture
def make_order(test_db, test_tenant, test_products, test_register):
    """
    Factory for orders: 2x Chilaquiles @ 95 and 1x Cafe de olla @ 60,
    subtotal 250, tax 40, total 290. Defaults to a pending Clip payment.
    """
    counter = {"n": 0}

    async def _make(**overrides):
        counter["n"] += 1
        values = {
            "tenant_id": test_tenant.id,
            "order_number": f"order-{counter['n']}",
            "customer_name": "Ana Lopez",
            "customer_phone": "+525512345678",
            "notification_method": "sms",
            "items_json": [
                {
                    "product_id": str(test_products[0].id),
                    "name": "Chilaquiles",
                    "quantity": 2,
                    "unit_price": "95.00",
                },
                {
                    "product_id": str(test_products[1].id),
                    "name": "Cafe de olla",
                    "quantity": 1,
                    "unit_price": "60.00",
                },
            ],
            "subtotal": Decimal("250.00"),
            "tax": Decimal("40.00"),
            "tip": Decimal("0.00"),
            "total": Decimal("290.00"),
            "status": "pending",
            "payment_method": "clip",
            "payment_status": "pending_payment",
            "payment_reference": f"pay-{counter['n']}",
            "cash_register_id": test_register.id,
        }
        values.update(overrides)

        order = Order(**values)
        test_db.add(order)
        await test_db.commit()
        return order

    return _make


@pytest.fixture
async def test_order(make_order):
    """The order-123 / pay-1 order awaiting Clip confirmation"""
    return await make_order(order_number="order-123", payment_reference="pay-1")


@pytest.fixture
def fake_dispatcher():
    return FakeDispatcher()


@pytest.fixture
async def client(test_db, fake_dispatcher):
    """Create test client with overridden database and notifications"""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_dispatcher] = lambda: fake_dispatcher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()

"""
Test Configuration — Fixtures for async DB, test client, and seeded data.

Each test gets its own in-memory SQLite database (StaticPool keeps the one
connection alive), so application commits never leak between tests.
"""

import json
from datetime import datetime, timedelta

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.deps import get_current_user, get_db, get_notifier
from api.main import app
from db.models import Product, Waybill, WaybillItem
from db.session import Base
from integrations.webhook import WebhookNotifier

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
WEBHOOK_URL = "http://products.test/api/webhooks/incoming-update"
WEBHOOK_SECRET = "test-webhook-secret"

ADMIN_ID = "00000000-0000-0000-0000-000000000001"


@pytest.fixture
async def test_engine():
    """Fresh in-memory database with all tables built."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    session_factory = async_sessionmaker(test_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


class WebhookRecorder:
    """Collects JSON bodies posted to the product system webhook."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.calls: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={"ok": self.status_code < 400})


@pytest.fixture
def webhook():
    return WebhookRecorder()


@pytest.fixture
def notifier(webhook):
    return WebhookNotifier(
        url=WEBHOOK_URL,
        secret=WEBHOOK_SECRET,
        transport=httpx.MockTransport(webhook.handler),
    )


@pytest.fixture
def mock_user():
    """Authenticated Admin."""
    return {
        "sub": ADMIN_ID,
        "username": "admin",
        "role": "Admin",
    }


@pytest.fixture
async def client(test_db, mock_user, notifier):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    def override_get_current_user():
        return mock_user

    def override_get_notifier():
        return notifier

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_notifier] = override_get_notifier

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(test_db):
    """Seed a small catalog plus one OPEN and one CLOSED waybill."""
    rice = Product(category="Grocery", product_name="Rice 25kg", conversion_factor=25)
    oil = Product(category="Grocery", product_name="Cooking Oil 1L")
    soap = Product(category="Household", product_name="Bar Soap")
    test_db.add_all([rice, oil, soap])
    await test_db.flush()

    now = datetime.utcnow()
    open_waybill = Waybill(
        waybill_no="WB-1001",
        date=now,
        count=30,
        uom="Sack / Bag",
        status="OPEN",
        items=[
            WaybillItem(
                position=0,
                product_name="Rice 25kg",
                incoming=20,
                uom_incoming="Sack / Bag",
                product_id=rice.product_id,
                conversion_factor=25,
            ),
            WaybillItem(
                position=1,
                product_name="Cooking Oil 1L",
                incoming=10,
                uom_incoming="Bottle",
                product_id=oil.product_id,
                conversion_factor=1,
            ),
        ],
    )
    closed_waybill = Waybill(
        waybill_no="WB-0900",
        date=now - timedelta(days=1),
        count=20,
        uom="Box",
        status="CLOSED",
        closed_at=now,
        items=[
            WaybillItem(
                position=0,
                product_name="Bar Soap",
                incoming=10,
                uom_incoming="Box",
                actual_count=7,
                remark_actual="3 crushed",
                product_id=soap.product_id,
                conversion_factor=1,
            ),
            WaybillItem(
                position=1,
                product_name="Cooking Oil 1L",
                incoming=10,
                uom_incoming="Bottle",
                actual_count=10,
                product_id=oil.product_id,
                conversion_factor=1,
            ),
        ],
    )
    test_db.add_all([open_waybill, closed_waybill])
    await test_db.commit()

    return {
        "rice": rice,
        "oil": oil,
        "soap": soap,
        "open_waybill": open_waybill,
        "closed_waybill": closed_waybill,
    }

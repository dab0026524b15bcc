"""
Shared fixtures.

The environment is pinned before anything from ``foodapp`` is imported:
development mode (mock gateways, no latency, no random failures), a
throwaway SQLite database and a throwaway export directory.
"""

import base64
import itertools
import os
import re
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal

_TMP = tempfile.mkdtemp(prefix="foodapp-tests-")

os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["DATA_DIRECTORY"] = os.path.join(_TMP, "exports")
os.environ["MOCK_FAILURE_RATE"] = "0"
os.environ["MOCK_MAX_LATENCY"] = "0"
os.environ["MINIMUM_ORDER_AMOUNT"] = "0"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret"
os.environ["AUTH_WEBHOOK_SECRET"] = "whsec_" + base64.b64encode(b"foodapp-test-webhook-secret!").decode()

import httpx
import jwt
import pytest
from httpx import ASGITransport

from foodapp import tasks
from foodapp.core.config import get_settings
from foodapp.core.utils import utcnow
from foodapp.database import async_session_maker, drop_db, engine, init_db
from foodapp.main import app
from foodapp.models import Address, Category, DiscountType, MenuItem, Offer, OfferType, User, UserRole
from foodapp.services.media import reset_media_service
from foodapp.services.notifications import get_notification_service, reset_notification_service
from foodapp.services.otp_service import reset_otp_service
from foodapp.services.payment import reset_payment_service

_ids = itertools.count(1)


@pytest.fixture(autouse=True)
async def database():
    await init_db()
    yield
    await drop_db()
    await engine.dispose()


@pytest.fixture(autouse=True)
def fresh_services():
    for reset in (reset_otp_service, reset_payment_service, reset_notification_service, reset_media_service):
        reset()
    yield


@pytest.fixture(autouse=True)
def queued(monkeypatch):
    """Celery jobs the code under test asked for, as (task name, args)."""
    calls = []

    def record(task, *args):
        calls.append((task.name.rsplit(".", 1)[-1], args))
        return f"task-{len(calls)}"

    monkeypatch.setattr(tasks, "enqueue", record)
    return calls


@pytest.fixture
async def db():
    async with async_session_maker() as session:
        yield session


@pytest.fixture
async def client():
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def outbox():
    """Messages delivered by the mock SMS/WhatsApp/email gateway."""
    return get_notification_service().outbox


@pytest.fixture
def otp_code(outbox):
    def latest() -> str:
        return re.search(r"code is (\d+)", outbox[-1]["body"]).group(1)

    return latest


# =============================================================================
# USERS
# =============================================================================

def token_for(user: User, expires_in: timedelta = timedelta(hours=1)) -> str:
    claims = {"sub": user.clerk_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(claims, get_settings().auth_jwt_secret, algorithm="HS256")


@pytest.fixture
def auth():
    def headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user)}"}

    return headers


@pytest.fixture
def make_user(db):
    async def create(role: UserRole = UserRole.CUSTOMER, with_address: bool = True, **fields) -> User:
        n = next(_ids)
        values = {
            "clerk_id": f"user_{n}",
            "email": f"customer{n}@example.com",
            "first_name": "Asha",
            "last_name": f"Verma{n}",
            "phone": f"+9198765{n:05d}",
            "role": role,
        }
        values.update(fields)
        user = User(**values)
        db.add(user)
        await db.commit()
        if with_address:
            db.add(
                Address(
                    user_id=user.id,
                    address_line_1="12 MG Road",
                    city="Bengaluru",
                    state="Karnataka",
                    postal_code="560001",
                    is_default=True,
                )
            )
            await db.commit()
        return user

    return create


@pytest.fixture
async def customer(make_user):
    return await make_user()


@pytest.fixture
async def admin(make_user):
    return await make_user(role=UserRole.ADMIN, with_address=False, first_name="Admin")


# =============================================================================
# CATALOG
# =============================================================================

@pytest.fixture
async def menu(db):
    """Two available dishes and one sold-out dish, keyed by short name."""
    mains = Category(name="Mains", slug="mains", sort_order=1)
    breads = Category(name="Breads", slug="breads", sort_order=2)
    db.add_all([mains, breads])
    await db.flush()

    items = {
        "curry": MenuItem(
            name="Butter Chicken", description="Creamy tomato gravy", price=Decimal("200.00"),
            category_id=mains.id, preparation_time=25, is_popular=True,
        ),
        "naan": MenuItem(
            name="Garlic Naan", description="Tandoor bread", price=Decimal("50.00"),
            category_id=breads.id, preparation_time=10, is_vegetarian=True,
        ),
        "biryani": MenuItem(
            name="Mutton Biryani", description="Slow cooked", price=Decimal("350.00"),
            category_id=mains.id, preparation_time=45, is_available=False,
        ),
    }
    db.add_all(items.values())
    await db.commit()
    return items


@pytest.fixture
def session_headers():
    return {"X-Session-Id": "sess-guest-0001"}


@pytest.fixture
def make_offer(db):
    async def create(**fields) -> Offer:
        now = utcnow()
        values = {
            "title": "Festive Treat",
            "type": OfferType.BANNER,
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("10"),
            "valid_from": now - timedelta(hours=1),
            "valid_until": now + timedelta(days=1),
        }
        values.update(fields)
        offer = Offer(**values)
        db.add(offer)
        await db.commit()
        return offer

    return create

import os
import sys
from collections.abc import AsyncGenerator, Callable
from datetime import timedelta
from unittest.mock import MagicMock
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time; give tests a self-contained default
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["DISPATCH_POLICY"] = "radius"
os.environ["DISPATCH_RADIUS_KM"] = "5"
os.environ["SMS_MAX_RECIPIENTS"] = "3"
for channel_key in ("FAST2SMS_API_KEY", "RESEND_API_KEY", "CALLMEBOT_API_KEY", "CALLMEBOT_PHONE"):
    os.environ[channel_key] = ""

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from medgo.config import settings  # noqa: E402
from medgo.core.geo import Coordinates  # noqa: E402
from medgo.core.realtime import ChangeFeed, get_change_feed  # noqa: E402
from medgo.core.redis_client import get_redis_client  # noqa: E402
from medgo.core.security import create_access_token  # noqa: E402
from medgo.database import build_engine, get_db  # noqa: E402
from medgo.main import app  # noqa: E402
from medgo.models import metadata  # noqa: E402
from medgo.models.users import users  # noqa: E402
from medgo.services.driver_service import DriverService  # noqa: E402

# Test database URL - MUST be different from production
# Defaults to a private in-memory SQLite database
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or "sqlite+aiosqlite:///:memory:"

# Safety check: dropping tables on the application database would lose data
if TEST_DATABASE_URL == settings.database_url and ":memory:" not in TEST_DATABASE_URL:
    print("\n❌ CRITICAL ERROR: Test database URL is same as application database!")
    print("Please set TEST_DATABASE_URL to a separate test database in .env")
    sys.exit(1)

test_engine = build_engine(TEST_DATABASE_URL)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Scenario coordinates: Connaught Place, New Delhi
PICKUP = Coordinates(28.6139, 77.2090)
# ~1.2 km and ~7.0 km due north of PICKUP
NEAR_DRIVER_POS = Coordinates(28.6247, 77.2090)
FAR_DRIVER_POS = Coordinates(28.6769, 77.2090)

DISPATCH_BODY = {
    "lat": PICKUP.latitude,
    "lng": PICKUP.longitude,
    "emergency_type": "Cardiac",
    "description": "Chest pain, conscious",
    "pickup_address": "Connaught Place, New Delhi",
    "radius_km": 5,
}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in: every key is a miss and writes succeed."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.publish.return_value = 0
    return redis_client


@pytest.fixture
def feed() -> ChangeFeed:
    """A private change feed so tests never see each other's events."""
    return ChangeFeed(queue_size=50)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
    feed: ChangeFeed,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: mock_redis
    app.dependency_overrides[get_change_feed] = lambda: feed

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Factory inserting a user row and returning it as a dict."""

    async def _make_user(
        role: str = "customer",
        full_name: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        is_active: bool = True,
    ) -> dict:
        user_id = uuid4()
        user_data = {
            "id": user_id,
            "email": email or f"{role}-{user_id.hex[:8]}@medgo.test",
            "full_name": full_name or f"Test {role.title()}",
            "phone": phone,
            "role": role,
            "is_active": is_active,
        }
        await db_session.execute(insert(users).values(**user_data))
        await db_session.commit()
        return user_data

    return _make_user


@pytest_asyncio.fixture
async def customer(make_user: Callable) -> dict:
    """A customer requesting ambulances."""
    return await make_user("customer", full_name="Asha Verma", phone="+91 98765 43210")


@pytest_asyncio.fixture
async def admin_user(make_user: Callable) -> dict:
    """An operator account."""
    return await make_user("admin", full_name="Ops Admin")


@pytest_asyncio.fixture
async def driver_near(make_user: Callable, db_session: AsyncSession) -> dict:
    """Available driver about 1.2 km from PICKUP."""
    driver = await make_user("driver", full_name="Ravi Kumar", phone="9876500001")
    await DriverService.upsert_status(db_session, driver["id"], True, NEAR_DRIVER_POS)
    return driver


@pytest_asyncio.fixture
async def driver_far(make_user: Callable, db_session: AsyncSession) -> dict:
    """Available driver about 7 km from PICKUP."""
    driver = await make_user("driver", full_name="Sunil Das", phone="+919876500002")
    await DriverService.upsert_status(db_session, driver["id"], True, FAR_DRIVER_POS)
    return driver


def token_for(user: dict) -> str:
    """Mint an access token for a test user."""
    return create_access_token(user["id"], timedelta(minutes=30), email=user["email"])


def headers_for(user: dict) -> dict:
    """Create authentication headers for a test user."""
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def auth_headers(customer: dict) -> dict:
    """Create authentication headers for the default customer."""
    return headers_for(customer)

"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from parcel_backend.app.main import app
from parcel_backend.app.db.session import get_db, Base
from parcel_backend.app.core.clients import get_identity_verifier, get_payment_processor
from parcel_backend.app.core.exceptions import ResourceNotFoundError
from parcel_backend.app.core.identity import JWTIdentityVerifier, create_identity_token
from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.models.user import User

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_IDENTITY_SECRET = "test-identity-secret-key-for-unit-tests"

ADMIN_EMAIL = "admin@test.com"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

test_verifier = JWTIdentityVerifier(TEST_IDENTITY_SECRET, algorithms=["HS256"])


# Stand-in for the Stripe client
class FakePaymentProcessor:
    def __init__(self):
        self.intents = {}
        self.created = []

    async def create_intent(self, amount_minor_units, currency, metadata=None):
        intent_id = f"pi_test_{len(self.intents) + 1}"
        intent = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret",
            "status": "requires_payment_method",
            "amount": amount_minor_units,
            "currency": currency,
        }
        self.intents[intent_id] = intent
        self.created.append({"amount": amount_minor_units, "currency": currency, "metadata": metadata})
        return dict(intent)

    async def retrieve_intent(self, intent_id):
        if intent_id not in self.intents:
            raise ResourceNotFoundError("Payment intent", intent_id)
        return dict(self.intents[intent_id])

    def add_intent(self, intent_id, status="succeeded", amount=1500):
        self.intents[intent_id] = {
            "id": intent_id,
            "client_secret": f"{intent_id}_secret",
            "status": status,
            "amount": amount,
            "currency": "usd",
        }


def token_for(email: str) -> str:
    return create_identity_token(email, secret_key=TEST_IDENTITY_SECRET)


@pytest.fixture
def payment_processor():
    return FakePaymentProcessor()


@pytest.fixture(autouse=True)
def apply_overrides(payment_processor):
    """Route the app to the test database and test clients."""

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_verifier] = lambda: test_verifier
    app.dependency_overrides[get_payment_processor] = lambda: payment_processor
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def identity_secret():
    return TEST_IDENTITY_SECRET


@pytest.fixture
def headers_for():
    """Build bearer headers for a given email."""
    def _headers(email: str) -> dict:
        return {"Authorization": f"Bearer {token_for(email)}"}
    return _headers


@pytest.fixture
def make_user(db_session):
    """Insert a user directly, bypassing the API."""
    async def _make_user(email: str, role: UserRole = UserRole.USER) -> User:
        user = User(email=email, role=role)
        db_session.add(user)
        await db_session.commit()
        return user
    return _make_user


@pytest.fixture
async def admin_headers(make_user, headers_for):
    await make_user(ADMIN_EMAIL, UserRole.ADMIN)
    return headers_for(ADMIN_EMAIL)


@pytest.fixture
def rider_factory(client, admin_headers, headers_for, make_user):
    """Create a rider through the API, approved unless told otherwise."""
    async def _create(email="rider@test.com", name="Test Rider", areas=("Dhaka",), approve=True) -> dict:
        await make_user(email)
        response = await client.post(
            "/v1/riders",
            json={
                "email": email,
                "name": name,
                "phone": "01700000000",
                "areas_to_ride": list(areas),
            },
            headers=headers_for(email),
        )
        assert response.status_code == 201, response.text
        rider = response.json()

        if approve:
            response = await client.patch(f"/v1/riders/{rider['id']}/approve", headers=admin_headers)
            assert response.status_code == 200, response.text
            rider = response.json()

        return rider
    return _create


@pytest.fixture
def parcel_factory(client, headers_for):
    """Create a parcel through the API for the given customer."""
    async def _create(email="customer@test.com", **details) -> dict:
        payload = {
            "title": "Documents",
            "parcel_type": "document",
            "sender_region": "Dhaka",
            "receiver_region": "Chattogram",
            "cost": 150,
        }
        payload.update(details)
        response = await client.post("/v1/parcels", json=payload, headers=headers_for(email))
        assert response.status_code == 201, response.text
        return response.json()
    return _create

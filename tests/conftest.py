"""
Pytest configuration and fixtures for Broadcaster API tests.
"""
import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from broadcaster.database import Base, get_db, get_session_factory
from broadcaster.dependencies import get_blob_store, get_transport
from broadcaster.delivery.blob_store import object_path
from broadcaster.delivery.store import BroadcastStore
from broadcaster.errors import BlobUploadError, GroupLookupError
from broadcaster.limiter import limiter
from broadcaster.main import app
from broadcaster.models.broadcast import Broadcast
from broadcaster.models.user import User
from broadcaster.auth import get_password_hash, create_access_token

CRON_SECRET = os.environ["CRON_SECRET"]

# Disable rate limiting for tests
limiter.enabled = False

# Use in-memory SQLite for tests with shared connection
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Global session for sharing across requests
_test_session = None


def get_test_db():
    """Get the shared test database session, refreshed from the database."""
    global _test_session
    _test_session.expire_all()
    yield _test_session


# ============================================================
# FAKE COLLABORATORS
# ============================================================

class FakeTransport:
    """Records outbound messages; fails or stalls on demand."""

    def __init__(self):
        self.sent = []
        self.error = None
        self.delay = 0.0

    async def send(self, message):
        self.sent.append(message)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return f"msg_{len(self.sent)}"


class FakeBlobStore:
    """Content-addressed fake storage; payloads in ``failing`` are rejected."""

    def __init__(self):
        self.uploads = []
        self.failing = set()
        self.delay = 0.0

    async def upload(self, owner_id, payload, content_type):
        self.uploads.append((owner_id, payload, content_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if payload in self.failing:
            raise BlobUploadError("storage rejected the object", 500)
        return f"https://cdn.example.test/{object_path(owner_id, payload, content_type)}"


class DictGroupDirectory:
    """Group memberships from a plain dict; unknown groups fail the lookup."""

    def __init__(self, groups=None):
        self.groups = dict(groups or {})
        self.lookups = []

    def addresses_for(self, group_id):
        self.lookups.append(group_id)
        if group_id not in self.groups:
            raise GroupLookupError(f"Group {group_id} not found")
        return list(self.groups[group_id])


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture(scope="function")
def transport():
    return FakeTransport()


@pytest.fixture(scope="function")
def blob_store():
    return FakeBlobStore()


@pytest.fixture(scope="function")
def db(transport, blob_store):
    """Create a fresh database for each test."""
    global _test_session

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create a session
    _test_session = TestingSessionLocal()

    app.dependency_overrides[get_db] = get_test_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_transport] = lambda: transport
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    yield _test_session

    # Cleanup
    app.dependency_overrides.clear()
    _test_session.close()
    _test_session = None

    # Drop all tables
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Create a test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture(scope="function")
def store(db):
    """Broadcast store over the test database."""
    return BroadcastStore(TestingSessionLocal)


def _make_user(db, email, role="user"):
    user = User(
        email=email,
        hashed_password=get_password_hash("testpassword123"),
        display_name=email.split("@")[0],
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def _headers_for(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def test_user(db):
    """Create a test user."""
    return _make_user(db, "test@example.com")


@pytest.fixture(scope="function")
def other_user(db):
    return _make_user(db, "other@example.com")


@pytest.fixture(scope="function")
def admin_user(db):
    return _make_user(db, "admin@example.com", role="admin")


@pytest.fixture(scope="function")
def auth_headers(test_user):
    """Get auth headers for the test user."""
    return _headers_for(test_user)


@pytest.fixture(scope="function")
def other_headers(other_user):
    return _headers_for(other_user)


@pytest.fixture(scope="function")
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope="function")
def cron_headers():
    return {"Authorization": f"Bearer {CRON_SECRET}"}


@pytest.fixture(scope="function")
def make_broadcast(store, test_user):
    """Insert a broadcast row directly, bypassing the lifecycle checks."""

    def _make(**overrides):
        recipients = overrides.pop("recipients", ["a@example.com", "b@example.com"])
        values = {
            "owner_id": test_user.id,
            "subject": "Monthly update",
            "content": {
                "type": "doc",
                "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Hello"}]}],
            },
            "manual_recipients": list(recipients),
            "group_ids": [],
            "recipients": list(recipients),
            "total_recipients": len(recipients),
            "status": "draft",
        }
        values.update(overrides)
        return store.add(Broadcast(**values))

    return _make

"""
Shared test configuration and fixtures
"""
import re
import pytest
import os
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["APP_BASE_URL"] = "http://frontend.test"

from main import app
from api.dependencies import get_db, get_email_service, get_storage_service
from api.services.storage_service import StorageService
from config import Settings
from db.base import Base
from db.models.billing import Plan, Subscription
from db.models.user import Role
from db.repositories.user_repository import UserRepository

# One shared in-memory connection so every session sees the same tables
test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TOKEN_PATTERN = re.compile(r"token=([A-Za-z0-9_\-]+)")


def override_get_db():
    """Override database dependency for tests"""
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingEmailService:
    """Stands in for the SMTP sender and keeps every message"""

    def __init__(self):
        self.sent = []

    def send(self, to, subject, text=None, html=None):
        self.sent.append({"to": to, "subject": subject, "text": text, "html": html})
        return f"<test-{len(self.sent)}@aipix.test>"

    def last_token(self, to=None):
        for message in reversed(self.sent):
            if to is None or message["to"] == to:
                return TOKEN_PATTERN.search(message["text"]).group(1)
        raise AssertionError(f"No email sent to {to}")


@pytest.fixture(scope="function")
def test_db():
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session(test_db):
    """A session on the test database for setup and assertions"""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox():
    return RecordingEmailService()


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def client(test_db, outbox, s3_client):
    """Create a test client with overridden database, email and storage"""
    storage = StorageService(Settings(S3_BUCKET_NAME="test-bucket", AWS_REGION="eu-west-1"), client=s3_client)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: outbox
    app.dependency_overrides[get_storage_service] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client, email="agent@example.com", password="strongpassword123", display_name="Agent"):
    response = client.post(
        "/auth/register",
        json={"email": email, "password": password, "displayName": display_name},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def registered_user(client):
    return register(client)


@pytest.fixture
def auth_headers(registered_user):
    return {"Authorization": f"Bearer {registered_user['token']}"}


@pytest.fixture
def admin_headers(client, db_session):
    data = register(client, email="admin@example.com", display_name="Admin")
    UserRepository(db_session).grant_role(data["user"]["id"], Role.ADMIN)
    return {"Authorization": f"Bearer {data['token']}"}


def create_plan(db_session, name="Starter", price=9.0, credits=5, storage_mb=1024):
    plan = Plan(name=name, monthly_price_usd=price, max_ai_credits=credits, max_storage_mb=storage_mb)
    db_session.add(plan)
    db_session.commit()
    db_session.refresh(plan)
    return plan


def subscribe(db_session, user_id, plan):
    subscription = Subscription(user_id=user_id, plan_id=plan.id)
    db_session.add(subscription)
    db_session.commit()
    db_session.refresh(subscription)
    return subscription

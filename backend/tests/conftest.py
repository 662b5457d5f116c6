import base64
import hashlib
import hmac
import os
import time
from datetime import datetime, timezone

# 1. Set required environment variables before the app reads its settings
STRIPE_WEBHOOK_SECRET = "whsec_stripe_test_secret"
CLERK_WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"clerk-test-signing-key-0123456789").decode()
API_TOKEN = "test-api-token"

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_TOKEN"] = API_TOKEN
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = STRIPE_WEBHOOK_SECRET
os.environ["CLERK_WEBHOOK_SECRET"] = CLERK_WEBHOOK_SECRET
os.environ.pop("GEMINI_API_KEY", None)
os.environ.pop("STRIPE_PRICE_PLANS", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from svix.webhooks import Webhook  # noqa: E402

from threadcraft.db.base import Base  # noqa: E402
from threadcraft.db.models.user import User  # noqa: E402
from threadcraft.db.session import get_db  # noqa: E402
from threadcraft.main import app  # noqa: E402


@pytest.fixture
def db_session():
    """
    Creates a new in-memory database session for a test.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides = {}


@pytest.fixture
def auth_headers():
    def _headers(user_id: str = "user_clerk_1") -> dict:
        return {"Authorization": f"Bearer {API_TOKEN}", "X-User-Id": user_id}

    return _headers


@pytest.fixture
def make_user(db_session):
    def _make(
        clerk_id: str | None = "user_clerk_1",
        email: str = "ada@example.com",
        name: str = "Ada Lovelace",
        points: int = 50,
    ) -> User:
        user = User(clerk_id=clerk_id, email=email, name=name, points=points)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def sign_stripe():
    """Build a Stripe-Signature header for a raw payload."""

    def _sign(payload: bytes, secret: str = STRIPE_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
        ts = timestamp if timestamp is not None else int(time.time())
        signed = f"{ts}.".encode() + payload
        signature = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={ts},v1={signature}"

    return _sign


@pytest.fixture
def sign_svix():
    """Build the three Svix headers Clerk sends with a raw payload."""

    def _sign(
        payload: bytes,
        msg_id: str = "msg_test_1",
        secret: str = CLERK_WEBHOOK_SECRET,
        timestamp: int | None = None,
    ) -> dict:
        ts = timestamp if timestamp is not None else int(time.time())
        signed_at = datetime.fromtimestamp(ts, tz=timezone.utc)
        return {
            "svix-id": msg_id,
            "svix-timestamp": str(ts),
            "svix-signature": Webhook(secret).sign(msg_id, signed_at, payload.decode()),
        }

    return _sign

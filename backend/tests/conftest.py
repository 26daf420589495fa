"""Shared pytest fixtures for test suite"""
import hashlib
import hmac
import json
import os
import sys
import time
from pathlib import Path
from typing import Callable, Generator, Optional
from unittest.mock import patch

import fakeredis
import pytest

# Settings are read at import time; point them at test doubles first
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["R2_ACCESS_KEY_ID"] = "test-access-key"
os.environ["R2_SECRET_ACCESS_KEY"] = "test-secret-key"
os.environ["R2_ENDPOINT_URL"] = "https://testaccount.r2.cloudflarestorage.com"
os.environ["R2_BUCKET_NAME"] = "music"
os.environ["RESEND_API_KEY"] = ""

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from trackstore.core.config import settings
from trackstore.main import app
from trackstore.db.session import get_db
from trackstore.db import redis as redis_module
from trackstore.models import Base
from trackstore.models.track import Track
from trackstore.services.storage import r2_service as r2_module


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Swap the lazily created Redis client for fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, '_client', fake_redis):
        yield fake_redis


@pytest.fixture(autouse=True)
def reset_r2_service():
    """Each test builds its own R2 client from current settings"""
    with patch.object(r2_module, '_r2_service', None):
        yield


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Session is closed by the db_session fixture

    app.dependency_overrides[get_db] = override_get_db

    try:
        # Tables come from db_session; keep startup away from the app engine
        with patch('trackstore.main.init_db'):
            with patch('trackstore.main.initialize_otel', return_value=False):
                with TestClient(app) as test_client:
                    yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def test_track(db_session: Session) -> Track:
    """Active, priced track T001 at 99 cents with an audio object"""
    track = Track(
        id="T001",
        title="Night Drive",
        artist="The Testers",
        price_cents=99,
        stripe_price_id="price_x",
        is_active=True,
        audio_object_key="tracks/T001/night-drive.mp3",
        cover_url="https://covers.example.com/T001.jpg"
    )
    db_session.add(track)
    db_session.commit()
    db_session.refresh(track)
    return track


def _login(mock_redis, buyer_id: str) -> dict:
    session_id = f"sess-{buyer_id.lower()}"
    redis_module.set_session(session_id, buyer_id)
    return {"Authorization": f"Bearer {session_id}"}


@pytest.fixture(scope="function")
def u1_headers(mock_redis) -> dict:
    """Auth headers for buyer U1"""
    return _login(mock_redis, "U1")


@pytest.fixture(scope="function")
def u2_headers(mock_redis) -> dict:
    """Auth headers for buyer U2"""
    return _login(mock_redis, "U2")


def sign_payload(payload: bytes, secret: Optional[str] = None, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value for a payload"""
    secret = secret if secret is not None else settings.STRIPE_WEBHOOK_SECRET
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + payload
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def build_checkout_event(
    event_id: str = "evt_1",
    session_id: str = "tx_1",
    buyer_id: Optional[str] = "U1",
    track_id: Optional[str] = "T001",
    amount: Optional[int] = 99,
    currency: Optional[str] = "usd",
    payment_status: str = "paid",
    event_type: str = "checkout.session.completed",
    email: Optional[str] = None
) -> bytes:
    """Serialized checkout.session.* event as Stripe would send it"""
    metadata = {}
    if buyer_id is not None:
        metadata["buyer_id"] = buyer_id
    if track_id is not None:
        metadata["track_id"] = track_id

    event = {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": int(time.time()),
        "livemode": False,
        "data": {
            "object": {
                "id": session_id,
                "object": "checkout.session",
                "mode": "payment",
                "payment_status": payment_status,
                "amount_total": amount,
                "currency": currency,
                "client_reference_id": buyer_id,
                "metadata": metadata,
                "customer_details": {"email": email} if email else None,
            }
        }
    }
    return json.dumps(event).encode("utf-8")


@pytest.fixture
def signed_webhook() -> Callable:
    """Factory: (payload) -> headers carrying a valid Stripe signature"""
    def _headers(payload: bytes, **kwargs) -> dict:
        return {"Stripe-Signature": sign_payload(payload, **kwargs), "Content-Type": "application/json"}
    return _headers

"""
Pytest configuration and shared fixtures for Birthday Bot tests.
"""
import pytest
import tempfile
import os
from datetime import datetime, timezone
from types import SimpleNamespace
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from database.models import Base, UserProfile
from database.connection import get_db
from app.application.command_processor import BirthdayMessageProcessor
from app.domain.intent_classifier import IntentClassifier, ParsedIntent
from app.infrastructure.tone_rewriter import ToneRewriter
from main import app

OWNER = "919800000001"
OTHER_OWNER = "919800000002"

# 28 Dec in Asia/Kolkata
FIXED_NOW = datetime(2026, 12, 28, 6, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def test_db_engine():
    """Create a test database engine."""
    # Use file-based SQLite to allow multiple connections (TestClient + direct sessions)
    tmp_path = os.path.join(tempfile.gettempdir(), "birthday_bot_test_db.sqlite")
    engine = create_engine(
        f"sqlite:///{tmp_path}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def test_db_session(test_db_engine):
    """Create a fresh database session for each test."""
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Clean up tables between tests using session
        with test_db_engine.connect() as connection:
            with connection.begin():
                for table in reversed(Base.metadata.sorted_tables):
                    connection.execute(table.delete())


@pytest.fixture(scope="function")
def test_client(test_db_session):
    """Create a test client with overridden database dependency."""

    def override_get_db():
        try:
            yield test_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def onboarded_owner(test_db_session):
    """An existing owner who has already seen the welcome message."""
    profile = UserProfile(owner_id=OWNER, has_seen_welcome=True, timezone="Asia/Kolkata")
    test_db_session.add(profile)
    test_db_session.commit()
    return OWNER


class FakeClassifier(IntentClassifier):
    """Returns a preset ParsedIntent (or raises) and records every call."""

    def __init__(self, result=None, error: Exception = None):
        self.result = result or ParsedIntent.unknown()
        self.error = error
        self.calls = []

    async def classify(self, message: str) -> ParsedIntent:
        self.calls.append(message)
        if self.error is not None:
            raise self.error
        return self.result


class RecordingRewriter(ToneRewriter):
    def __init__(self, prefix: str = "~ "):
        self.prefix = prefix
        self.seen = []

    async def rewrite(self, text: str) -> str:
        self.seen.append(text)
        return self.prefix + text


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def processor(fake_classifier):
    """Processor with a fake classifier, passthrough rewriter and a fixed clock."""
    return BirthdayMessageProcessor(classifier=fake_classifier, clock=lambda: FIXED_NOW)


@pytest.fixture
def mock_whatsapp_client():
    """Mock WhatsApp client for testing."""
    class MockWhatsAppClient:
        def __init__(self):
            self.sent_messages = []
            self.enabled = True

        async def send_message(self, to, body):
            self.sent_messages.append({"to": to, "body": body})
            return True

    return MockWhatsAppClient()


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Set up test environment variables."""
    test_env_vars = {
        "ENVIRONMENT": "testing",
        "WHATSAPP_TOKEN": "test_whatsapp_token",
        "PHONE_NUMBER_ID": "123456789",
        "WEBHOOK_VERIFY_TOKEN": "test_verify_token",
    }

    # Store original values
    original_values = {}
    for key, value in test_env_vars.items():
        original_values[key] = os.getenv(key)
        os.environ[key] = value

    yield

    # Restore original values
    for key, original_value in original_values.items():
        if original_value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = original_value


# Utility functions for tests
def record(name, day, month):
    """Lightweight stand-in for a BirthdayRecord in pure-function tests."""
    return SimpleNamespace(name=name, day=day, month=month)


def create_whatsapp_payload(from_number=OWNER, message="Test", message_type="text"):
    """Helper to create a WhatsApp Cloud API webhook payload."""
    msg = {"from": from_number, "id": "wamid.TEST", "timestamp": "1700000000", "type": message_type}
    if message_type == "text":
        msg["text"] = {"body": message}
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "WABA_ID",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"phone_number_id": "123456789"},
                    "messages": [msg],
                },
            }],
        }],
    }

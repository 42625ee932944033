"""Pytest configuration and fixtures."""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Set test environment before any settings are read
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET_KEY"] = "test-secret-for-ci"
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ.pop("ENFORCE_STATUS_TRANSITIONS", None)

from core.auth import create_access_token, hash_password
from core.db import Base
from core.models import Deal, Lead, Property, Task, User


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


class OfflineLLM:
    """Stands in for an LLM client with no provider configured."""

    provider = None

    def is_available(self) -> bool:
        return False


@pytest.fixture(scope="session")
def engine():
    """Create a test database engine."""
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support for SQLite
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture(scope="session")
def tables(engine):
    """Create all tables for testing."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session(engine, tables) -> Session:
    """
    Returns a SQLAlchemy session for testing.

    Each test gets a fresh transaction that is rolled back after the test.
    Commits inside the code under test only release a savepoint.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, autoflush=False, join_transaction_mode="create_savepoint")

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Fresh login rate-limit window and assistant for every test."""
    from api.auth_deps import reset_login_attempts
    from llm.assistant import reset_assistant

    reset_login_attempts()
    reset_assistant()
    yield
    reset_login_attempts()
    reset_assistant()


@pytest.fixture
def offline_assistant():
    """Assistant that always takes the deterministic fallback path."""
    from llm.assistant import Assistant

    return Assistant(client=OfflineLLM())


# ============================================================================
# Sample rows
# ============================================================================


@pytest.fixture
def sample_user(db_session) -> User:
    user = User(
        email="agent@acmerealty.com",
        hashed_password=hash_password("correct-horse"),
        first_name="Avery",
        last_name="Agent",
        role="agent",
        is_active=True,
    )
    db_session.add(user)
    db_session.flush()
    return user


@pytest.fixture
def other_user(db_session) -> User:
    user = User(
        email="other@acmerealty.com",
        hashed_password=hash_password("battery-staple"),
        first_name="Olive",
        last_name="Other",
        role="agent",
        is_active=True,
    )
    db_session.add(user)
    db_session.flush()
    return user


@pytest.fixture
def sample_lead(db_session, sample_user) -> Lead:
    lead = Lead(
        first_name="Sarah",
        last_name="Johnson",
        email="sarah@example.com",
        phone="555-0101",
        source="referral",
        status="new",
        score=85,
        budget=400000,
        budget_max=550000,
        preferred_locations=["Austin"],
        property_types=["house"],
        timeline="1 month",
        assigned_to=sample_user.id,
    )
    db_session.add(lead)
    db_session.flush()
    return lead


@pytest.fixture
def sample_property(db_session, sample_user) -> Property:
    prop = Property(
        title="Craftsman on Elm",
        address="12 Elm St",
        city="Austin",
        state="TX",
        zip_code="78701",
        property_type="house",
        status="available",
        price=480000,
        bedrooms=3,
        bathrooms=2,
        listing_agent=sample_user.id,
    )
    db_session.add(prop)
    db_session.flush()
    return prop


@pytest.fixture
def sample_deal(db_session, sample_user, sample_lead, sample_property) -> Deal:
    deal = Deal(
        lead_id=sample_lead.id,
        property_id=sample_property.id,
        status="offer",
        deal_value=470000,
        commission=14100,
        assigned_to=sample_user.id,
    )
    db_session.add(deal)
    db_session.flush()
    return deal


@pytest.fixture
def sample_task(db_session, sample_user, sample_lead) -> Task:
    task = Task(
        title="Call Sarah about the Elm St showing",
        type="call",
        priority="high",
        status="pending",
        lead_id=sample_lead.id,
        assigned_to=sample_user.id,
        created_by=sample_user.id,
    )
    db_session.add(task)
    db_session.flush()
    return task


# ============================================================================
# API clients
# ============================================================================


def _override_app(db_session, offline_assistant):
    from api.app import app
    from api.deps import get_assistant, get_db, get_readonly_db

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_readonly_db] = override_get_db
    app.dependency_overrides[get_assistant] = lambda: offline_assistant
    return app


@pytest.fixture
def app(db_session, offline_assistant):
    """The FastAPI app bound to the per-test session; real bearer auth."""
    application = _override_app(db_session, offline_assistant)
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def anon_client(app):
    """Client with no credentials; authentication runs for real."""
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def auth_headers(sample_user) -> dict:
    token = create_access_token(sample_user.id, sample_user.email, sample_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(app, sample_user):
    """Client whose requests run as ``sample_user`` without a token."""
    from fastapi.testclient import TestClient

    from api.auth_deps import get_current_user

    app.dependency_overrides[get_current_user] = lambda: sample_user
    return TestClient(app)

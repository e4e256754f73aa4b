"""Shared test fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date
from decimal import Decimal
import uuid

from bookkeeper.database import Base, get_db
from bookkeeper.dependencies import get_today
from bookkeeper.main import app
from bookkeeper.models.recurring import RecurrenceRule
from bookkeeper.services.rule_validator import validate_new_rule

ORG_ID = "org-0001"
OTHER_ORG_ID = "org-0002"
USER_ID = "user-0001"
TODAY = date(2025, 1, 20)


def rule_data(**overrides):
    """Raw create payload for a monthly expense on the 15th."""
    data = {
        "kind": "expense",
        "category": "Software",
        "description": "Accounting subscription",
        "amount": Decimal("99.99"),
        "frequency": "monthly",
        "day_of_month": 15,
        "start_date": date(2025, 1, 10),
    }
    data.update(overrides)
    return data


def build_rule(organization_id=ORG_ID, **overrides):
    """Validated but unsaved rule."""
    return RecurrenceRule(
        id=str(uuid.uuid4()),
        organization_id=organization_id,
        created_by=USER_ID,
        **validate_new_rule(rule_data(**overrides))
    )


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test using in-memory SQLite."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database and clock overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    with TestClient(app, headers={"X-Organization-Id": ORG_ID, "X-User-Id": USER_ID}) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_rule(db_session):
    """Factory persisting validated rules."""
    def _make(organization_id=ORG_ID, **overrides):
        rule = build_rule(organization_id=organization_id, **overrides)
        db_session.add(rule)
        db_session.commit()
        db_session.refresh(rule)
        return rule
    return _make


@pytest.fixture
def sample_rule(make_rule):
    """Monthly expense on the 15th starting 2025-01-10, next due 2025-01-15."""
    return make_rule()

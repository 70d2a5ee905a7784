"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database. The schema is created from
the ORM metadata before each test and dropped afterwards, so nothing leaks
between tests.
"""
import pytest
import sys
import os
from datetime import datetime, timezone

# Point the engine at in-memory SQLite before anything imports core.database
os.environ["DATABASE_URL"] = "sqlite://"

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database import Base, SessionLocal, engine
import models  # noqa: F401


# Monday 2026-10-12 09:00 UTC; every fixed-clock test lives in this ISO week
MONDAY = datetime(2026, 10, 12, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def monday():
    return MONDAY


@pytest.fixture
def calibrated_user(db_session):
    """A user calibrated at 50 across the board with cognitive age 35."""
    from services.calibration import complete_calibration

    complete_calibration(db_session, "user-1", 50.0, 50.0, 50.0, 50.0, 35.0)
    db_session.commit()
    return "user-1"


@pytest.fixture
def client(db_session):
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app) as test_client:
        yield test_client

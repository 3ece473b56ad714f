import os
import tempfile

# Keep test data out of the development database
os.environ.setdefault("DATABASE_PATH", os.path.join(tempfile.mkdtemp(prefix="hourlog-tests-"), "test.db"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.exc import OperationalError  # noqa: E402
from sqlmodel import Session, delete  # noqa: E402

from app import app  # noqa: E402
from db import create_db_and_tables, engine, get_session  # noqa: E402
from models import HourEntry, UserTotals  # noqa: E402


@pytest.fixture(scope="function")
def test_session():
    """Create a test database session."""
    create_db_and_tables()
    with Session(engine) as session:
        yield session
        # Clean up all test data after test
        session.rollback()
        session.exec(delete(HourEntry))
        session.exec(delete(UserTotals))
        session.commit()


@pytest.fixture(scope="function")
def client(test_session):
    """Create a test client with dependency override."""

    def get_test_session():
        yield test_session

    app.dependency_overrides[get_session] = get_test_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def store_down():
    """Build a stand-in for a store call that fails like a lost connection."""

    def failing(*args, **kwargs):
        raise OperationalError("statement", {}, Exception("database is unavailable"))

    return failing

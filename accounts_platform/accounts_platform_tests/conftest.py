"""
Pytest configuration for account service tests.

Settings are read when the service modules are imported, so the test
database and a cheap hash cost are set here first.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_accounts.db")
os.environ.setdefault("PASSWORD_ROUNDS", "1000")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from accounts_platform.accounts_platform.account_service.db import Base, engine
from accounts_platform.accounts_platform.account_service import models  # noqa: F401


@pytest.fixture(autouse=True)
def reset_database():
    # Drop all tables and recreate them before each test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    session = Session(bind=engine)
    yield session
    session.close()


@pytest.fixture
def client():
    from accounts_platform.accounts_platform.account_service.main import app

    with TestClient(app) as c:
        yield c

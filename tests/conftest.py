"""
Pytest configuration and shared fixtures.

Test environment variables are set here before any app import, so that the
engine and settings are built against the test database.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_messages.db")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

import pytest

# Clear settings cache before any app imports to ensure test env vars are used
from app.config import get_settings
get_settings.cache_clear()

from fastapi.testclient import TestClient

from app.context import RequestContext, new_request_context
from app.main import app
from app.storage import Base, engine


@pytest.fixture(scope="function")
def client():
    """Create test client with fresh database for each test."""
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def ctx() -> RequestContext:
    """Request context as built for a request without tracing headers."""
    return new_request_context(correlation_id="test-request", operation="/test")

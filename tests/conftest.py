"""
Test configuration and fixtures for the Acessa Audit API.

No test touches the Celery broker: task submission and result lookups
are patched where routes are exercised.
"""

from typing import Generator

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient

load_dotenv()


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    This fixture provides a clean TestClient instance for each test function,
    ensuring proper isolation between tests.
    """
    with TestClient(test_app) as test_client:
        yield test_client

"""Pytest configuration and fixtures."""

import os
import time
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from jose import jwt

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from fakes import FakeSupabaseClient  # noqa: E402

TEST_JWT_SECRET = os.environ["JWT_SECRET"]


def create_test_token(
    sub: str,
    phone: str | None = "+84901234567",
    role: str | None = "customer",
    exp_offset: int = 3600,
    secret: str = TEST_JWT_SECRET,
    algorithm: str = "HS256",
) -> str:
    """Create a signed access token.

    Args:
        sub: Subject (identity id).
        phone: Phone claim.
        role: Role claim (informational only).
        exp_offset: Seconds from now for expiration (negative for expired).
        secret: Signing secret.
        algorithm: Signing algorithm.

    Returns:
        str: Encoded JWT token.
    """
    now = int(time.time())
    payload = {
        "sub": sub,
        "phone": phone,
        "role": role,
        "exp": now + exp_offset,
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    get_settings.cache_clear()


@pytest.fixture
def fake_db() -> FakeSupabaseClient:
    """Provide an empty in-memory store."""
    return FakeSupabaseClient()


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def api_client(fake_db: FakeSupabaseClient) -> Generator[TestClient, None, None]:
    """Provide a test client whose services all read and write fake_db.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app
    from src.services.catalog_service import ServiceCatalogService, get_catalog_service
    from src.services.order_service import OrderService, get_order_service
    from src.services.order_stats_service import OrderStatsService, get_order_stats_service
    from src.services.user_service import UserService, get_user_service

    app.dependency_overrides[get_user_service] = lambda: UserService(fake_db)
    app.dependency_overrides[get_catalog_service] = lambda: ServiceCatalogService(fake_db)
    app.dependency_overrides[get_order_service] = lambda: OrderService(fake_db)
    app.dependency_overrides[get_order_stats_service] = lambda: OrderStatsService(fake_db)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[dict[str, Any]], dict[str, str]]:
    """Build Authorization headers for a seeded user row."""

    def _headers(user: dict[str, Any]) -> dict[str, str]:
        token = create_test_token(sub=user["id"], phone=user["phone"], role=user["role"])
        return {"Authorization": f"Bearer {token}"}

    return _headers

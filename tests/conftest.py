"""
Pytest configuration and shared fixtures for the authgate backend tests.

Provides:
- mock_supabase / mock_request_supabase / mock_service_supabase: MagicMock
  Supabase clients wired in through FastAPI dependency overrides
- client: httpx AsyncClient with ASGITransport
- signed_in: configure the shared client to resolve a bearer token to a user
- make_user / make_session: realistic provider objects
"""

from types import SimpleNamespace
from typing import Optional
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from authgate.core import dependencies
from authgate.core.rate_limit import limiter
from authgate.database.supabase_client import get_request_supabase, get_service_supabase, get_supabase
from authgate.main import app
from authgate.modules.auth.service import clear_user_cache


# ==================== Provider objects ====================

def make_user(user_id: str = "user-1", email: str = "jane@example.com", metadata: Optional[dict] = None):
    return SimpleNamespace(
        id=user_id,
        email=email,
        user_metadata=metadata or {},
        app_metadata={},
        created_at="2025-01-01T00:00:00+00:00",
        updated_at=None,
    )


def make_session(access_token: str = "access-abc", refresh_token: str = "refresh-xyz", expires_in: int = 3600):
    return SimpleNamespace(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
        expires_at=1_900_000_000,
    )


class ProviderError(Exception):
    """Stand-in for gotrue's AuthApiError (message, status, code)."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


@pytest.fixture
def provider_error():
    return ProviderError


# ==================== Global state ====================

@pytest.fixture(autouse=True)
def reset_state():
    limiter.reset()
    clear_user_cache()
    yield
    app.dependency_overrides.clear()
    clear_user_cache()


# ==================== Supabase mocks ====================

@pytest.fixture
def mock_supabase():
    """Shared anon client (token lookups, table reads)."""
    return MagicMock(name="supabase")


@pytest.fixture
def mock_request_supabase():
    """Per-request client (verify, exchange, set_session, sign-in/out)."""
    return MagicMock(name="request_supabase")


@pytest.fixture
def mock_service_supabase():
    """Service-role client (admin user management)."""
    return MagicMock(name="service_supabase")


@pytest_asyncio.fixture
async def client(mock_supabase, mock_request_supabase, mock_service_supabase):
    app.dependency_overrides[get_supabase] = lambda: mock_supabase
    app.dependency_overrides[get_request_supabase] = lambda: mock_request_supabase
    app.dependency_overrides[get_service_supabase] = lambda: mock_service_supabase
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def signed_in(mock_supabase, monkeypatch):
    """
    Make the bearer token resolve to a user with the given role.

    Returns a function: signed_in(role="user", user_id="user-1") -> auth headers.
    """

    def _sign_in(role: str = "user", user_id: str = "user-1", email: str = "jane@example.com"):
        mock_supabase.auth.get_user.return_value = SimpleNamespace(user=make_user(user_id, email))
        monkeypatch.setattr(dependencies, "get_user_role", lambda *args, **kwargs: role)
        return {"Authorization": "Bearer token-123"}

    return _sign_in

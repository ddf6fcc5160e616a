"""
Pytest Configuration and Centralized Fixtures.

Provides reusable mocks and fixtures for testing:
- Wallet profiles in various states
- A mocked WalletStore
- Database sessions for the postgres store
- Sessions and users for the orchestrator
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

# Set required environment variables BEFORE importing ghoste_wallet modules
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-role-key")
os.environ.setdefault("WALLET_BACKEND", "supabase")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("DEV_OVERRIDE_EMAILS", "dev@ghoste.one")

from ghoste_wallet.models.domain import ProfileState, SessionUser, WalletProfile
from ghoste_wallet.services.spend import DevOverridePolicy, WalletSession

# ============================================================================
# Profile Fixtures
# ============================================================================


@pytest.fixture
def free_profile() -> WalletProfile:
    """Free-plan wallet with 100 tools and 5000 manager credits."""
    return WalletProfile(
        user_id="user-123",
        is_pro=False,
        plan="free",
        credits_manager=5000,
        credits_tools=100,
    )


@pytest.fixture
def pro_profile() -> WalletProfile:
    """Pro wallet with plenty of credits in both pools."""
    return WalletProfile(
        user_id="user-pro",
        is_pro=True,
        plan="pro",
        credits_manager=10000,
        credits_tools=5000,
    )


# ============================================================================
# User / Session Fixtures
# ============================================================================


@pytest.fixture
def user() -> SessionUser:
    """Regular authenticated user."""
    return SessionUser(user_id="user-123", email="artist@example.com")


@pytest.fixture
def dev_user() -> SessionUser:
    """Internal account on the dev-override allow-list."""
    return SessionUser(user_id="user-dev", email="Dev@Ghoste.one")


@pytest.fixture
def dev_overrides() -> DevOverridePolicy:
    """Allow-list matching dev_user."""
    return DevOverridePolicy.build(emails=["dev@ghoste.one"])


@pytest.fixture
def loaded_session(user: SessionUser, free_profile: WalletProfile) -> WalletSession:
    """Session with a loaded free-plan wallet."""
    return WalletSession(user, ProfileState(profile=free_profile))


@pytest.fixture
def empty_session(user: SessionUser) -> WalletSession:
    """Authenticated session whose wallet has not loaded."""
    return WalletSession(user)


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def mock_store() -> AsyncMock:
    """WalletStore with every operation mocked."""
    store = AsyncMock()
    store.fetch_profile = AsyncMock(return_value=None)
    store.create_profile = AsyncMock()
    store.spend = AsyncMock()
    store.transfer = AsyncMock()
    store.list_transactions = AsyncMock(return_value=[])
    return store


@pytest.fixture
def db_session() -> AsyncMock:
    """Create a mock database session with sensible defaults."""
    session = AsyncMock(spec=AsyncSession)

    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.get = AsyncMock(return_value=None)

    # Default execute returns empty result
    mock_result = MagicMock()
    mock_result.scalar_one_or_none = MagicMock(return_value=None)
    session.execute = AsyncMock(return_value=mock_result)

    return session


"""
FastAPI Dependencies - Authentication and wallet store wiring.

All dependencies return typed objects; tests replace them through
app.dependency_overrides.
"""

from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from structlog import get_logger

from ghoste_wallet.config import settings
from ghoste_wallet.db.session import get_session
from ghoste_wallet.exceptions import AuthenticationError, WalletStoreError
from ghoste_wallet.models.api import ErrorCode
from ghoste_wallet.models.domain import SessionUser, WalletDefaults
from ghoste_wallet.services.auth import SupabaseAuthClient
from ghoste_wallet.services.postgres_store import PostgresWalletStore
from ghoste_wallet.services.spend import DevOverridePolicy
from ghoste_wallet.services.supabase_store import SupabaseWalletStore
from ghoste_wallet.services.wallet_reader import defaults_from_settings
from ghoste_wallet.services.wallet_store import WalletStore

logger = get_logger(__name__)

# Bearer token scheme; a missing header is handled per route
bearer_scheme = HTTPBearer(auto_error=False)

_auth_client: SupabaseAuthClient | None = None
_supabase_store: SupabaseWalletStore | None = None


def get_auth_client() -> SupabaseAuthClient:
    """Shared Supabase Auth client."""
    global _auth_client
    if _auth_client is None:
        _auth_client = SupabaseAuthClient(
            auth_url=settings.supabase_auth_url,
            api_key=settings.supabase_service_key,
        )
    return _auth_client


def get_supabase_store() -> SupabaseWalletStore:
    """Shared Supabase wallet store."""
    global _supabase_store
    if _supabase_store is None:
        _supabase_store = SupabaseWalletStore(
            rest_url=settings.supabase_rest_url,
            service_key=settings.supabase_service_key,
            profiles_table=settings.supabase_profiles_table,
            spend_rpc=settings.supabase_spend_rpc,
            transfer_rpc=settings.supabase_transfer_rpc,
            transactions_table=settings.supabase_transactions_table,
        )
    return _supabase_store


async def close_clients() -> None:
    """Close shared HTTP clients (for graceful shutdown)."""
    global _auth_client, _supabase_store

    if _auth_client is not None:
        await _auth_client.close()
        _auth_client = None
    if _supabase_store is not None:
        await _supabase_store.close()
        _supabase_store = None


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": ErrorCode.UNAUTHENTICATED.value, "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> SessionUser | None:
    """
    Resolve the bearer token if one was sent.

    Returns None without a token. A token that Supabase rejects is a 401,
    not an anonymous request.
    """
    if credentials is None:
        return None

    try:
        return await auth_client.get_user(credentials.credentials)
    except AuthenticationError as e:
        raise _unauthorized(e.message) from e
    except WalletStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"code": e.code.value, "message": str(e)},
        ) from e


async def get_current_user(
    user: SessionUser | None = Depends(get_optional_user),
) -> SessionUser:
    """Require an authenticated user."""
    if user is None:
        raise _unauthorized("Authorization header required")
    return user


async def get_wallet_store() -> AsyncIterator[WalletStore]:
    """
    Wallet store for the configured backend.

    Postgres stores are bound to a per-request session; the Supabase store is
    shared.
    """
    if settings.wallet_backend == "postgres":
        async with get_session() as session:
            yield PostgresWalletStore(session)
    else:
        yield get_supabase_store()


def get_dev_override_policy() -> DevOverridePolicy:
    """Dev-override allow-list configured for this deployment."""
    return DevOverridePolicy.from_settings(settings)


def get_wallet_defaults() -> WalletDefaults:
    """Defaults for lazily created wallets."""
    return defaults_from_settings(settings)

"""
Supabase Wallet Store - PostgREST table access and RPC calls over httpx.

The atomic spend/transfer logic lives in Postgres functions exposed as RPCs;
this adapter only forwards arguments and maps the structured error contract:
the wallet error code travels in the PostgREST error `hint` field.
"""

from typing import Any, NoReturn

import httpx
from pydantic import ValidationError
from structlog import get_logger

from ghoste_wallet.exceptions import (
    InsufficientCreditsError,
    ProRequiredError,
    SpendRejectedError,
    WalletStoreError,
)
from ghoste_wallet.models.api import (
    CreditPool,
    ErrorCode,
    StoreErrorPayload,
    TransactionRowPayload,
    WalletRowPayload,
)
from ghoste_wallet.models.domain import (
    SpendCall,
    TransferCall,
    WalletDefaults,
    WalletProfile,
    WalletTransactionRecord,
)

logger = get_logger(__name__)

PROFILE_COLUMNS = "id,is_pro,plan,credits_manager,credits_tools"


def profile_from_row(row: Any, operation: str) -> WalletProfile:
    """Validate a PostgREST row and convert it to a WalletProfile."""
    try:
        payload = WalletRowPayload.model_validate(row)
    except ValidationError as e:
        raise WalletStoreError(operation, f"Malformed wallet row: {e.error_count()} errors") from e

    return WalletProfile(
        user_id=payload.id,
        is_pro=bool(payload.is_pro),
        plan=payload.plan,
        credits_manager=payload.credits_manager or 0,
        credits_tools=payload.credits_tools or 0,
    )


def transaction_from_row(row: Any) -> WalletTransactionRecord:
    """Validate a PostgREST ledger row and convert it to a WalletTransactionRecord."""
    try:
        payload = TransactionRowPayload.model_validate(row)
    except ValidationError as e:
        raise WalletStoreError(
            "list_transactions", f"Malformed ledger row: {e.error_count()} errors"
        ) from e

    return WalletTransactionRecord(
        transaction_id=payload.transaction_id,
        user_id=payload.user_id,
        pool=payload.budget_type,
        credit_change=payload.credit_change,
        action_type=payload.action_type,
        reference_feature=payload.reference_feature,
        balance_after=payload.balance_after,
        correlated_group_id=payload.correlated_group_id,
        created_at=payload.created_at,
    )


def _error_payload(response: httpx.Response) -> StoreErrorPayload:
    """Parse a PostgREST error body, tolerating non-JSON responses."""
    try:
        return StoreErrorPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        return StoreErrorPayload(message=response.text or response.reason_phrase)


class SupabaseWalletStore:
    """WalletStore backed by a Supabase project."""

    def __init__(
        self,
        rest_url: str,
        service_key: str,
        profiles_table: str = "user_profiles",
        spend_rpc: str = "spend_credits_for_feature",
        transfer_rpc: str = "wallet_transfer",
        transactions_table: str = "wallet_transactions",
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rest_url = rest_url.rstrip("/")
        self.service_key = service_key
        self.profiles_table = profiles_table
        self.spend_rpc = spend_rpc
        self.transfer_rpc = transfer_rpc
        self.transactions_table = transactions_table
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    @property
    def headers(self) -> dict[str, str]:
        """Service-role headers for PostgREST."""
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_profile(self, user_id: str) -> WalletProfile | None:
        """Read the wallet row for a user."""
        response = await self._request(
            "fetch_profile",
            "GET",
            f"{self.rest_url}/{self.profiles_table}",
            params={"id": f"eq.{user_id}", "select": PROFILE_COLUMNS},
        )
        if response.is_error:
            raise WalletStoreError("fetch_profile", self._describe(response))

        rows = self._json(response, "fetch_profile")
        if not isinstance(rows, list):
            raise WalletStoreError(
                "fetch_profile", f"Expected a list of rows, got {type(rows).__name__}"
            )
        if not rows:
            return None
        return profile_from_row(rows[0], "fetch_profile")

    async def create_profile(self, user_id: str, defaults: WalletDefaults) -> WalletProfile:
        """Insert the default wallet row for a user."""
        body = {
            "id": user_id,
            "is_pro": defaults.is_pro,
            "plan": defaults.plan,
            "credits_manager": defaults.credits_manager,
            "credits_tools": defaults.credits_tools,
        }
        response = await self._request(
            "create_profile",
            "POST",
            f"{self.rest_url}/{self.profiles_table}",
            json=body,
            headers={"Prefer": "return=representation"},
        )

        if response.status_code == 409:
            # Another request created the row first
            logger.info("wallet_profile_insert_conflict", user_id=user_id)
            existing = await self.fetch_profile(user_id)
            if existing is None:
                raise WalletStoreError("create_profile", "Row conflict but no row found")
            return existing

        if response.is_error:
            raise WalletStoreError("create_profile", self._describe(response))

        row = self._single_row(self._json(response, "create_profile"), "create_profile")
        return profile_from_row(row, "create_profile")

    async def spend(self, call: SpendCall) -> WalletProfile:
        """Invoke the atomic spend RPC."""
        response = await self._request(
            "spend",
            "POST",
            f"{self.rest_url}/rpc/{self.spend_rpc}",
            json={
                "p_user_id": call.user_id,
                "p_pool": call.pool.value,
                "p_amount": call.amount,
                "p_feature_key": call.feature_key,
            },
        )
        if response.is_error:
            self._raise_rpc_error(response, call.pool, call.amount, call.feature_key)

        row = self._single_row(self._json(response, "spend"), "spend")
        return profile_from_row(row, "spend")

    async def transfer(self, call: TransferCall) -> WalletProfile:
        """Invoke the atomic transfer RPC."""
        response = await self._request(
            "transfer",
            "POST",
            f"{self.rest_url}/rpc/{self.transfer_rpc}",
            json={
                "p_user_id": call.user_id,
                "p_source_pool": call.direction.source.value,
                "p_target_pool": call.direction.target.value,
                "p_amount": call.amount,
            },
        )
        if response.is_error:
            self._raise_rpc_error(response, call.direction.source, call.amount, "pool_transfer")

        row = self._single_row(self._json(response, "transfer"), "transfer")
        return profile_from_row(row, "transfer")

    async def list_transactions(
        self, user_id: str, limit: int = 50, pool: CreditPool | None = None
    ) -> list[WalletTransactionRecord]:
        """Read the ledger for a user, newest first."""
        params = {
            "user_id": f"eq.{user_id}",
            "select": "*",
            "order": "created_at.desc",
            "limit": str(limit),
        }
        if pool is not None:
            # Pool names are stored upper- or lower-case depending on the writer
            params["budget_type"] = f"ilike.{pool.value}"

        response = await self._request(
            "list_transactions",
            "GET",
            f"{self.rest_url}/{self.transactions_table}",
            params=params,
        )
        if response.is_error:
            raise WalletStoreError("list_transactions", self._describe(response))

        rows = self._json(response, "list_transactions")
        if not isinstance(rows, list):
            raise WalletStoreError(
                "list_transactions", f"Expected a list of rows, got {type(rows).__name__}"
            )
        return [transaction_from_row(row) for row in rows]

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _request(
        self, operation: str, method: str, url: str, **kwargs: Any
    ) -> httpx.Response:
        """Send a request; transport failures become WalletStoreError."""
        headers = {**self.headers, **kwargs.pop("headers", {})}
        try:
            return await self.http_client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("wallet_store_transport_error", operation=operation, error=str(e))
            raise WalletStoreError(operation, str(e)) from e

    def _raise_rpc_error(
        self,
        response: httpx.Response,
        pool: CreditPool,
        amount: int,
        feature_key: str,
    ) -> NoReturn:
        """Map a PostgREST RPC error to a typed wallet error."""
        payload = _error_payload(response)
        message = payload.message or f"HTTP {response.status_code}"

        logger.warning(
            "wallet_rpc_rejected",
            status_code=response.status_code,
            code=payload.code,
            hint=payload.hint,
            feature_key=feature_key,
        )

        if payload.hint == ErrorCode.INSUFFICIENT_CREDITS.value:
            raise InsufficientCreditsError(pool, amount, server_message=message)
        if payload.hint == ErrorCode.PRO_REQUIRED.value:
            raise ProRequiredError(feature_key, plan="unknown")
        if response.status_code >= 500 and payload.code is None:
            raise WalletStoreError("rpc", message)
        raise SpendRejectedError(payload.code, message)

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Any:
        """Decode a 2xx body; a non-JSON body (e.g. a gateway page) is a store error."""
        try:
            return response.json()
        except ValueError as e:
            raise WalletStoreError(
                operation, f"Non-JSON response (HTTP {response.status_code})"
            ) from e

    @staticmethod
    def _single_row(data: Any, operation: str) -> Any:
        """RPCs and representations may return an object or a one-element array."""
        if isinstance(data, list):
            if len(data) != 1:
                raise WalletStoreError(operation, f"Expected one row, got {len(data)}")
            return data[0]
        return data

    @staticmethod
    def _describe(response: httpx.Response) -> str:
        payload = _error_payload(response)
        return f"HTTP {response.status_code}: {payload.message or 'no message'}"

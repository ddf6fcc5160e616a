"""
Wallet Store Protocol - backend-agnostic interface to wallet persistence.

The store owns the ledger invariant: spend and transfer MUST be atomic per
user, and MUST refuse to take a pool below zero. Clients of the store never
check balances themselves.
"""

from typing import Protocol

from ghoste_wallet.models.api import CreditPool
from ghoste_wallet.models.domain import (
    SpendCall,
    TransferCall,
    WalletDefaults,
    WalletProfile,
    WalletTransactionRecord,
)


class WalletStore(Protocol):
    """
    Wallet store protocol.

    Implemented by SupabaseWalletStore (PostgREST + RPC) and
    PostgresWalletStore (SQLAlchemy).
    """

    async def fetch_profile(self, user_id: str) -> WalletProfile | None:
        """
        Read the wallet row for a user.

        Returns:
            The profile, or None when no row exists

        Raises:
            WalletStoreError: If the store cannot be read
        """
        ...

    async def create_profile(self, user_id: str, defaults: WalletDefaults) -> WalletProfile:
        """
        Insert the default wallet row for a user.

        Returns:
            The row as stored (an existing row if another request won the race)

        Raises:
            WalletStoreError: If the insert fails
        """
        ...

    async def spend(self, call: SpendCall) -> WalletProfile:
        """
        Atomically decrement one pool.

        Returns:
            The authoritative wallet row after the spend

        Raises:
            InsufficientCreditsError: If the pool cannot cover the amount
            SpendRejectedError: If the server rejects the spend for another reason
            WalletStoreError: If the store cannot be reached
        """
        ...

    async def transfer(self, call: TransferCall) -> WalletProfile:
        """
        Atomically move credits from one pool to the other.

        Returns:
            The authoritative wallet row after the transfer

        Raises:
            InsufficientCreditsError: If the source pool cannot cover the amount
            SpendRejectedError: If the server rejects the transfer for another reason
            WalletStoreError: If the store cannot be reached
        """
        ...

    async def list_transactions(
        self, user_id: str, limit: int = 50, pool: CreditPool | None = None
    ) -> list[WalletTransactionRecord]:
        """
        Read a user's ledger entries, newest first.

        Returns:
            At most `limit` entries, optionally restricted to one pool

        Raises:
            WalletStoreError: If the ledger cannot be read
        """
        ...

"""
Postgres Wallet Store - self-hosted WalletStore on SQLAlchemy.

Spend and transfer follow the write-verification pattern:
1. Lock the wallet row (SELECT FOR UPDATE)
2. Check the pool balance
3. Mutate balances and append ledger rows
4. Flush, read back and verify
5. Commit
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from ghoste_wallet.db.models import WalletProfileRow, WalletTransaction
from ghoste_wallet.exceptions import InsufficientCreditsError, SpendRejectedError, WalletStoreError
from ghoste_wallet.models.api import ActionType, CreditPool
from ghoste_wallet.models.domain import (
    SpendCall,
    TransferCall,
    WalletDefaults,
    WalletProfile,
    WalletTransactionRecord,
)

logger = get_logger(__name__)

_POOL_COLUMNS: dict[CreditPool, str] = {
    CreditPool.MANAGER: "credits_manager",
    CreditPool.TOOLS: "credits_tools",
}


def _pool_balance(row: WalletProfileRow, pool: CreditPool) -> int:
    return int(getattr(row, _POOL_COLUMNS[pool]))


def _set_pool_balance(row: WalletProfileRow, pool: CreditPool, value: int) -> None:
    setattr(row, _POOL_COLUMNS[pool], value)


def row_to_domain(row: WalletProfileRow) -> WalletProfile:
    """Convert ORM wallet row to domain model."""
    return WalletProfile(
        user_id=row.user_id,
        is_pro=bool(row.is_pro),
        plan=row.plan,
        credits_manager=int(row.credits_manager),
        credits_tools=int(row.credits_tools),
    )


def transaction_to_domain(row: WalletTransaction) -> WalletTransactionRecord:
    """Convert ORM ledger row to domain model."""
    return WalletTransactionRecord(
        transaction_id=str(row.id),
        user_id=row.user_id,
        pool=row.budget_type,
        credit_change=int(row.credit_change),
        action_type=row.action_type,
        reference_feature=row.reference_feature,
        balance_after=int(row.balance_after),
        correlated_group_id=str(row.correlated_group_id) if row.correlated_group_id else None,
        created_at=row.created_at,
    )


class PostgresWalletStore:
    """WalletStore backed by the wallet_profiles / wallet_transactions tables."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize wallet store with database session."""
        self.session = session

    async def fetch_profile(self, user_id: str) -> WalletProfile | None:
        """Read the wallet row for a user."""
        async with self._database_errors("fetch_profile"):
            stmt = select(WalletProfileRow).where(WalletProfileRow.user_id == user_id)
            result = await self.session.execute(stmt)
            row = result.scalar_one_or_none()
            return row_to_domain(row) if row is not None else None

    async def create_profile(self, user_id: str, defaults: WalletDefaults) -> WalletProfile:
        """Insert the default wallet row; a lost race returns the winner's row."""
        new_row = WalletProfileRow(
            user_id=user_id,
            is_pro=defaults.is_pro,
            plan=defaults.plan,
            credits_manager=defaults.credits_manager,
            credits_tools=defaults.credits_tools,
        )

        async with self._database_errors("create_profile"):
            self.session.add(new_row)
            try:
                await self.session.flush()
            except IntegrityError:
                # Race condition - row created by another request
                await self.session.rollback()
                existing = await self.fetch_profile(user_id)
                if existing is None:
                    raise WalletStoreError("create_profile", "Insert conflict but no row found")
                return existing

            verified = await self.session.get(WalletProfileRow, user_id)
            if verified is None:
                raise WalletStoreError(
                    "create_profile", f"Wallet {user_id} not found after insert"
                )

            await self.session.commit()

        logger.info(
            "wallet_profile_inserted",
            user_id=user_id,
            plan=defaults.plan,
            credits_manager=defaults.credits_manager,
            credits_tools=defaults.credits_tools,
        )
        return row_to_domain(verified)

    async def spend(self, call: SpendCall) -> WalletProfile:
        """
        Atomically decrement one pool.

        Raises:
            SpendRejectedError: No wallet row exists
            InsufficientCreditsError: Pool balance below the amount
            WalletStoreError: Database failure or write verification failed
        """
        async with self._database_errors("spend"):
            row = await self._lock_profile(call.user_id)
            if row is None:
                raise SpendRejectedError(
                    "WALLET_NOT_FOUND", f"No wallet for user {call.user_id}"
                )

            balance_before = _pool_balance(row, call.pool)
            if balance_before < call.amount:
                await self.session.rollback()
                raise InsufficientCreditsError(call.pool, call.amount, balance=balance_before)

            balance_after = balance_before - call.amount
            _set_pool_balance(row, call.pool, balance_after)

            self.session.add(
                WalletTransaction(
                    user_id=call.user_id,
                    budget_type=call.pool,
                    credit_change=-call.amount,
                    action_type=ActionType.CONSUMPTION,
                    reference_feature=call.feature_key,
                    balance_after=balance_after,
                )
            )
            await self.session.flush()

            verified = await self._verify_balances(
                call.user_id, {call.pool: balance_after}, "spend"
            )
            await self.session.commit()

        logger.info(
            "wallet_spend_committed",
            user_id=call.user_id,
            pool=call.pool.value,
            amount=call.amount,
            feature_key=call.feature_key,
            balance_before=balance_before,
            balance_after=balance_after,
        )
        return row_to_domain(verified)

    async def transfer(self, call: TransferCall) -> WalletProfile:
        """
        Atomically move credits between the two pools.

        Raises:
            SpendRejectedError: No wallet row exists
            InsufficientCreditsError: Source pool balance below the amount
            WalletStoreError: Database failure or write verification failed
        """
        source = call.direction.source
        target = call.direction.target
        group_id = uuid4()

        async with self._database_errors("transfer"):
            row = await self._lock_profile(call.user_id)
            if row is None:
                raise SpendRejectedError(
                    "WALLET_NOT_FOUND", f"No wallet for user {call.user_id}"
                )

            source_before = _pool_balance(row, source)
            if source_before < call.amount:
                await self.session.rollback()
                raise InsufficientCreditsError(source, call.amount, balance=source_before)

            source_after = source_before - call.amount
            target_after = _pool_balance(row, target) + call.amount
            _set_pool_balance(row, source, source_after)
            _set_pool_balance(row, target, target_after)

            for pool, change, balance_after in (
                (source, -call.amount, source_after),
                (target, call.amount, target_after),
            ):
                self.session.add(
                    WalletTransaction(
                        user_id=call.user_id,
                        budget_type=pool,
                        credit_change=change,
                        action_type=ActionType.TRANSFER,
                        reference_feature=call.direction.value,
                        balance_after=balance_after,
                        correlated_group_id=group_id,
                    )
                )
            await self.session.flush()

            verified = await self._verify_balances(
                call.user_id, {source: source_after, target: target_after}, "transfer"
            )
            await self.session.commit()

        logger.info(
            "wallet_transfer_committed",
            user_id=call.user_id,
            direction=call.direction.value,
            amount=call.amount,
            correlated_group_id=str(group_id),
        )
        return row_to_domain(verified)

    async def list_transactions(
        self, user_id: str, limit: int = 50, pool: CreditPool | None = None
    ) -> list[WalletTransactionRecord]:
        """Read the ledger for a user, newest first."""
        stmt = select(WalletTransaction).where(WalletTransaction.user_id == user_id)
        if pool is not None:
            stmt = stmt.where(WalletTransaction.budget_type == pool)
        stmt = stmt.order_by(WalletTransaction.created_at.desc()).limit(limit)

        async with self._database_errors("list_transactions"):
            result = await self.session.execute(stmt)
            rows = result.scalars().all()
        return [transaction_to_domain(row) for row in rows]

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    @asynccontextmanager
    async def _database_errors(self, operation: str) -> AsyncIterator[None]:
        """Roll back and re-raise driver and ORM failures as WalletStoreError."""
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("wallet_store_database_error", operation=operation, error=str(e))
            try:
                await self.session.rollback()
            except SQLAlchemyError as rollback_error:
                logger.warning(
                    "wallet_store_rollback_failed",
                    operation=operation,
                    error=str(rollback_error),
                )
            raise WalletStoreError(operation, str(e)) from e

    async def _lock_profile(self, user_id: str) -> WalletProfileRow | None:
        """Lock wallet row for update (SELECT FOR UPDATE)."""
        stmt = (
            select(WalletProfileRow).where(WalletProfileRow.user_id == user_id).with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def _verify_balances(
        self, user_id: str, expected: dict[CreditPool, int], operation: str
    ) -> WalletProfileRow:
        """Read the row back and check the written balances."""
        verified = await self.session.get(WalletProfileRow, user_id)
        if verified is None:
            raise WalletStoreError(operation, f"Wallet {user_id} disappeared after update")

        for pool, value in expected.items():
            actual = _pool_balance(verified, pool)
            if actual != value:
                raise WalletStoreError(
                    operation, f"{pool.value} balance mismatch: expected {value}, got {actual}"
                )
        return verified

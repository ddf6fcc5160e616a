"""
Database Models - SQLAlchemy ORM models for the self-hosted wallet store.

All columns use Mapped[] type annotations.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, Index, String
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ghoste_wallet.models.api import ActionType, CreditPool


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class WalletProfileRow(Base):
    """
    ORM model for wallet_profiles table.

    One row per user; both pools are guarded non-negative by the database.
    """

    __tablename__ = "wallet_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Plan / entitlement
    is_pro: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    plan: Mapped[str | None] = mapped_column(String(50), nullable=True, default="free")

    # Pools
    credits_manager: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    credits_tools: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("credits_manager >= 0", name="ck_wallet_manager_non_negative"),
        CheckConstraint("credits_tools >= 0", name="ck_wallet_tools_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<WalletProfileRow(user_id={self.user_id}, manager={self.credits_manager}, "
            f"tools={self.credits_tools})>"
        )


class WalletTransaction(Base):
    """
    ORM model for wallet_transactions table.

    Immutable ledger of every pool mutation. A transfer writes two rows that
    share a correlated_group_id.
    """

    __tablename__ = "wallet_transactions"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    budget_type: Mapped[CreditPool] = mapped_column(
        SQLEnum(
            CreditPool,
            name="credit_pool",
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    credit_change: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action_type: Mapped[ActionType] = mapped_column(
        SQLEnum(
            ActionType,
            name="wallet_action_type",
            native_enum=False,
            length=20,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    reference_feature: Mapped[str] = mapped_column(String(100), nullable=False)
    balance_after: Mapped[int] = mapped_column(BigInteger, nullable=False)
    correlated_group_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("balance_after >= 0", name="ck_wallet_tx_balance_non_negative"),
        Index("idx_wallet_transactions_user_created", "user_id", "created_at"),
        Index("idx_wallet_transactions_feature", "reference_feature"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<WalletTransaction(id={self.id}, user_id={self.user_id}, "
            f"pool={self.budget_type}, change={self.credit_change})>"
        )

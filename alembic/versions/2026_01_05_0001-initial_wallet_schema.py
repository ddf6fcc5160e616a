"""Create wallet_profiles and wallet_transactions tables.

Revision ID: 2026_01_05_0001
Revises:
Create Date: 2026-01-05

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_01_05_0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create wallet tables."""
    # One row per user, both pools non-negative
    op.create_table(
        "wallet_profiles",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("is_pro", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("plan", sa.String(50), nullable=True, server_default="free"),
        sa.Column("credits_manager", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("credits_tools", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("credits_manager >= 0", name="ck_wallet_manager_non_negative"),
        sa.CheckConstraint("credits_tools >= 0", name="ck_wallet_tools_non_negative"),
    )

    # Immutable ledger of pool mutations
    op.create_table(
        "wallet_transactions",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("budget_type", sa.String(20), nullable=False),
        sa.Column("credit_change", sa.BigInteger, nullable=False),
        sa.Column("action_type", sa.String(20), nullable=False),
        sa.Column("reference_feature", sa.String(100), nullable=False),
        sa.Column("balance_after", sa.BigInteger, nullable=False),
        sa.Column("correlated_group_id", UUID(as_uuid=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
        sa.CheckConstraint("balance_after >= 0", name="ck_wallet_tx_balance_non_negative"),
    )
    op.create_index(
        "idx_wallet_transactions_user_created", "wallet_transactions", ["user_id", "created_at"]
    )
    op.create_index(
        "idx_wallet_transactions_feature", "wallet_transactions", ["reference_feature"]
    )


def downgrade() -> None:
    """Drop wallet tables."""
    op.drop_index("idx_wallet_transactions_feature", table_name="wallet_transactions")
    op.drop_index("idx_wallet_transactions_user_created", table_name="wallet_transactions")
    op.drop_table("wallet_transactions")
    op.drop_table("wallet_profiles")

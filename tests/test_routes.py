"""
Tests for API Routes.

Tests route handler functions directly with mocked dependencies.
"""

from dataclasses import replace
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from fastapi import HTTPException

from ghoste_wallet.api.routes import (
    check_affordability,
    get_cost_badge,
    get_wallet,
    health_check,
    list_pricing,
    list_transactions,
    raise_http_error,
    spend_for_feature,
    transfer_credits,
)
from ghoste_wallet.exceptions import (
    InsufficientCreditsError,
    InvalidTransferError,
    ProRequiredError,
    SpendRejectedError,
    WalletNotReadyError,
    WalletStoreError,
)
from ghoste_wallet.models.api import (
    ActionType,
    CostBadgeResponse,
    CreditPool,
    SpendRequest,
    TransferDirection,
    TransferRequest,
)
from ghoste_wallet.models.domain import (
    SessionUser,
    WalletDefaults,
    WalletProfile,
    WalletTransactionRecord,
)
from ghoste_wallet.services.spend import DevOverridePolicy

# ============================================================================
# Error Mapping
# ============================================================================


class TestRaiseHttpError:
    """Wallet errors map to fixed HTTP statuses with a structured detail."""

    @pytest.mark.parametrize(
        "error,status_code",
        [
            (WalletNotReadyError("x"), 409),
            (ProRequiredError("x", "free"), 403),
            (InsufficientCreditsError(CreditPool.TOOLS, 20), 402),
            (SpendRejectedError("P0001", "nope"), 400),
            (InvalidTransferError("bad"), 400),
            (WalletStoreError("spend", "down"), 502),
        ],
    )
    def test_status_mapping(self, error, status_code: int):
        with pytest.raises(HTTPException) as exc_info:
            raise_http_error(error)

        assert exc_info.value.status_code == status_code
        assert exc_info.value.detail["code"] == error.code.value
        assert exc_info.value.detail["message"] == str(error)


# ============================================================================
# Health / Pricing
# ============================================================================


class TestHealthCheckRoute:
    """Tests for health_check route function."""

    async def test_supabase_backend_healthy(self):
        result = await health_check()

        assert result.status == "healthy"
        assert result.backend == "supabase"
        assert result.timestamp


class TestPricingRoutes:
    """Tests for pricing route functions."""

    async def test_list_pricing_sorted(self):
        result = await list_pricing()

        keys = [item.feature_key for item in result]
        assert keys == sorted(keys)
        assert "link_create_oneclick" in keys

    async def test_badge_for_priced_feature(self):
        result = await get_cost_badge("link_create_oneclick")

        assert isinstance(result, CostBadgeResponse)
        assert result.text == "20 Tools credits"
        assert result.rendered == "20 Tools credits"

    async def test_badge_for_unmetered_feature_is_204(self):
        result = await get_cost_badge("not_a_real_feature")

        assert result.status_code == 204


# ============================================================================
# Wallet Routes
# ============================================================================


class TestGetWalletRoute:
    """Tests for get_wallet route function."""

    async def test_unauthenticated_gets_null_profile(self, mock_store: AsyncMock):
        result = await get_wallet(None, mock_store, WalletDefaults())

        assert result.profile is None
        assert result.is_pro is False
        assert result.plan == "free"
        assert result.error is None
        mock_store.fetch_profile.assert_not_called()

    async def test_authenticated_gets_profile(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        mock_store.fetch_profile.return_value = free_profile

        result = await get_wallet(user, mock_store, WalletDefaults())

        assert result.profile is not None
        assert result.profile.credits_tools == 100
        assert result.profile.total_credits == 5100

    async def test_load_failure_in_error_field(self, mock_store: AsyncMock, user: SessionUser):
        mock_store.fetch_profile.side_effect = WalletStoreError("fetch_profile", "timeout")

        result = await get_wallet(user, mock_store, WalletDefaults())

        assert result.profile is None
        assert result.error is not None
        assert result.error.code.value == "WALLET_LOAD_FAILED"


class TestSpendRoute:
    """Tests for spend_for_feature route function."""

    async def test_spend_success_returns_server_balance(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        mock_store.fetch_profile.return_value = free_profile
        mock_store.spend.return_value = replace(free_profile, credits_tools=80)

        result = await spend_for_feature(
            SpendRequest(feature_key="link_create_oneclick"),
            user,
            mock_store,
            WalletDefaults(),
            DevOverridePolicy(),
        )

        assert result.ok is True
        assert result.cost is not None
        assert result.cost.amount == 20
        assert result.balance is not None
        assert result.balance.credits_tools == 80

    async def test_unmetered_skipped(self, mock_store: AsyncMock, user: SessionUser, free_profile):
        mock_store.fetch_profile.return_value = free_profile

        result = await spend_for_feature(
            SpendRequest(feature_key="view_dashboard"),
            user,
            mock_store,
            WalletDefaults(),
            DevOverridePolicy(),
        )

        assert result.skipped is True
        mock_store.spend.assert_not_called()

    async def test_pro_required_is_403(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        mock_store.fetch_profile.return_value = free_profile

        with pytest.raises(HTTPException) as exc_info:
            await spend_for_feature(
                SpendRequest(feature_key="meta_launch_campaign"),
                user,
                mock_store,
                WalletDefaults(),
                DevOverridePolicy(),
            )

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["code"] == "PRO_REQUIRED"

    async def test_load_failure_is_wallet_not_ready(
        self, mock_store: AsyncMock, user: SessionUser
    ):
        mock_store.fetch_profile.side_effect = WalletStoreError("fetch_profile", "timeout")

        with pytest.raises(HTTPException) as exc_info:
            await spend_for_feature(
                SpendRequest(feature_key="link_create_oneclick"),
                user,
                mock_store,
                WalletDefaults(),
                DevOverridePolicy(),
            )

        assert exc_info.value.status_code == 409

    async def test_insufficient_credits_is_402(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        mock_store.fetch_profile.return_value = free_profile
        mock_store.spend.side_effect = InsufficientCreditsError(CreditPool.TOOLS, 20)

        with pytest.raises(HTTPException) as exc_info:
            await spend_for_feature(
                SpendRequest(feature_key="link_create_oneclick"),
                user,
                mock_store,
                WalletDefaults(),
                DevOverridePolicy(),
            )

        assert exc_info.value.status_code == 402

    async def test_dev_override(
        self, mock_store: AsyncMock, dev_user: SessionUser, dev_overrides: DevOverridePolicy
    ):
        mock_store.fetch_profile.return_value = None
        mock_store.create_profile.return_value = WalletProfile(
            user_id="user-dev", is_pro=False, plan="free", credits_manager=0, credits_tools=1000
        )

        result = await spend_for_feature(
            SpendRequest(feature_key="meta_launch_campaign"),
            dev_user,
            mock_store,
            WalletDefaults(),
            dev_overrides,
        )

        assert result.dev_override is True
        mock_store.spend.assert_not_called()


class TestTransferRoute:
    """Tests for transfer_credits route function."""

    async def test_transfer_returns_updated_state(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        mock_store.fetch_profile.return_value = free_profile
        mock_store.transfer.return_value = replace(
            free_profile, credits_manager=4000, credits_tools=1100
        )

        result = await transfer_credits(
            TransferRequest(direction=TransferDirection.MANAGER_TO_TOOLS, amount=1000),
            user,
            mock_store,
            WalletDefaults(),
        )

        assert result.profile is not None
        assert result.profile.credits_manager == 4000
        assert result.profile.credits_tools == 1100

    async def test_invalid_amount_is_400(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        mock_store.fetch_profile.return_value = free_profile

        with pytest.raises(HTTPException) as exc_info:
            await transfer_credits(
                TransferRequest(direction=TransferDirection.MANAGER_TO_TOOLS, amount=0),
                user,
                mock_store,
                WalletDefaults(),
            )

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail["code"] == "INVALID_TRANSFER"


class TestTransactionsRoute:
    """Tests for list_transactions route function."""

    async def test_returns_ledger_newest_first(self, mock_store: AsyncMock, user: SessionUser):
        record = WalletTransactionRecord(
            transaction_id="tx-1",
            user_id="user-123",
            pool=CreditPool.TOOLS,
            credit_change=-20,
            action_type=ActionType.CONSUMPTION,
            created_at=datetime(2026, 1, 8, 12, 0, tzinfo=UTC),
            reference_feature="link_create_oneclick",
            balance_after=80,
        )
        mock_store.list_transactions.return_value = [record]

        result = await list_transactions(25, CreditPool.TOOLS, user, mock_store)

        mock_store.list_transactions.assert_awaited_once_with(
            "user-123", limit=25, pool=CreditPool.TOOLS
        )
        assert result.count == 1
        assert result.transactions[0].transaction_id == "tx-1"
        assert result.transactions[0].balance_after == 80

    async def test_store_error_is_502(self, mock_store: AsyncMock, user: SessionUser):
        mock_store.list_transactions.side_effect = WalletStoreError("list_transactions", "down")

        with pytest.raises(HTTPException) as exc_info:
            await list_transactions(50, None, user, mock_store)

        assert exc_info.value.status_code == 502


class TestAffordabilityRoute:
    """Tests for check_affordability route function."""

    async def test_affordable(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        mock_store.fetch_profile.return_value = free_profile

        result = await check_affordability(
            "link_create_oneclick", user, mock_store, WalletDefaults(), DevOverridePolicy()
        )

        assert result.affordable is True
        assert result.cost is not None
        assert result.cost.amount == 20
        mock_store.spend.assert_not_called()

    async def test_pro_gated_for_free_user(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        mock_store.fetch_profile.return_value = free_profile

        result = await check_affordability(
            "meta_launch_campaign", user, mock_store, WalletDefaults(), DevOverridePolicy()
        )

        assert result.affordable is False

    async def test_load_failure_is_not_affordable(self, mock_store: AsyncMock, user: SessionUser):
        mock_store.fetch_profile.side_effect = WalletStoreError("fetch_profile", "down")

        result = await check_affordability(
            "link_create_oneclick", user, mock_store, WalletDefaults(), DevOverridePolicy()
        )

        assert result.affordable is False

    async def test_unmetered_has_no_cost(self, mock_store: AsyncMock, user: SessionUser):
        result = await check_affordability(
            "not_a_priced_feature", user, mock_store, WalletDefaults(), DevOverridePolicy()
        )

        assert result.affordable is True
        assert result.cost is None

    async def test_dev_override_skips_load(
        self, mock_store: AsyncMock, dev_user: SessionUser, dev_overrides: DevOverridePolicy
    ):
        result = await check_affordability(
            "meta_launch_campaign", dev_user, mock_store, WalletDefaults(), dev_overrides
        )

        assert result.affordable is True
        assert result.dev_override is True
        mock_store.fetch_profile.assert_not_called()

"""
Tests for CreditSpendOrchestrator.

Covers the ordered gates (unmetered, dev override, wallet loaded, Pro) and
the rule that the cached wallet always takes the row the store returned.
"""

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest

from ghoste_wallet.exceptions import (
    InsufficientCreditsError,
    ProRequiredError,
    SpendRejectedError,
    WalletNotReadyError,
    WalletStoreError,
)
from ghoste_wallet.models.api import CreditPool, ErrorCode
from ghoste_wallet.models.domain import (
    FeatureCost,
    ProfileState,
    SessionUser,
    SpendCall,
    WalletProfile,
)
from ghoste_wallet.services import spend as spend_module
from ghoste_wallet.services.spend import (
    CreditSpendOrchestrator,
    DevOverridePolicy,
    WalletSession,
    can_afford,
)


class TestUnmeteredFeatures:
    """Features without a price are free."""

    async def test_unknown_feature_skipped_without_store_call(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """Unknown key gives ok + skipped and never touches the store."""
        orchestrator = CreditSpendOrchestrator(mock_store)

        result = await orchestrator.spend_for_feature(loaded_session, "not_a_real_feature")

        assert result.ok is True
        assert result.skipped is True
        assert result.cost is None
        mock_store.spend.assert_not_called()

    async def test_unknown_feature_skipped_even_without_wallet(
        self, mock_store: AsyncMock, empty_session: WalletSession
    ):
        """The skip happens before the wallet-loaded check."""
        orchestrator = CreditSpendOrchestrator(mock_store)

        result = await orchestrator.spend_for_feature(empty_session, "not_a_real_feature")

        assert result.skipped is True
        mock_store.spend.assert_not_called()


class TestDevOverride:
    """Allow-listed internal accounts bypass metering."""

    async def test_dev_override_user_bypasses_any_feature(
        self,
        mock_store: AsyncMock,
        dev_user: SessionUser,
        dev_overrides: DevOverridePolicy,
        free_profile: WalletProfile,
    ):
        """Dev users pass Pro gates and balances without a store call."""
        session = WalletSession(dev_user, ProfileState(profile=free_profile))
        orchestrator = CreditSpendOrchestrator(mock_store, dev_overrides)

        result = await orchestrator.spend_for_feature(session, "meta_launch_campaign")

        assert result.ok is True
        assert result.dev_override is True
        assert result.balance == free_profile
        mock_store.spend.assert_not_called()

    async def test_dev_override_does_not_mutate_cache(
        self,
        mock_store: AsyncMock,
        dev_user: SessionUser,
        dev_overrides: DevOverridePolicy,
        free_profile: WalletProfile,
    ):
        """Cached wallet is unchanged after a dev-override spend."""
        state = ProfileState(profile=free_profile)
        session = WalletSession(dev_user, state)
        orchestrator = CreditSpendOrchestrator(mock_store, dev_overrides)

        await orchestrator.spend_for_feature(session, "link_create_oneclick")

        assert session.state is state

    async def test_dev_override_without_profile_uses_placeholder(
        self, mock_store: AsyncMock, dev_user: SessionUser, dev_overrides: DevOverridePolicy
    ):
        """No wallet loaded still succeeds, with a zero-credit placeholder."""
        session = WalletSession(dev_user)
        orchestrator = CreditSpendOrchestrator(mock_store, dev_overrides)

        result = await orchestrator.spend_for_feature(session, "link_create_oneclick")

        assert result.dev_override is True
        assert result.balance == WalletProfile.placeholder(dev_user.user_id)
        assert session.profile is None

    async def test_dev_override_log_carries_user_id_not_email(
        self,
        mock_store: AsyncMock,
        dev_user: SessionUser,
        dev_overrides: DevOverridePolicy,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """The bypass is logged by user id; the address stays out of INFO logs."""
        logger = MagicMock()
        monkeypatch.setattr(spend_module, "logger", logger)
        orchestrator = CreditSpendOrchestrator(mock_store, dev_overrides)

        await orchestrator.spend_for_feature(WalletSession(dev_user), "link_create_oneclick")

        logger.info.assert_called_once()
        event, kwargs = logger.info.call_args.args[0], logger.info.call_args.kwargs
        assert event == "wallet_spend_dev_override"
        assert kwargs["user_id"] == "user-dev"
        assert "email" not in kwargs
        assert dev_user.email not in repr(kwargs)

    async def test_non_listed_user_is_metered(
        self,
        mock_store: AsyncMock,
        loaded_session: WalletSession,
        dev_overrides: DevOverridePolicy,
    ):
        """Users outside the allow-list go through the store."""
        mock_store.spend.return_value = replace(loaded_session.profile, credits_tools=80)
        orchestrator = CreditSpendOrchestrator(mock_store, dev_overrides)

        result = await orchestrator.spend_for_feature(loaded_session, "link_create_oneclick")

        assert result.dev_override is False
        mock_store.spend.assert_awaited_once()

    def test_policy_matches_email_case_insensitively(self):
        """Email matching ignores case on both sides."""
        policy = DevOverridePolicy.build(emails=["Owner@Ghoste.One "])

        assert policy.allows(SessionUser(user_id="u1", email="owner@ghoste.one"))
        assert policy.allows(SessionUser(user_id="u1", email="OWNER@GHOSTE.ONE"))
        assert not policy.allows(SessionUser(user_id="u1", email="other@ghoste.one"))

    def test_policy_matches_user_id(self):
        """User ids are matched exactly."""
        policy = DevOverridePolicy.build(user_ids=["user-dev"])

        assert policy.allows(SessionUser(user_id="user-dev"))
        assert not policy.allows(SessionUser(user_id="user-DEV"))

    def test_policy_rejects_anonymous_and_emailless(self):
        """No user, or a user without email, does not match an email list."""
        policy = DevOverridePolicy.build(emails=["dev@ghoste.one"])

        assert not policy.allows(None)
        assert not policy.allows(SessionUser(user_id="user-123"))

    def test_empty_policy_allows_nobody(self, dev_user: SessionUser):
        """Default policy is empty."""
        assert not DevOverridePolicy().allows(dev_user)


class TestWalletNotReady:
    """Metered spends need a loaded wallet."""

    async def test_no_profile_raises_wallet_not_ready(
        self, mock_store: AsyncMock, empty_session: WalletSession
    ):
        """No cached profile gives WALLET_NOT_READY without a store call."""
        orchestrator = CreditSpendOrchestrator(mock_store)

        with pytest.raises(WalletNotReadyError) as exc_info:
            await orchestrator.spend_for_feature(empty_session, "link_create_oneclick")

        assert exc_info.value.code == ErrorCode.WALLET_NOT_READY
        mock_store.spend.assert_not_called()

    async def test_anonymous_session_raises_wallet_not_ready(self, mock_store: AsyncMock):
        """Unauthenticated sessions are treated as not loaded."""
        orchestrator = CreditSpendOrchestrator(mock_store)

        with pytest.raises(WalletNotReadyError):
            await orchestrator.spend_for_feature(WalletSession(None), "link_create_oneclick")


class TestProGate:
    """Pro-gated features are refused locally for non-Pro wallets."""

    async def test_free_plan_pro_feature_raises_without_store_call(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """Free plan + Pro feature gives PRO_REQUIRED and no store call."""
        orchestrator = CreditSpendOrchestrator(mock_store)

        with pytest.raises(ProRequiredError) as exc_info:
            await orchestrator.spend_for_feature(loaded_session, "meta_launch_campaign")

        assert exc_info.value.code == ErrorCode.PRO_REQUIRED
        assert exc_info.value.plan == "free"
        assert "Ghoste Pro required" in str(exc_info.value)
        mock_store.spend.assert_not_called()

    async def test_plan_string_pro_grants_access(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        """plan == "pro" suffices even when is_pro is False."""
        profile = replace(free_profile, plan="pro", is_pro=False)
        mock_store.spend.return_value = replace(profile, credits_manager=2000)
        session = WalletSession(user, ProfileState(profile=profile))

        result = await CreditSpendOrchestrator(mock_store).spend_for_feature(
            session, "meta_launch_campaign"
        )

        assert result.ok is True
        mock_store.spend.assert_awaited_once()

    async def test_is_pro_flag_grants_access(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        """is_pro True suffices even when plan says free."""
        profile = replace(free_profile, is_pro=True, plan="free")
        mock_store.spend.return_value = replace(profile, credits_manager=2000)
        session = WalletSession(user, ProfileState(profile=profile))

        result = await CreditSpendOrchestrator(mock_store).spend_for_feature(
            session, "meta_launch_campaign"
        )

        assert result.ok is True

    async def test_null_plan_reported_as_free(
        self, mock_store: AsyncMock, user: SessionUser, free_profile: WalletProfile
    ):
        """A wallet with no plan is refused as "free"."""
        session = WalletSession(user, ProfileState(profile=replace(free_profile, plan=None)))

        with pytest.raises(ProRequiredError) as exc_info:
            await CreditSpendOrchestrator(mock_store).spend_for_feature(
                session, "meta_launch_campaign"
            )

        assert exc_info.value.plan == "free"


class TestStoreSpend:
    """The store performs the spend and its row becomes the cache."""

    async def test_spend_call_arguments(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """The store receives user, pool, amount and feature key."""
        mock_store.spend.return_value = replace(loaded_session.profile, credits_tools=80)

        await CreditSpendOrchestrator(mock_store).spend_for_feature(
            loaded_session, "link_create_oneclick"
        )

        mock_store.spend.assert_awaited_once_with(
            SpendCall(
                user_id="user-123",
                pool=CreditPool.TOOLS,
                amount=20,
                feature_key="link_create_oneclick",
            )
        )

    async def test_server_balance_replaces_cache(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """Tools 100, spend 20, server returns 80: cache shows 80."""
        server_row = replace(loaded_session.profile, credits_tools=80)
        mock_store.spend.return_value = server_row

        result = await CreditSpendOrchestrator(mock_store).spend_for_feature(
            loaded_session, "link_create_oneclick"
        )

        assert result.ok is True
        assert result.balance == server_row
        assert loaded_session.profile == server_row
        assert loaded_session.profile.credits_tools == 80

    async def test_server_echo_taken_verbatim(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """A server value that is not 100 - 20 is still what the cache shows."""
        server_row = replace(loaded_session.profile, credits_tools=37, credits_manager=1)
        mock_store.spend.return_value = server_row

        await CreditSpendOrchestrator(mock_store).spend_for_feature(
            loaded_session, "link_create_oneclick"
        )

        assert loaded_session.profile.credits_tools == 37
        assert loaded_session.profile.credits_manager == 1

    async def test_result_carries_cost(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """SpendResult includes the cost that was charged."""
        mock_store.spend.return_value = replace(loaded_session.profile, credits_tools=80)

        result = await CreditSpendOrchestrator(mock_store).spend_for_feature(
            loaded_session, "link_create_oneclick"
        )

        assert result.cost is not None
        assert result.cost.amount == 20
        assert result.skipped is False
        assert result.dev_override is False

    async def test_zero_cost_entry_still_calls_store(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """Priced-at-zero features go through the store like any other."""
        free_cost = FeatureCost(
            feature_key="free_sample",
            pool=CreditPool.TOOLS,
            amount=0,
            requires_pro=False,
            label="Free sample",
        )
        mock_store.spend.return_value = loaded_session.profile
        orchestrator = CreditSpendOrchestrator(
            mock_store, cost_lookup=lambda key: free_cost if key == "free_sample" else None
        )

        result = await orchestrator.spend_for_feature(loaded_session, "free_sample")

        assert result.ok is True
        mock_store.spend.assert_awaited_once()


class TestStoreErrors:
    """Store errors propagate and leave the cache untouched."""

    async def test_insufficient_credits_propagates(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """INSUFFICIENT_CREDITS from the store is re-raised."""
        mock_store.spend.side_effect = InsufficientCreditsError(
            CreditPool.MANAGER, 1500, server_message="Insufficient manager credits"
        )
        before = loaded_session.state

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await CreditSpendOrchestrator(mock_store).spend_for_feature(
                loaded_session, "ai_recommendations"
            )

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_CREDITS
        assert loaded_session.state is before

    async def test_rejection_forwards_server_code(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """Other rejections carry the server code and message."""
        mock_store.spend.side_effect = SpendRejectedError("P0001", "wallet locked")

        with pytest.raises(SpendRejectedError) as exc_info:
            await CreditSpendOrchestrator(mock_store).spend_for_feature(
                loaded_session, "link_create_oneclick"
            )

        assert exc_info.value.server_code == "P0001"
        assert exc_info.value.message == "wallet locked"

    async def test_store_outage_propagates(
        self, mock_store: AsyncMock, loaded_session: WalletSession
    ):
        """Transport errors are not retried."""
        mock_store.spend.side_effect = WalletStoreError("spend", "connection refused")

        with pytest.raises(WalletStoreError):
            await CreditSpendOrchestrator(mock_store).spend_for_feature(
                loaded_session, "link_create_oneclick"
            )

        assert mock_store.spend.await_count == 1


class TestWalletSession:
    """Tests for WalletSession cache handling."""

    async def test_refresh_loads_through_reader(self, user: SessionUser, free_profile):
        """refresh() stores the reader's result."""
        reader = AsyncMock()
        reader.load = AsyncMock(return_value=ProfileState(profile=free_profile))
        session = WalletSession(user)

        state = await session.refresh(reader)

        reader.load.assert_awaited_once_with("user-123")
        assert session.profile == free_profile
        assert state.is_ready

    async def test_refresh_anonymous_passes_none(self):
        """Anonymous sessions load with user_id None."""
        reader = AsyncMock()
        reader.load = AsyncMock(return_value=ProfileState())

        await WalletSession(None).refresh(reader)

        reader.load.assert_awaited_once_with(None)

    def test_apply_server_balance_clears_error(self, user: SessionUser, free_profile):
        """A confirmed server row replaces any prior state."""
        session = WalletSession(user)
        session.apply_server_balance(free_profile)

        assert session.state == ProfileState(profile=free_profile)


class TestCanAfford:
    """Local affordability check, no store involved."""

    def test_unmetered_is_always_affordable(self):
        assert can_afford(None, "not_a_priced_feature") is True

    def test_no_wallet_cannot_afford(self):
        assert can_afford(None, "link_create_oneclick") is False

    def test_balance_covers_cost(self, free_profile: WalletProfile):
        """100 tools credits cover the 100-credit smart link exactly."""
        assert can_afford(free_profile, "smart_link_create") is True

    def test_balance_below_cost(self, free_profile: WalletProfile):
        """100 tools credits do not cover a 300-credit caption job."""
        assert can_afford(free_profile, "video_caption") is False

    def test_checks_the_feature_pool(self, free_profile: WalletProfile):
        """Manager credits do not count toward a tools-pool feature."""
        assert can_afford(free_profile, "studio_video_render") is False
        assert can_afford(free_profile, "ai_recommendations") is True

    def test_pro_gate(self, free_profile: WalletProfile, pro_profile: WalletProfile):
        assert can_afford(free_profile, "meta_launch_campaign") is False
        assert can_afford(replace(free_profile, plan="pro"), "meta_launch_campaign") is True
        assert can_afford(pro_profile, "meta_launch_campaign") is True

    def test_custom_cost_lookup(self, free_profile: WalletProfile):
        cost = FeatureCost(
            feature_key="x", pool=CreditPool.TOOLS, amount=101, requires_pro=False, label="X"
        )

        assert can_afford(free_profile, "x", cost_lookup=lambda key: cost) is False

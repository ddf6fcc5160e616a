"""
Credit Spend Orchestrator - gates and executes metered actions.

The orchestrator is a thin client of the wallet store:
1. Resolve the feature cost (unpriced features are free)
2. Let dev-override users through without touching the store
3. Require a loaded wallet
4. Enforce the Pro gate locally (no server round-trip)
5. Ask the store for the atomic spend
6. Replace the cached wallet with the row the store returned

There is no local lock, retry or idempotency key: concurrent spends for one
user are serialized by the store, not here.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from structlog import get_logger

from ghoste_wallet.config import Settings
from ghoste_wallet.exceptions import ProRequiredError, WalletError, WalletNotReadyError
from ghoste_wallet.models.domain import (
    FeatureCost,
    ProfileState,
    SessionUser,
    SpendCall,
    SpendResult,
    WalletProfile,
)
from ghoste_wallet.observability import metrics
from ghoste_wallet.observability.tracing import trace_operation
from ghoste_wallet.services.pricing import get_feature_cost
from ghoste_wallet.services.wallet_reader import WalletProfileReader
from ghoste_wallet.services.wallet_store import WalletStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class DevOverridePolicy:
    """Allow-list of internal accounts that bypass metering entirely."""

    emails: frozenset[str] = field(default_factory=frozenset)
    user_ids: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls, emails: Iterable[str] = (), user_ids: Iterable[str] = ()
    ) -> "DevOverridePolicy":
        """Build a policy, normalizing emails to lower case."""
        return cls(
            emails=frozenset(email.strip().lower() for email in emails if email.strip()),
            user_ids=frozenset(uid.strip() for uid in user_ids if uid.strip()),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "DevOverridePolicy":
        """Policy configured for this deployment."""
        return cls.build(settings.dev_override_email_list, settings.dev_override_user_id_list)

    def allows(self, user: SessionUser | None) -> bool:
        """True when the user bypasses metering."""
        if user is None:
            return False
        if user.user_id in self.user_ids:
            return True
        return bool(user.email) and user.email.lower() in self.emails



def can_afford(
    profile: WalletProfile | None,
    feature_key: str,
    cost_lookup: Callable[[str], FeatureCost | None] = get_feature_cost,
) -> bool:
    """
    Whether a spend for feature_key would pass the local gates.

    Unmetered features are always affordable. Otherwise the wallet must be
    loaded, the Pro gate must pass and the pool must cover the amount. The
    store still has the final say when the spend is attempted.
    """
    cost = cost_lookup(feature_key)
    if cost is None:
        return True
    if profile is None:
        return False
    if cost.requires_pro and not profile.has_pro:
        return False
    return profile.balance(cost.pool) >= cost.amount

class WalletSession:
    """
    Cached wallet state for one user.

    Written only by refresh() (reader load) and apply_server_balance()
    (after a confirmed spend or transfer).
    """

    def __init__(self, user: SessionUser | None, state: ProfileState | None = None) -> None:
        self.user = user
        self.state = state or ProfileState()

    @property
    def profile(self) -> WalletProfile | None:
        """Cached wallet profile, if loaded."""
        return self.state.profile

    async def refresh(self, reader: WalletProfileReader) -> ProfileState:
        """Load the wallet through the reader and cache the result."""
        self.state = await reader.load(self.user.user_id if self.user else None)
        return self.state

    def apply_server_balance(self, profile: WalletProfile) -> None:
        """Replace the cache with the authoritative row returned by the store."""
        self.state = ProfileState(profile=profile)


class CreditSpendOrchestrator:
    """Spend credits for metered features."""

    def __init__(
        self,
        store: WalletStore,
        dev_overrides: DevOverridePolicy | None = None,
        cost_lookup: Callable[[str], FeatureCost | None] = get_feature_cost,
    ) -> None:
        self.store = store
        self.dev_overrides = dev_overrides or DevOverridePolicy()
        self.cost_lookup = cost_lookup

    async def spend_for_feature(self, session: WalletSession, feature_key: str) -> SpendResult:
        """
        Gate and execute a metered action.

        Raises:
            WalletNotReadyError: No wallet loaded in the session yet
            ProRequiredError: Feature requires Pro and the user is not Pro
            InsufficientCreditsError: The store refused the spend for lack of credits
            SpendRejectedError: The store refused the spend for another reason
            WalletStoreError: The store could not be reached
        """
        cost = self.cost_lookup(feature_key)
        if cost is None:
            logger.debug("wallet_spend_skipped_unmetered", feature_key=feature_key)
            metrics.record_spend("skipped", None, 0)
            return SpendResult(ok=True, feature_key=feature_key, skipped=True)

        user = session.user
        if user is not None and self.dev_overrides.allows(user):
            logger.info(
                "wallet_spend_dev_override",
                feature_key=feature_key,
                user_id=user.user_id,
                amount=cost.amount,
            )
            metrics.record_spend("dev_override", cost.pool.value, 0)
            return SpendResult(
                ok=True,
                feature_key=feature_key,
                dev_override=True,
                cost=cost,
                balance=session.profile or WalletProfile.placeholder(user.user_id),
            )

        profile = session.profile
        if profile is None:
            metrics.record_spend("wallet_not_ready", cost.pool.value, 0)
            raise WalletNotReadyError(feature_key)

        if cost.requires_pro and not profile.has_pro:
            logger.info(
                "wallet_spend_pro_required",
                feature_key=feature_key,
                user_id=profile.user_id,
                plan=profile.plan_name,
            )
            metrics.record_spend("pro_required", cost.pool.value, 0)
            raise ProRequiredError(feature_key, profile.plan_name)

        call = SpendCall(
            user_id=profile.user_id,
            pool=cost.pool,
            amount=cost.amount,
            feature_key=feature_key,
        )
        with trace_operation(
            "wallet_spend", feature_key=feature_key, pool=cost.pool.value, amount=cost.amount
        ):
            try:
                updated = await self.store.spend(call)
            except WalletError as e:
                logger.warning(
                    "wallet_spend_failed",
                    feature_key=feature_key,
                    user_id=profile.user_id,
                    error_code=e.code.value,
                    error=str(e),
                )
                metrics.record_spend(e.code.value.lower(), cost.pool.value, 0)
                raise

        session.apply_server_balance(updated)

        logger.info(
            "wallet_spend_succeeded",
            feature_key=feature_key,
            user_id=profile.user_id,
            pool=cost.pool.value,
            amount=cost.amount,
            balance_after=updated.balance(cost.pool),
        )
        metrics.record_spend("success", cost.pool.value, cost.amount)

        return SpendResult(ok=True, feature_key=feature_key, cost=cost, balance=updated)

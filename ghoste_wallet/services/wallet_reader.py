"""
Wallet Profile Reader - loads the current user's wallet, creating it on first access.
"""

from structlog import get_logger

from ghoste_wallet.config import Settings
from ghoste_wallet.exceptions import WalletError, WalletLoadError
from ghoste_wallet.models.domain import ProfileState, WalletDefaults
from ghoste_wallet.observability import metrics
from ghoste_wallet.services.wallet_store import WalletStore

logger = get_logger(__name__)


def defaults_from_settings(settings: Settings) -> WalletDefaults:
    """Wallet defaults configured for this deployment."""
    return WalletDefaults(
        is_pro=False,
        plan=settings.default_plan,
        credits_manager=settings.default_credits_manager,
        credits_tools=settings.default_credits_tools,
    )


class WalletProfileReader:
    """
    Produces ProfileState for a user.

    Failures are reported on the returned state, never raised, and never retried.
    """

    def __init__(self, store: WalletStore, defaults: WalletDefaults | None = None) -> None:
        self.store = store
        self.defaults = defaults or WalletDefaults()

    async def load(self, user_id: str | None) -> ProfileState:
        """Load (or lazily create) the wallet for user_id; None means unauthenticated."""
        if not user_id:
            return ProfileState()

        try:
            profile = await self.store.fetch_profile(user_id)
            created = False
            if profile is None:
                profile = await self.store.create_profile(user_id, self.defaults)
                created = True
        except WalletError as e:
            logger.warning(
                "wallet_load_failed",
                user_id=user_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            metrics.record_wallet_load("error")
            return ProfileState(error=WalletLoadError(user_id, str(e)))

        if created:
            metrics.wallet_profiles_created_total.inc()
            logger.info(
                "wallet_profile_created",
                user_id=user_id,
                plan=profile.plan_name,
                credits_manager=profile.credits_manager,
                credits_tools=profile.credits_tools,
            )
        metrics.record_wallet_load("created" if created else "loaded")

        return ProfileState(profile=profile)

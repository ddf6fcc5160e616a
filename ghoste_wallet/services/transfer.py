"""
Pool Transfer - move credits between a user's manager and tools pools.

Same division of responsibility as spending: the store performs the atomic
transfer and the session cache takes whatever row the store returns.
"""

from structlog import get_logger

from ghoste_wallet.exceptions import InvalidTransferError, WalletError, WalletNotReadyError
from ghoste_wallet.models.api import TransferDirection
from ghoste_wallet.models.domain import TransferCall, WalletProfile
from ghoste_wallet.observability import metrics
from ghoste_wallet.services.spend import WalletSession
from ghoste_wallet.services.wallet_store import WalletStore

logger = get_logger(__name__)


class WalletTransferService:
    """Transfer credits between pools."""

    def __init__(self, store: WalletStore) -> None:
        self.store = store

    async def transfer(
        self, session: WalletSession, direction: TransferDirection, amount: int
    ) -> WalletProfile:
        """
        Move `amount` credits in `direction`.

        Raises:
            InvalidTransferError: Amount is not a positive integer
            WalletNotReadyError: No wallet loaded in the session yet
            InsufficientCreditsError: Source pool cannot cover the amount
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidTransferError(f"Amount must be a positive integer, got {amount!r}")

        profile = session.profile
        if profile is None:
            raise WalletNotReadyError(f"transfer:{direction.value}")

        call = TransferCall(user_id=profile.user_id, direction=direction, amount=amount)
        try:
            updated = await self.store.transfer(call)
        except WalletError as e:
            logger.warning(
                "wallet_transfer_failed",
                user_id=profile.user_id,
                direction=direction.value,
                amount=amount,
                error_code=e.code.value,
            )
            metrics.record_transfer(direction.value, success=False)
            raise

        session.apply_server_balance(updated)
        metrics.record_transfer(direction.value, success=True)

        logger.info(
            "wallet_transfer_succeeded",
            user_id=profile.user_id,
            direction=direction.value,
            amount=amount,
            credits_manager=updated.credits_manager,
            credits_tools=updated.credits_tools,
        )
        return updated

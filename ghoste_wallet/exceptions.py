"""
Exception Classes - Strongly typed exception hierarchy.

Every wallet error carries a machine-readable ErrorCode; callers branch on the
code, never on message text.
"""

from ghoste_wallet.models.api import CreditPool, ErrorCode


class WalletError(Exception):
    """Base exception for all wallet errors."""

    code: ErrorCode = ErrorCode.WALLET_STORE_ERROR


class WalletNotReadyError(WalletError):
    """Raised when a spend is attempted before the wallet profile has loaded."""

    code = ErrorCode.WALLET_NOT_READY

    def __init__(self, feature_key: str) -> None:
        self.feature_key = feature_key
        super().__init__(f"Wallet not loaded yet; cannot spend for {feature_key}")


class ProRequiredError(WalletError):
    """Raised when a Pro-gated feature is used on a non-Pro plan."""

    code = ErrorCode.PRO_REQUIRED

    def __init__(self, feature_key: str, plan: str) -> None:
        self.feature_key = feature_key
        self.plan = plan
        super().__init__(f"Ghoste Pro required for {feature_key} (current plan: {plan})")


class InsufficientCreditsError(WalletError):
    """Raised when the server reports the pool cannot cover the amount."""

    code = ErrorCode.INSUFFICIENT_CREDITS

    def __init__(
        self,
        pool: CreditPool,
        required: int,
        balance: int | None = None,
        server_message: str | None = None,
    ) -> None:
        self.pool = pool
        self.required = required
        self.balance = balance
        self.server_message = server_message
        available = "unknown" if balance is None else str(balance)
        super().__init__(
            f"Insufficient {pool.value} credits. Balance: {available}, Required: {required}"
        )


class SpendRejectedError(WalletError):
    """Raised when the server rejects a spend for a reason the client does not model."""

    code = ErrorCode.SPEND_REJECTED

    def __init__(self, server_code: str | None, message: str) -> None:
        self.server_code = server_code
        self.message = message
        super().__init__(f"Spend rejected ({server_code or 'no code'}): {message}")


class InvalidTransferError(WalletError):
    """Raised when a pool transfer request is malformed."""

    code = ErrorCode.INVALID_TRANSFER

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid transfer: {message}")


class WalletLoadError(WalletError):
    """Raised (or surfaced on ProfileState) when a wallet cannot be read or created."""

    code = ErrorCode.WALLET_LOAD_FAILED

    def __init__(self, user_id: str, reason: str) -> None:
        self.user_id = user_id
        self.reason = reason
        super().__init__(f"Failed to load wallet for {user_id}: {reason}")


class WalletStoreError(WalletError):
    """Raised when the store cannot be reached or returns an unexpected response."""

    code = ErrorCode.WALLET_STORE_ERROR

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"Wallet store error during {operation}: {message}")


class AuthenticationError(WalletError):
    """Raised when a bearer token cannot be resolved to a user."""

    code = ErrorCode.UNAUTHENTICATED

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")

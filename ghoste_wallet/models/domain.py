"""
Domain Models - Internal business logic models using dataclasses.

All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from ghoste_wallet.models.api import ActionType, CreditPool, TransferDirection

if TYPE_CHECKING:
    from ghoste_wallet.exceptions import WalletError


@dataclass(frozen=True)
class FeatureCost:
    """Immutable cost contract of a metered feature."""

    feature_key: str
    pool: CreditPool
    amount: int
    requires_pro: bool
    label: str

    def __post_init__(self) -> None:
        """Validate cost constraints."""
        if not self.feature_key:
            raise ValueError("feature_key cannot be empty")
        if self.amount < 0:
            raise ValueError(f"Feature cost cannot be negative: {self.amount}")


@dataclass(frozen=True)
class WalletDefaults:
    """Values written when a wallet row is created on first access."""

    is_pro: bool = False
    plan: str = "free"
    credits_manager: int = 0
    credits_tools: int = 1000


@dataclass(frozen=True)
class WalletProfile:
    """
    Immutable wallet snapshot for one user.

    Balances are whatever the store reported; no local non-negativity check.
    """

    user_id: str
    is_pro: bool
    plan: str | None
    credits_manager: int
    credits_tools: int

    @property
    def has_pro(self) -> bool:
        """Pro entitlement: the flag OR a "pro" plan string, either suffices."""
        return self.is_pro or self.plan == "pro"

    @property
    def plan_name(self) -> str:
        """Plan name, "free" when unset."""
        return self.plan or "free"

    @property
    def total_credits(self) -> int:
        """Sum of both pools."""
        return self.credits_manager + self.credits_tools

    def balance(self, pool: CreditPool) -> int:
        """Balance of a single pool."""
        if pool is CreditPool.MANAGER:
            return self.credits_manager
        return self.credits_tools

    @classmethod
    def placeholder(cls, user_id: str) -> "WalletProfile":
        """Zero-credit stand-in used when no profile has been loaded yet."""
        return cls(
            user_id=user_id,
            is_pro=False,
            plan=None,
            credits_manager=0,
            credits_tools=0,
        )


@dataclass(frozen=True)
class ProfileState:
    """
    Result of loading a wallet.

    profile=None and error=None means "no authenticated user"; callers treat
    it exactly like "no profile".
    """

    profile: WalletProfile | None = None
    error: "WalletError | None" = None

    @property
    def is_ready(self) -> bool:
        """A profile is loaded."""
        return self.profile is not None

    @property
    def is_pro(self) -> bool:
        """Pro entitlement, False without a profile."""
        return self.profile.has_pro if self.profile else False

    @property
    def plan(self) -> str:
        """Plan name, "free" without a profile."""
        return self.profile.plan_name if self.profile else "free"


@dataclass(frozen=True)
class SessionUser:
    """Authenticated user identity."""

    user_id: str
    email: str | None = None

    def __post_init__(self) -> None:
        """Validate identity."""
        if not self.user_id:
            raise ValueError("user_id cannot be empty")


@dataclass(frozen=True)
class SpendCall:
    """Arguments of the atomic server-side spend."""

    user_id: str
    pool: CreditPool
    amount: int
    feature_key: str


@dataclass(frozen=True)
class TransferCall:
    """Arguments of the atomic server-side pool transfer."""

    user_id: str
    direction: TransferDirection
    amount: int

    def __post_init__(self) -> None:
        """Validate transfer constraints."""
        if self.amount <= 0:
            raise ValueError(f"Transfer amount must be positive: {self.amount}")


@dataclass(frozen=True)
class SpendResult:
    """Outcome of a spend attempt. Never persisted."""

    ok: bool
    feature_key: str
    skipped: bool = False
    dev_override: bool = False
    cost: FeatureCost | None = None
    balance: WalletProfile | None = None


@dataclass(frozen=True)
class WalletTransactionRecord:
    """A ledger entry as read back from the store."""

    transaction_id: str
    user_id: str
    pool: CreditPool
    credit_change: int
    action_type: ActionType
    created_at: datetime
    reference_feature: str | None = None
    balance_after: int | None = None
    correlated_group_id: str | None = None

"""
API Models - Pydantic models for request/response validation.

Also holds the enums shared by the domain, the stores and the routes.
"""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator


class CreditPool(str, Enum):
    """The two independent credit balances of a wallet."""

    MANAGER = "manager"
    TOOLS = "tools"


class TransferDirection(str, Enum):
    """Direction of a pool-to-pool transfer."""

    MANAGER_TO_TOOLS = "manager_to_tools"
    TOOLS_TO_MANAGER = "tools_to_manager"

    @property
    def source(self) -> CreditPool:
        """Pool credits leave."""
        if self is TransferDirection.MANAGER_TO_TOOLS:
            return CreditPool.MANAGER
        return CreditPool.TOOLS

    @property
    def target(self) -> CreditPool:
        """Pool credits arrive in."""
        if self is TransferDirection.MANAGER_TO_TOOLS:
            return CreditPool.TOOLS
        return CreditPool.MANAGER


class ActionType(str, Enum):
    """Ledger action type."""

    TOP_UP = "TOP_UP"
    CONSUMPTION = "CONSUMPTION"
    TRANSFER = "TRANSFER"
    REFUND = "REFUND"


class ErrorCode(str, Enum):
    """Client-observable wallet error codes."""

    WALLET_NOT_READY = "WALLET_NOT_READY"
    PRO_REQUIRED = "PRO_REQUIRED"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    SPEND_REJECTED = "SPEND_REJECTED"
    INVALID_TRANSFER = "INVALID_TRANSFER"
    WALLET_LOAD_FAILED = "WALLET_LOAD_FAILED"
    WALLET_STORE_ERROR = "WALLET_STORE_ERROR"
    UNAUTHENTICATED = "UNAUTHENTICATED"


# ============================================================================
# Store Row Models
# ============================================================================


class WalletRowPayload(BaseModel):
    """A wallet row as returned by PostgREST (table select or RPC)."""

    id: str = Field(..., min_length=1)
    is_pro: bool | None = False
    plan: str | None = None
    credits_manager: int | None = 0
    credits_tools: int | None = 0


class TransactionRowPayload(BaseModel):
    """A wallet_transactions row as returned by PostgREST."""

    transaction_id: str = Field(..., validation_alias=AliasChoices("transaction_id", "id"))
    user_id: str = Field(..., min_length=1)
    budget_type: CreditPool
    credit_change: int
    action_type: ActionType
    reference_feature: str | None = None
    balance_after: int | None = None
    correlated_group_id: str | None = None
    created_at: datetime = Field(..., validation_alias=AliasChoices("created_at", "timestamp"))

    @field_validator("budget_type", mode="before")
    @classmethod
    def lower_budget_type(cls, v: object) -> object:
        # Older rows store the pool upper-case (MANAGER, TOOLS)
        return v.lower() if isinstance(v, str) else v

    @field_validator("action_type", mode="before")
    @classmethod
    def upper_action_type(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


class StoreErrorPayload(BaseModel):
    """PostgREST JSON error body."""

    code: str | None = None
    message: str | None = None
    details: str | None = None
    hint: str | None = None


class AuthUserPayload(BaseModel):
    """Supabase Auth user object (GET /auth/v1/user), only the fields we use."""

    id: str = Field(..., min_length=1)
    email: str | None = None


# ============================================================================
# Pricing Models
# ============================================================================


class FeatureCostResponse(BaseModel):
    """Single entry of GET /v1/pricing."""

    feature_key: str
    pool: CreditPool
    amount: int
    requires_pro: bool
    label: str


class CostBadgeResponse(BaseModel):
    """GET /v1/pricing/{feature_key}/badge response."""

    feature_key: str
    label: str
    pool: CreditPool
    amount: int
    text: str
    pro: bool
    rendered: str


# ============================================================================
# Wallet Models
# ============================================================================


class WalletProfileResponse(BaseModel):
    """Wallet row as exposed to clients."""

    user_id: str
    is_pro: bool
    plan: str
    credits_manager: int
    credits_tools: int
    total_credits: int


class ErrorResponse(BaseModel):
    """Structured error detail."""

    code: ErrorCode
    message: str


class WalletStateResponse(BaseModel):
    """GET /v1/wallet response - profile is null when unauthenticated."""

    profile: WalletProfileResponse | None = None
    is_pro: bool = False
    plan: str = "free"
    error: ErrorResponse | None = None


class SpendRequest(BaseModel):
    """POST /v1/wallet/spend request body."""

    feature_key: str = Field(..., min_length=1, max_length=100)


class SpendResponse(BaseModel):
    """POST /v1/wallet/spend response."""

    ok: bool
    feature_key: str
    skipped: bool = False
    dev_override: bool = False
    cost: FeatureCostResponse | None = None
    balance: WalletProfileResponse | None = None


class TransferRequest(BaseModel):
    """POST /v1/wallet/transfer request body."""

    direction: TransferDirection
    amount: int


class HealthResponse(BaseModel):
    """GET /health response."""

    status: Literal["healthy", "unhealthy"]
    backend: str
    timestamp: str


class TransactionItem(BaseModel):
    """One ledger entry of GET /v1/wallet/transactions."""

    transaction_id: str
    pool: CreditPool
    credit_change: int
    action_type: ActionType
    reference_feature: str | None = None
    balance_after: int | None = None
    correlated_group_id: str | None = None
    created_at: datetime


class TransactionListResponse(BaseModel):
    """GET /v1/wallet/transactions response, newest first."""

    transactions: list[TransactionItem]
    count: int


class AffordabilityResponse(BaseModel):
    """GET /v1/wallet/can-afford/{feature_key} response."""

    feature_key: str
    affordable: bool
    dev_override: bool = False
    cost: FeatureCostResponse | None = None

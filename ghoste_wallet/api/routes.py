"""
API Routes - FastAPI endpoints for pricing and wallet operations.

All requests/responses use Pydantic models. Wallet errors are translated to
HTTP errors with a structured {"code", "message"} detail.
"""

from datetime import UTC, datetime
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import text
from structlog import get_logger

from ghoste_wallet.api.dependencies import (
    get_current_user,
    get_dev_override_policy,
    get_optional_user,
    get_wallet_defaults,
    get_wallet_store,
)
from ghoste_wallet.config import settings
from ghoste_wallet.db.session import get_session
from ghoste_wallet.exceptions import WalletError
from ghoste_wallet.models.api import (
    AffordabilityResponse,
    CostBadgeResponse,
    CreditPool,
    ErrorCode,
    ErrorResponse,
    FeatureCostResponse,
    HealthResponse,
    SpendRequest,
    SpendResponse,
    TransactionItem,
    TransactionListResponse,
    TransferRequest,
    WalletProfileResponse,
    WalletStateResponse,
)
from ghoste_wallet.models.domain import (
    FeatureCost,
    ProfileState,
    SessionUser,
    WalletDefaults,
    WalletProfile,
    WalletTransactionRecord,
)
from ghoste_wallet.services.cost_display import build_cost_badge
from ghoste_wallet.services.pricing import get_feature_cost, list_feature_costs
from ghoste_wallet.services.spend import (
    CreditSpendOrchestrator,
    DevOverridePolicy,
    WalletSession,
    can_afford,
)
from ghoste_wallet.services.transfer import WalletTransferService
from ghoste_wallet.services.wallet_reader import WalletProfileReader
from ghoste_wallet.services.wallet_store import WalletStore

logger = get_logger(__name__)

router = APIRouter()

ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.WALLET_NOT_READY: status.HTTP_409_CONFLICT,
    ErrorCode.PRO_REQUIRED: status.HTTP_403_FORBIDDEN,
    ErrorCode.INSUFFICIENT_CREDITS: status.HTTP_402_PAYMENT_REQUIRED,
    ErrorCode.SPEND_REJECTED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_TRANSFER: status.HTTP_400_BAD_REQUEST,
    ErrorCode.WALLET_LOAD_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.WALLET_STORE_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.UNAUTHENTICATED: status.HTTP_401_UNAUTHORIZED,
}


def raise_http_error(error: WalletError) -> NoReturn:
    """Translate a wallet error into an HTTPException."""
    raise HTTPException(
        status_code=ERROR_STATUS.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=ErrorResponse(code=error.code, message=str(error)).model_dump(mode="json"),
    ) from error


def _cost_response(cost: FeatureCost) -> FeatureCostResponse:
    return FeatureCostResponse(
        feature_key=cost.feature_key,
        pool=cost.pool,
        amount=cost.amount,
        requires_pro=cost.requires_pro,
        label=cost.label,
    )


def _profile_response(profile: WalletProfile) -> WalletProfileResponse:
    return WalletProfileResponse(
        user_id=profile.user_id,
        is_pro=profile.has_pro,
        plan=profile.plan_name,
        credits_manager=profile.credits_manager,
        credits_tools=profile.credits_tools,
        total_credits=profile.total_credits,
    )


def _transaction_item(record: WalletTransactionRecord) -> TransactionItem:
    return TransactionItem(
        transaction_id=record.transaction_id,
        pool=record.pool,
        credit_change=record.credit_change,
        action_type=record.action_type,
        reference_feature=record.reference_feature,
        balance_after=record.balance_after,
        correlated_group_id=record.correlated_group_id,
        created_at=record.created_at,
    )


def _state_response(state: ProfileState) -> WalletStateResponse:
    error = None
    if state.error is not None:
        error = ErrorResponse(code=state.error.code, message=str(state.error))
    return WalletStateResponse(
        profile=_profile_response(state.profile) if state.profile else None,
        is_pro=state.is_pro,
        plan=state.plan,
        error=error,
    )


# ============================================================================
# Health
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    With the postgres backend the database is checked; the Supabase backend is
    reported healthy without a round-trip.
    """
    if settings.wallet_backend == "postgres":
        try:
            async with get_session() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("health_check_failed", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Database unavailable",
            ) from e

    return HealthResponse(
        status="healthy",
        backend=settings.wallet_backend,
        timestamp=datetime.now(UTC).isoformat(),
    )


# ============================================================================
# Pricing
# ============================================================================


@router.get("/v1/pricing", response_model=list[FeatureCostResponse])
async def list_pricing() -> list[FeatureCostResponse]:
    """All metered features, sorted by key."""
    return [_cost_response(cost) for cost in list_feature_costs()]


@router.get(
    "/v1/pricing/{feature_key}/badge",
    response_model=CostBadgeResponse,
    responses={204: {"description": "Feature is unmetered"}},
)
async def get_cost_badge(feature_key: str) -> CostBadgeResponse | Response:
    """Cost badge for a feature; 204 when the feature is free."""
    badge = build_cost_badge(feature_key)
    if badge is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return CostBadgeResponse(
        feature_key=badge.feature_key,
        label=badge.label,
        pool=badge.pool,
        amount=badge.amount,
        text=badge.text,
        pro=badge.pro,
        rendered=badge.render(),
    )


# ============================================================================
# Wallet
# ============================================================================


@router.get("/v1/wallet", response_model=WalletStateResponse)
async def get_wallet(
    user: SessionUser | None = Depends(get_optional_user),
    store: WalletStore = Depends(get_wallet_store),
    defaults: WalletDefaults = Depends(get_wallet_defaults),
) -> WalletStateResponse:
    """
    Current user's wallet, created with defaults on first access.

    Unauthenticated requests get a null profile. Load failures are reported
    in the error field rather than as an HTTP error.
    """
    reader = WalletProfileReader(store, defaults)
    state = await reader.load(user.user_id if user else None)
    return _state_response(state)


@router.post("/v1/wallet/spend", response_model=SpendResponse)
async def spend_for_feature(
    request: SpendRequest,
    user: SessionUser = Depends(get_current_user),
    store: WalletStore = Depends(get_wallet_store),
    defaults: WalletDefaults = Depends(get_wallet_defaults),
    dev_overrides: DevOverridePolicy = Depends(get_dev_override_policy),
) -> SpendResponse:
    """
    Spend credits for a metered feature.

    Errors:
        409 WALLET_NOT_READY, 403 PRO_REQUIRED, 402 INSUFFICIENT_CREDITS,
        400 SPEND_REJECTED, 502 WALLET_STORE_ERROR
    """
    session = WalletSession(user)
    await session.refresh(WalletProfileReader(store, defaults))

    orchestrator = CreditSpendOrchestrator(store, dev_overrides)
    try:
        result = await orchestrator.spend_for_feature(session, request.feature_key)
    except WalletError as e:
        raise_http_error(e)

    return SpendResponse(
        ok=result.ok,
        feature_key=result.feature_key,
        skipped=result.skipped,
        dev_override=result.dev_override,
        cost=_cost_response(result.cost) if result.cost else None,
        balance=_profile_response(result.balance) if result.balance else None,
    )


@router.post("/v1/wallet/transfer", response_model=WalletStateResponse)
async def transfer_credits(
    request: TransferRequest,
    user: SessionUser = Depends(get_current_user),
    store: WalletStore = Depends(get_wallet_store),
    defaults: WalletDefaults = Depends(get_wallet_defaults),
) -> WalletStateResponse:
    """
    Move credits between the manager and tools pools.

    Errors:
        400 INVALID_TRANSFER, 409 WALLET_NOT_READY, 402 INSUFFICIENT_CREDITS,
        502 WALLET_STORE_ERROR
    """
    session = WalletSession(user)
    await session.refresh(WalletProfileReader(store, defaults))

    service = WalletTransferService(store)
    try:
        await service.transfer(session, request.direction, request.amount)
    except WalletError as e:
        raise_http_error(e)

    return _state_response(session.state)


@router.get("/v1/wallet/transactions", response_model=TransactionListResponse)
async def list_transactions(
    limit: int = Query(50, ge=1, le=200),
    pool: CreditPool | None = None,
    user: SessionUser = Depends(get_current_user),
    store: WalletStore = Depends(get_wallet_store),
) -> TransactionListResponse:
    """Ledger entries for the current user, newest first."""
    try:
        records = await store.list_transactions(user.user_id, limit=limit, pool=pool)
    except WalletError as e:
        raise_http_error(e)

    items = [_transaction_item(record) for record in records]
    return TransactionListResponse(transactions=items, count=len(items))


@router.get("/v1/wallet/can-afford/{feature_key}", response_model=AffordabilityResponse)
async def check_affordability(
    feature_key: str,
    user: SessionUser = Depends(get_current_user),
    store: WalletStore = Depends(get_wallet_store),
    defaults: WalletDefaults = Depends(get_wallet_defaults),
    dev_overrides: DevOverridePolicy = Depends(get_dev_override_policy),
) -> AffordabilityResponse:
    """
    Whether a spend for feature_key would currently pass the local gates.

    Nothing is spent. Dev-override users can always afford.
    """
    cost = get_feature_cost(feature_key)
    cost_response = _cost_response(cost) if cost else None

    if dev_overrides.allows(user):
        return AffordabilityResponse(
            feature_key=feature_key, affordable=True, dev_override=True, cost=cost_response
        )

    state = await WalletProfileReader(store, defaults).load(user.user_id)
    return AffordabilityResponse(
        feature_key=feature_key,
        affordable=can_afford(state.profile, feature_key),
        cost=cost_response,
    )

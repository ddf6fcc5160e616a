"""
Cost Display - presentational rendering of feature costs.

Pure functions over the pricing table: no state, no I/O. An unpriced feature
renders as nothing.
"""

from dataclasses import dataclass

from ghoste_wallet.models.api import CreditPool
from ghoste_wallet.services.pricing import get_feature_cost

PRO_MARKER = "PRO"

_POOL_NAMES: dict[CreditPool, str] = {
    CreditPool.MANAGER: "Manager",
    CreditPool.TOOLS: "Tools",
}

_POOL_DESCRIPTIONS: dict[CreditPool, str] = {
    CreditPool.MANAGER: "Manager Budget (High-cost strategic actions)",
    CreditPool.TOOLS: "Tools Budget (Utility & rendering actions)",
}


@dataclass(frozen=True)
class CostBadge:
    """Display model of a feature's price."""

    feature_key: str
    label: str
    pool: CreditPool
    amount: int
    text: str
    pro: bool

    def render(self) -> str:
        """Single-line text, e.g. "20 Tools credits" or "3,000 Manager credits · PRO"."""
        if self.pro:
            return f"{self.text} · {PRO_MARKER}"
        return self.text


def format_credits(amount: int) -> str:
    """Format a credit amount, e.g. "1,234 credits" or "1 credit"."""
    return f"{amount:,} credit{'' if amount == 1 else 's'}"


def pool_description(pool: CreditPool) -> str:
    """Human-readable description of a pool."""
    return _POOL_DESCRIPTIONS[pool]


def build_cost_badge(feature_key: str) -> CostBadge | None:
    """Badge for a feature, or None when the feature is unmetered."""
    cost = get_feature_cost(feature_key)
    if cost is None:
        return None

    unit = "credit" if cost.amount == 1 else "credits"
    return CostBadge(
        feature_key=cost.feature_key,
        label=cost.label,
        pool=cost.pool,
        amount=cost.amount,
        text=f"{cost.amount:,} {_POOL_NAMES[cost.pool]} {unit}",
        pro=cost.requires_pro,
    )


def render_cost_badge(feature_key: str) -> str | None:
    """Rendered badge text, or None when there is nothing to show."""
    badge = build_cost_badge(feature_key)
    return badge.render() if badge else None

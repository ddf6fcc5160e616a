"""
Feature Pricing Table - single source of truth for metered feature costs.

A feature missing from the table is unmetered: lookups return None and
callers let the action proceed.
"""

from ghoste_wallet.models.api import CreditPool
from ghoste_wallet.models.domain import FeatureCost


def _cost(
    feature_key: str,
    pool: CreditPool,
    amount: int,
    label: str,
    requires_pro: bool = False,
) -> FeatureCost:
    return FeatureCost(
        feature_key=feature_key,
        pool=pool,
        amount=amount,
        requires_pro=requires_pro,
        label=label,
    )


_MANAGER = CreditPool.MANAGER
_TOOLS = CreditPool.TOOLS

FEATURE_COSTS: dict[str, FeatureCost] = {
    cost.feature_key: cost
    for cost in (
        # Manager pool - high-cost strategic actions
        _cost("meta_launch_campaign", _MANAGER, 3000, "Launch Meta ad campaign", True),
        _cost("dynamic_ad_engine", _MANAGER, 2000, "Dynamic ad engine", True),
        _cost("viral_lead_setup", _MANAGER, 2000, "Viral lead setup"),
        _cost("ai_recommendations", _MANAGER, 1500, "AI recommendations"),
        _cost("split_negotiation", _MANAGER, 500, "Split negotiation"),
        _cost("email_campaign_base", _MANAGER, 100, "Email campaign"),
        # Tools pool - utility and rendering actions
        _cost("studio_video_render", _TOOLS, 1500, "Studio video render"),
        _cost("cover_art_generate", _TOOLS, 800, "Cover art generation"),
        _cost("studio_audio_render", _TOOLS, 800, "Studio audio render"),
        _cost("studio_image_render", _TOOLS, 500, "Studio image render"),
        _cost("ai_lyric_generation", _TOOLS, 400, "AI lyric generation"),
        _cost("video_caption", _TOOLS, 300, "Video captions"),
        _cost("smart_link_create", _TOOLS, 100, "Smart link"),
        _cost("presave_link", _TOOLS, 100, "Pre-save link"),
        _cost("email_capture_link", _TOOLS, 50, "Email capture link"),
        _cost("fan_broadcast_sms", _TOOLS, 50, "Fan SMS broadcast"),
        _cost("link_create_oneclick", _TOOLS, 20, "One-click link"),
    )
}


def get_feature_cost(feature_key: str) -> FeatureCost | None:
    """Cost of a feature, or None when the feature is unmetered."""
    return FEATURE_COSTS.get(feature_key)


def list_feature_costs() -> list[FeatureCost]:
    """All priced features, ordered by key."""
    return sorted(FEATURE_COSTS.values(), key=lambda cost: cost.feature_key)

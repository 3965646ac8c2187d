"""Plan tier → clustering threshold policy."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from mentionlens.models import Platform, PlanTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThresholdPolicy:
    tier: PlanTier
    min_keyword_occurrence: int
    min_results_per_topic: int
    require_multiple_platforms: bool
    use_ai_fallback: bool


_POLICIES: dict[PlanTier, ThresholdPolicy] = {
    PlanTier.FREE: ThresholdPolicy(
        tier=PlanTier.FREE,
        min_keyword_occurrence=2,
        min_results_per_topic=3,
        require_multiple_platforms=False,
        use_ai_fallback=False,
    ),
    PlanTier.PRO: ThresholdPolicy(
        tier=PlanTier.PRO,
        min_keyword_occurrence=2,
        min_results_per_topic=2,
        require_multiple_platforms=True,
        use_ai_fallback=True,
    ),
    PlanTier.ENTERPRISE: ThresholdPolicy(
        tier=PlanTier.ENTERPRISE,
        min_keyword_occurrence=1,
        min_results_per_topic=2,
        require_multiple_platforms=True,
        use_ai_fallback=True,
    ),
}

# Platforms each tier may monitor; free is Reddit only.
_PLAN_PLATFORMS: dict[PlanTier, frozenset[Platform]] = {
    PlanTier.FREE: frozenset({Platform.REDDIT}),
    PlanTier.PRO: frozenset(Platform),
    PlanTier.ENTERPRISE: frozenset(Platform),
}


def parse_tier(value: PlanTier | str | None) -> PlanTier:
    """Coerce *value* to a PlanTier; anything unrecognised becomes FREE."""
    if isinstance(value, PlanTier):
        return value
    try:
        return PlanTier(str(value).strip().lower())
    except ValueError:
        logger.warning("Unknown plan tier %r; using the free policy.", value)
        return PlanTier.FREE


def resolve_policy(tier: PlanTier | str | None) -> ThresholdPolicy:
    return _POLICIES[parse_tier(tier)]


def can_have_multiple_platforms(tier: PlanTier | str | None) -> bool:
    return len(_PLAN_PLATFORMS[parse_tier(tier)]) > 1

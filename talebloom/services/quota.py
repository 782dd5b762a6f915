"""
Quota Gate - story ceilings per subscription tier
"""
from dataclasses import dataclass
from typing import Dict, Optional

from talebloom.config import Settings
from talebloom.models.user import SubscriptionTier, SubscriptionStatus

# Statuses under which a paid tier is honoured
PAID_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIALING)


@dataclass(frozen=True)
class TierLimits:
    free: int = 1
    plus: int = 10
    pro: int = 30
    premium: int = 100

    @classmethod
    def from_settings(cls, settings: Settings) -> "TierLimits":
        return cls(
            free=settings.story_limit_free,
            plus=settings.story_limit_plus,
            pro=settings.story_limit_pro,
            premium=settings.story_limit_premium,
        )

    def as_dict(self) -> Dict[SubscriptionTier, int]:
        return {
            SubscriptionTier.NONE: self.free,
            SubscriptionTier.PLUS: self.plus,
            SubscriptionTier.PRO: self.pro,
            SubscriptionTier.PREMIUM: self.premium,
        }


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    tier: SubscriptionTier
    limit: int
    used: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


class QuotaGate:
    """Stateless allow/deny decision for one more story."""

    def __init__(self, limits: TierLimits):
        self._limits = limits.as_dict()

    def effective_tier(
        self,
        tier: Optional[SubscriptionTier],
        status: Optional[SubscriptionStatus],
    ) -> SubscriptionTier:
        if tier is None or tier == SubscriptionTier.NONE:
            return SubscriptionTier.NONE
        if status not in PAID_STATUSES:
            return SubscriptionTier.NONE
        return SubscriptionTier(tier)

    def check(
        self,
        tier: Optional[SubscriptionTier],
        status: Optional[SubscriptionStatus],
        story_count: int,
    ) -> QuotaDecision:
        if story_count < 0:
            raise ValueError("story_count must be non-negative")

        effective = self.effective_tier(tier, status)
        limit = self._limits[effective]
        return QuotaDecision(
            allowed=story_count < limit,
            tier=effective,
            limit=limit,
            used=story_count,
        )

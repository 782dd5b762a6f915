# Models Package
from talebloom.models.user import User, SubscriptionTier, SubscriptionStatus
from talebloom.models.story import Story

__all__ = [
    "User", "SubscriptionTier", "SubscriptionStatus",
    "Story",
]

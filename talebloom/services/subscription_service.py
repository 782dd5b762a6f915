"""
Subscription Service - keeps the stored tier in step with the billing provider
Read-only against Stripe: subscription lifecycle lives elsewhere.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional, Dict, Any

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from talebloom.config import Settings
from talebloom.models.user import User, SubscriptionTier, SubscriptionStatus

logger = logging.getLogger(__name__)


def _field(obj: Any, key: str) -> Any:
    """Item lookup that works for StripeObject and plain dicts alike"""
    if obj is None:
        return None
    try:
        return obj[key]
    except (KeyError, IndexError, TypeError):
        return None


class SubscriptionService:
    """Fetches a customer's latest Stripe subscription and persists it on the user"""

    def __init__(self, settings: Settings, stripe_client: Optional[stripe.StripeClient] = None):
        self.enabled = settings.billing_enabled
        self.price_tiers: Dict[str, SubscriptionTier] = {
            price_id: tier
            for price_id, tier in (
                (settings.stripe_plus_price_id, SubscriptionTier.PLUS),
                (settings.stripe_pro_price_id, SubscriptionTier.PRO),
                (settings.stripe_premium_price_id, SubscriptionTier.PREMIUM),
            )
            if price_id
        }
        if stripe_client is None and self.enabled:
            stripe_client = stripe.StripeClient(settings.stripe_secret_key)
        self.stripe = stripe_client

    def tier_for_price(self, price_id: Optional[str]) -> SubscriptionTier:
        if not price_id:
            return SubscriptionTier.NONE
        return self.price_tiers.get(price_id, SubscriptionTier.NONE)

    async def fetch_latest(self, customer_id: str) -> Optional[Any]:
        # The Stripe client is blocking; keep it off the event loop
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            lambda: self.stripe.subscriptions.list(
                params={"customer": customer_id, "status": "all", "limit": 1}
            ),
        )
        data = _field(result, "data") or []
        return data[0] if data else None

    async def sync(self, db: AsyncSession, user: User) -> User:
        """
        Refresh tier/status from Stripe before quota checks.
        Users without a Stripe customer are on the free tier by definition.
        The result is committed right away so a request that is refused
        afterwards (quota 403, generation 502) does not roll it back.
        """
        if not self.enabled:
            return user

        if not user.stripe_customer_id:
            self.apply(user, None)
            await db.commit()
            return user

        try:
            subscription = await self.fetch_latest(user.stripe_customer_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe subscription lookup failed for user {user.id}: {e}")
            raise

        self.apply(user, subscription)
        await db.commit()
        logger.info(f"Synced subscription for user {user.id}: {user.subscription_tier.value} ({user.subscription_status})")
        return user

    def apply(self, user: User, subscription: Optional[Any]) -> None:
        if not subscription:
            user.subscription_tier = SubscriptionTier.NONE
            user.subscription_status = None
            user.subscription_price_id = None
            user.subscription_period_end = None
            return

        items = _field(_field(subscription, "items"), "data") or []
        first_item = items[0] if items else None
        price_id = _field(_field(first_item, "price"), "id")
        try:
            status = SubscriptionStatus(_field(subscription, "status"))
        except ValueError:
            # incomplete / incomplete_expired / paused carry no paid tier
            status = None

        # Newer API versions report the billing period on the item
        period_end = _field(subscription, "current_period_end") or _field(first_item, "current_period_end")
        user.subscription_tier = self.tier_for_price(price_id)
        user.subscription_status = status
        user.subscription_price_id = price_id
        user.subscription_period_end = datetime.utcfromtimestamp(period_end) if period_end else None

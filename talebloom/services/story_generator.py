"""
Story Generator - orchestrates one illustrated story request

Quota Gate -> Narrative -> one Illustration Pipeline per paragraph
(concurrent, fail-fast) -> single Story write.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, List
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from talebloom.config import Settings
from talebloom.models.story import Story
from talebloom.models.user import User
from talebloom.services.cloudinary_service import CloudinaryService
from talebloom.services.illustration_cache import IllustrationCache
from talebloom.services.illustration_service import IllustrationPipeline, IllustrationAsset
from talebloom.services.image_utils import to_data_uri
from talebloom.services.narrative_service import NarrativeService
from talebloom.services.openai_service import OpenAIService
from talebloom.services.quota import QuotaGate, QuotaDecision, TierLimits
from talebloom.services.retry import RetryPolicy
from talebloom.services.story_service import StoryService
from talebloom.services.style_templates import StyleRegistry, ArtStyle
from talebloom.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


@dataclass
class StoryRequest:
    user_id: UUID
    image_base64: str  # resized JPEG, base64
    name: str = "Maya"
    style: str = ArtStyle.GHIBLI.value
    quality: str = "standard"
    size: str = "1024x1024"
    force_refresh: bool = False


class StoryGenerator:
    """Entry point for story creation; all collaborators are injected."""

    def __init__(
        self,
        narrative: NarrativeService,
        pipeline: IllustrationPipeline,
        stories: StoryService,
        quota_gate: QuotaGate,
        subscriptions: Optional[SubscriptionService] = None,
        title: str = "A Magical Adventure",
    ):
        self.narrative = narrative
        self.pipeline = pipeline
        self.stories = stories
        self.quota_gate = quota_gate
        self.subscriptions = subscriptions
        self.title = title

    async def check_quota(self, db: AsyncSession, user: User) -> QuotaDecision:
        """Sync the subscription first so the gate never sees a stale tier."""
        if self.subscriptions is not None:
            await self.subscriptions.sync(db, user)
        count = await self.stories.count_stories_by_user(db, user.id)
        decision = self.quota_gate.check(user.subscription_tier, user.subscription_status, count)
        if not decision.allowed:
            logger.info(f"User {user.id} hit story limit {decision.limit} on tier {decision.tier.value}")
        return decision

    async def illustrate_all(self, request: StoryRequest, paragraphs: List[str]) -> List[IllustrationAsset]:
        """One illustration per paragraph, in paragraph order; first failure aborts."""
        return await asyncio.gather(*(
            self.pipeline.illustrate(
                request.image_base64,
                request.name,
                paragraph,
                request.style,
                quality=request.quality,
                size=request.size,
                force_refresh=request.force_refresh,
            )
            for paragraph in paragraphs
        ))

    async def generate(self, db: AsyncSession, request: StoryRequest) -> Story:
        paragraphs = await self.narrative.write_story(request.image_base64, request.name)
        assets = await self.illustrate_all(request, paragraphs)

        story = await self.stories.create_story(
            db,
            user_id=request.user_id,
            title=self.title,
            content=paragraphs,
            images=[asset.to_dict() for asset in assets],
            hero_image=to_data_uri(request.image_base64),
            style=request.style,
        )
        logger.info(f"Created story {story.id} for user {request.user_id} ({len(paragraphs)} pages)")
        return story

    async def close(self):
        await self.pipeline.openai.close()
        await self.pipeline.cloudinary.close()


def build_story_generator(settings: Settings) -> StoryGenerator:
    """Wire the pipeline from settings; called once from the app lifespan."""
    openai_service = OpenAIService(settings)
    cloudinary_service = CloudinaryService(settings)
    cache = IllustrationCache(ttl=settings.illustration_cache_ttl)

    pipeline = IllustrationPipeline(
        openai_service=openai_service,
        cloudinary_service=cloudinary_service,
        styles=StyleRegistry(),
        cache=cache,
        retry_policy=RetryPolicy(
            max_attempts=settings.upload_max_attempts,
            base_delay=settings.upload_base_delay,
        ),
        max_prompt_length=settings.max_prompt_length,
        max_tokens_description=settings.max_tokens_description,
        max_tokens_analysis=settings.max_tokens_analysis,
        max_tokens_prompt=settings.max_tokens_prompt,
    )

    return StoryGenerator(
        narrative=NarrativeService(openai_service, max_tokens=settings.max_tokens_story),
        pipeline=pipeline,
        stories=StoryService(),
        quota_gate=QuotaGate(TierLimits.from_settings(settings)),
        subscriptions=SubscriptionService(settings) if settings.billing_enabled else None,
        title=settings.default_story_title,
    )

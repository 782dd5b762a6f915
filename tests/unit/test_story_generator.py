"""Unit tests for talebloom.services.story_generator: orchestration and fail-fast."""

import uuid

import pytest

from talebloom.models.user import SubscriptionTier, SubscriptionStatus
from talebloom.services.errors import GenerationError, UploadError
from talebloom.services.story_generator import StoryRequest, build_story_generator

from tests.conftest import FakeCloudinary, FakeSession, STORY_TEXT


def make_request(image_base64, **overrides) -> StoryRequest:
    values = dict(user_id=uuid.uuid4(), image_base64=image_base64, name="Maya", style="ghibli")
    values.update(overrides)
    return StoryRequest(**values)


class TestGenerate:
    async def test_story_is_aligned_and_ordered(self, generator, story_store, image_base64):
        story = await generator.generate(None, make_request(image_base64))

        assert story.content == [p.strip() for p in STORY_TEXT.split("\n\n") if p.strip()]
        assert len(story.content) == len(story.images) == 3
        for paragraph, image in zip(story.content, story.images):
            assert image["caption"] == paragraph
        assert story.hero_image == f"data:image/jpeg;base64,{image_base64}"
        assert story.title == "A Magical Adventure"
        assert story.style == "ghibli"
        assert len(story_store.created) == 1

    async def test_one_failed_paragraph_aborts_without_persisting(self, generator, fake_openai, story_store, image_base64):
        fake_openai.prompt = None  # templated prompts embed the paragraph text
        fake_openai.fail_image_when = "spirit"
        with pytest.raises(GenerationError, match="content policy violation"):
            await generator.generate(None, make_request(image_base64))
        assert story_store.created == []

    async def test_upload_exhaustion_aborts_story(self, generator, pipeline, story_store, image_base64):
        pipeline.cloudinary = FakeCloudinary([RuntimeError("down")] * 20)
        with pytest.raises(UploadError):
            await generator.generate(None, make_request(image_base64))
        assert story_store.created == []

    async def test_empty_story_text_is_fatal(self, generator, fake_openai, story_store, image_base64):
        fake_openai.story = ""
        with pytest.raises(GenerationError, match="Failed to generate story"):
            await generator.generate(None, make_request(image_base64))
        assert fake_openai.calls == ["story"]
        assert story_store.created == []

    async def test_repeat_request_within_ttl_only_calls_narrative(self, generator, fake_openai, image_base64):
        first = await generator.generate(None, make_request(image_base64))
        fake_openai.calls.clear()

        second = await generator.generate(None, make_request(image_base64))

        assert fake_openai.calls == ["story"]
        assert [i["url"] for i in second.images] == [i["url"] for i in first.images]


class TestCheckQuota:
    async def test_plus_user_at_ceiling_denied(self, generator, story_store, user):
        story_store.existing_count = 10
        decision = await generator.check_quota(None, user)
        assert decision.allowed is False
        assert decision.limit == 10

    async def test_plus_user_below_ceiling_allowed(self, generator, story_store, user):
        story_store.existing_count = 9
        decision = await generator.check_quota(None, user)
        assert decision.allowed is True
        assert decision.remaining == 1

    async def test_subscription_synced_before_gate(self, generator, story_store, user):
        """A lapsed plan synced just before gating applies the free ceiling."""
        story_store.existing_count = 3

        class LapsingSync:
            async def sync(self, db, account):
                account.subscription_status = SubscriptionStatus.CANCELED
                return account

        generator.subscriptions = LapsingSync()
        decision = await generator.check_quota(FakeSession(), user)
        assert decision.tier == SubscriptionTier.NONE
        assert decision.allowed is False


class TestBuildStoryGenerator:
    def test_wires_settings(self):
        from talebloom.config import Settings

        generator = build_story_generator(Settings(
            upload_max_attempts=4,
            upload_base_delay=0.25,
            max_prompt_length=1000,
            illustration_cache_ttl=120,
            stripe_secret_key="",
        ))
        assert generator.pipeline.retry_policy.max_attempts == 4
        assert generator.pipeline.retry_policy.base_delay == 0.25
        assert generator.pipeline.max_prompt_length == 1000
        assert generator.pipeline.cache.ttl == 120
        assert generator.subscriptions is None

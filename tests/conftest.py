"""Shared pytest fixtures for Talebloom tests."""

import base64
import itertools
import uuid
from datetime import datetime
from io import BytesIO
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from talebloom.models.user import SubscriptionTier, SubscriptionStatus
from talebloom.services.illustration_cache import IllustrationCache
from talebloom.services.illustration_service import IllustrationPipeline
from talebloom.services.image_utils import resize_to_jpeg
from talebloom.services.narrative_service import NarrativeService, STORY_WRITER_PERSONA
from talebloom.services.quota import QuotaGate, TierLimits
from talebloom.services.retry import RetryPolicy
from talebloom.services.story_generator import StoryGenerator
from talebloom.services.style_templates import StyleRegistry

ANALYSIS_SYSTEM_PREFIX = "You analyse children's story passages"

STORY_TEXT = (
    "Maya found a glowing acorn under the old oak tree.\n\n"
    "A tiny forest spirit popped out and asked her for help.\n\n"
    "Together they flew over the hills on a giant leaf.\n\n"
)


def photo_base64(color, size=(800, 600)) -> str:
    """A solid-colour photo put through the same resize as real uploads."""
    buffer = BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format="JPEG")
    return base64.b64encode(resize_to_jpeg(buffer.getvalue(), 512)).decode()


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeOpenAI:
    """Scriptable stand-in for OpenAIService that records every call."""

    def __init__(
        self,
        story: Optional[str] = STORY_TEXT,
        description: Optional[str] = "A smiling girl with curly hair in a yellow raincoat",
        analysis: Optional[str] = "wonder, forest, flying",
        prompt: Optional[str] = "A girl riding a leaf over green hills",
    ):
        self.story = story
        self.description = description
        self.analysis = analysis
        self.prompt = prompt
        self.calls: List[str] = []
        self.image_prompts: List[str] = []
        self.image_error: Optional[Exception] = None
        self.fail_image_when: Optional[str] = None
        self.describe_error: Optional[Exception] = None
        self._counter = itertools.count(1)

    async def chat(self, messages, max_tokens=None, temperature=None):
        system = messages[0]["content"]
        if system == STORY_WRITER_PERSONA:
            self.calls.append("story")
            return self.story
        if system.startswith(ANALYSIS_SYSTEM_PREFIX):
            self.calls.append("analysis")
            return self.analysis
        self.calls.append("prompt")
        return self.prompt

    async def describe_image(self, persona, instruction, image_base64, detail="high", max_tokens=None):
        self.calls.append("describe")
        if self.describe_error is not None:
            raise self.describe_error
        return self.description

    async def generate_image(self, prompt, quality="standard", size="1024x1024"):
        self.calls.append("image")
        self.image_prompts.append(prompt)
        if self.image_error is not None:
            raise self.image_error
        if self.fail_image_when and self.fail_image_when in prompt:
            raise RuntimeError("content policy violation")
        return [f"https://images.example.com/generated/{next(self._counter)}.png"]

    @property
    def provider_calls(self) -> int:
        return len(self.calls)

    async def close(self):
        pass


class FakeCloudinary:
    """Hosting provider stand-in; `outcomes` scripts each upload attempt."""

    def __init__(self, outcomes: Optional[List[Any]] = None):
        self.outcomes = list(outcomes or [])
        self.attempts: List[Dict[str, Any]] = []
        self._counter = itertools.count(1)

    async def upload_from_url(self, image_url, caption=None):
        self.attempts.append({"url": image_url, "caption": caption})
        outcome = self.outcomes.pop(0) if self.outcomes else "ok"
        if isinstance(outcome, Exception):
            raise outcome
        if outcome is None:
            return None
        n = next(self._counter)
        return {
            "secure_url": f"https://res.cloudinary.com/demo/image/upload/story_{n}.png",
            "url": f"http://res.cloudinary.com/demo/image/upload/story_{n}.png",
            "public_id": f"talebloom/story_{n}",
        }

    async def upload_bytes(self, data, filename="upload.jpg"):
        return {"secure_url": "https://res.cloudinary.com/demo/image/upload/avatar.png"}

    async def close(self):
        pass


class FakeStoryService:
    """In-memory story store with a settable per-user count."""

    def __init__(self, existing_count: int = 0):
        self.existing_count = existing_count
        self.created: List[SimpleNamespace] = []

    async def create_story(self, db, user_id, title, content, images, hero_image, style=None):
        story = SimpleNamespace(
            id=uuid.uuid4(),
            user_id=user_id,
            title=title,
            content=list(content),
            images=list(images),
            hero_image=hero_image,
            style=style,
            created_at=datetime(2024, 5, 1, 12, 0, 0),
        )
        self.created.append(story)
        return story

    async def count_stories_by_user(self, db, user_id):
        return self.existing_count + len(self.created)

    async def get_story(self, db, story_id):
        return next((s for s in self.created if s.id == story_id), None)

    async def get_stories_by_user(self, db, user_id):
        return [s for s in reversed(self.created) if s.user_id == user_id]

    async def replace_images(self, db, story, images):
        story.images = list(images)
        return story


class FakeSession:
    """Minimal AsyncSession replacement for code that only flushes or commits."""

    def __init__(self, flush_error: Optional[Exception] = None):
        self.flushes = 0
        self.commits = 0
        self.flush_error = flush_error

    async def flush(self):
        self.flushes += 1
        if self.flush_error is not None:
            raise self.flush_error

    async def commit(self):
        self.commits += 1


class FakeSubscriptions:
    def __init__(self, data):
        self.data = data
        self.params = None

    def list(self, params=None):
        self.params = params
        return {"data": self.data}


class FakeStripeClient:
    """Stands in for stripe.StripeClient; only subscriptions.list is used."""

    def __init__(self, data):
        self.subscriptions = FakeSubscriptions(data)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_openai() -> FakeOpenAI:
    return FakeOpenAI()


@pytest.fixture
def fake_cloudinary() -> FakeCloudinary:
    return FakeCloudinary()


@pytest.fixture
def cache(clock: FakeClock) -> IllustrationCache:
    return IllustrationCache(ttl=3600.0, clock=clock)


@pytest.fixture
def pipeline(fake_openai, fake_cloudinary, cache) -> IllustrationPipeline:
    return IllustrationPipeline(
        openai_service=fake_openai,
        cloudinary_service=fake_cloudinary,
        styles=StyleRegistry(),
        cache=cache,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.0),
        max_prompt_length=3700,
    )


@pytest.fixture
def story_store() -> FakeStoryService:
    return FakeStoryService()


@pytest.fixture
def generator(fake_openai, pipeline, story_store) -> StoryGenerator:
    return StoryGenerator(
        narrative=NarrativeService(fake_openai),
        pipeline=pipeline,
        stories=story_store,
        quota_gate=QuotaGate(TierLimits(free=1, plus=10, pro=30, premium=100)),
    )


@pytest.fixture
def user() -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid.uuid4(),
        email="parent@example.com",
        name="Sam",
        bio=None,
        location=None,
        website=None,
        updated_at=None,
        subscription_tier=SubscriptionTier.PLUS,
        subscription_status=SubscriptionStatus.ACTIVE,
        stripe_customer_id=None,
        profile_picture=None,
    )


@pytest.fixture
def image_base64() -> str:
    return "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk" + "A" * 200

# Services Package
from talebloom.services.illustration_cache import IllustrationCache
from talebloom.services.illustration_service import IllustrationPipeline, IllustrationAsset
from talebloom.services.narrative_service import NarrativeService
from talebloom.services.quota import QuotaGate, QuotaDecision, TierLimits
from talebloom.services.story_generator import StoryGenerator, StoryRequest, build_story_generator
from talebloom.services.story_service import StoryService
from talebloom.services.style_templates import StyleRegistry, ArtStyle

__all__ = [
    "IllustrationCache",
    "IllustrationPipeline",
    "IllustrationAsset",
    "NarrativeService",
    "QuotaGate",
    "QuotaDecision",
    "TierLimits",
    "StoryGenerator",
    "StoryRequest",
    "build_story_generator",
    "StoryService",
    "StyleRegistry",
    "ArtStyle",
]

"""
Illustration Pipeline - one styled illustration per story paragraph

describe + analyze (concurrent) -> synthesize prompt -> generate image
-> upload with retry -> cache
"""
import asyncio
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Tuple

from talebloom.services.errors import GenerationError, UploadError
from talebloom.services.illustration_cache import IllustrationCache, make_cache_key
from talebloom.services.retry import RetryPolicy, RetryExhaustedError, retry_async
from talebloom.services.style_templates import StyleRegistry

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "A child in a whimsical setting"
DEFAULT_ANALYSIS = "A magical, heartwarming moment"
CAPTION_MAX_CHARS = 200


@dataclass(frozen=True)
class IllustrationAsset:
    url: str
    prompt: str
    style: str
    caption: str = ""
    secure_url: Optional[str] = None
    public_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_upload(cls, upload: Dict[str, Any], prompt: str, style: str, caption: str) -> "IllustrationAsset":
        return cls(
            url=upload.get("url") or upload.get("secure_url"),
            secure_url=upload.get("secure_url"),
            public_id=upload.get("public_id"),
            prompt=prompt,
            style=style,
            caption=caption,
        )


def truncate_prompt(prompt: str, max_length: int) -> str:
    """Clip the prompt to the image API ceiling; shorter prompts pass untouched"""
    if len(prompt) <= max_length:
        return prompt
    return prompt[:max_length]


class IllustrationPipeline:
    """
    Produces exactly one IllustrationAsset per (image, name, paragraph, style)
    or raises a StoryPipelineError.
    """

    def __init__(
        self,
        openai_service,
        cloudinary_service,
        styles: StyleRegistry,
        cache: IllustrationCache,
        retry_policy: RetryPolicy = RetryPolicy(),
        max_prompt_length: int = 3700,
        max_tokens_description: Optional[int] = None,
        max_tokens_analysis: Optional[int] = None,
        max_tokens_prompt: Optional[int] = None,
    ):
        self.openai = openai_service
        self.cloudinary = cloudinary_service
        self.styles = styles
        self.cache = cache
        self.retry_policy = retry_policy
        self.max_prompt_length = max_prompt_length
        self.max_tokens_description = max_tokens_description
        self.max_tokens_analysis = max_tokens_analysis
        self.max_tokens_prompt = max_tokens_prompt

    async def illustrate(
        self,
        image_base64: str,
        name: str,
        paragraph: str,
        style: str,
        quality: str = "standard",
        size: str = "1024x1024",
        force_refresh: bool = False,
    ) -> IllustrationAsset:
        style_id = getattr(style, "value", style)
        key = make_cache_key(image_base64, name, paragraph, style_id, quality, size)

        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"Illustration cache hit ({key[:12]})")
                return cached

        template = self.styles.get(style_id)

        description, analysis = await self._describe_and_analyze(image_base64, paragraph, template.persona)
        prompt = await self._synthesize_prompt(description, analysis, paragraph, name, template)
        final_prompt = truncate_prompt(
            f"{prompt}\n\nStyle: {template.style_guide}\nMain character: {name}",
            self.max_prompt_length,
        )

        image_url = await self._generate_image(final_prompt, quality, size)
        caption = paragraph[:CAPTION_MAX_CHARS]
        upload = await self.upload(image_url, caption)

        asset = IllustrationAsset.from_upload(upload, prompt=final_prompt, style=style_id, caption=caption)
        self.cache.set(key, asset)
        return asset

    async def _describe_and_analyze(self, image_base64: str, paragraph: str, persona: str) -> Tuple[str, str]:
        """Both calls run together; both must finish before synthesis."""
        description_call = self.openai.describe_image(
            persona=persona,
            instruction="Describe this image in detail for an illustrator to recreate in your style. "
                        "Cover the child's appearance, clothing, expression and surroundings.",
            image_base64=image_base64,
            detail="high",
            max_tokens=self.max_tokens_description,
        )
        analysis_call = self.openai.chat(
            [
                {
                    "role": "system",
                    "content": "You analyse children's story passages for an illustrator.",
                },
                {
                    "role": "user",
                    "content": "List the emotions, setting, actions and key visual elements of this "
                               f"story paragraph in a few short lines:\n\n{paragraph}",
                },
            ],
            max_tokens=self.max_tokens_analysis,
        )
        try:
            description, analysis = await asyncio.gather(description_call, analysis_call)
        except Exception as e:
            raise GenerationError(f"Image description or story analysis failed: {e}") from e
        return description or DEFAULT_DESCRIPTION, analysis or DEFAULT_ANALYSIS

    async def _synthesize_prompt(self, description: str, analysis: str, paragraph: str, name: str, template) -> str:
        messages = [
            {"role": "system", "content": template.persona},
            {
                "role": "user",
                "content": "Using the following image description, story analysis and story paragraph, "
                           f"create a single detailed and emotionally rich prompt for generating a "
                           f"{template.name} style illustration of {name}.\n\n"
                           f"Image description: {description}\n\n"
                           f"Story analysis: {analysis}\n\n"
                           f"Story context: {paragraph}",
            },
        ]
        try:
            content = await self.openai.chat(messages, max_tokens=self.max_tokens_prompt)
        except Exception as e:
            raise GenerationError(f"Prompt synthesis failed: {e}") from e
        if not content:
            logger.warning("Prompt synthesis returned nothing, using templated prompt")
            return f"A {template.id} style illustration of {name}: {paragraph}"
        return content

    async def _generate_image(self, prompt: str, quality: str, size: str) -> str:
        try:
            urls = await self.openai.generate_image(prompt, quality=quality, size=size)
        except Exception as e:
            raise GenerationError(f"Image generation failed: {e}") from e
        if not urls:
            raise GenerationError("Image generation failed: no image returned")
        return urls[0]

    async def upload(self, image_url: str, caption: str) -> Dict[str, Any]:
        """Host a remote image, retrying with backoff; UploadError once attempts run out"""
        try:
            return await retry_async(
                lambda: self.cloudinary.upload_from_url(image_url, caption=caption),
                self.retry_policy,
                label="Illustration upload",
            )
        except RetryExhaustedError as e:
            logger.error(f"Illustration upload gave up: {e.last_error}")
            raise UploadError(f"Upload failed after {e.attempts} attempts") from e.last_error

"""
Narrative Service - writes the story text from the uploaded photo
"""
import logging
from typing import List, Optional

from talebloom.services.errors import GenerationError
from talebloom.services.openai_service import image_content, text_content

logger = logging.getLogger(__name__)

STORY_WRITER_PERSONA = (
    "You are a children's story writer who creates magical and engaging stories for kids aged 5-10. "
    "Create a story with 3-4 paragraphs featuring the child in the image as the main character. "
    "Separate paragraphs with a blank line."
)


def split_paragraphs(text: str) -> List[str]:
    """Split story text on blank lines, dropping empty pieces and keeping order"""
    return [part.strip() for part in text.split("\n\n") if part.strip()]


class NarrativeService:
    """One vision-capable completion per story; no retry"""

    def __init__(self, openai_service, max_tokens: Optional[int] = 1000):
        self.openai = openai_service
        self.max_tokens = max_tokens

    async def write_story(self, image_base64: str, name: str) -> List[str]:
        messages = [
            {"role": "system", "content": STORY_WRITER_PERSONA},
            {
                "role": "user",
                "content": [
                    text_content(f"Create a magical story for this child named {name}"),
                    image_content(image_base64, detail="low"),
                ],
            },
        ]
        try:
            content = await self.openai.chat(messages, max_tokens=self.max_tokens)
        except Exception as e:
            raise GenerationError(f"Failed to generate story: {e}") from e

        if not content:
            raise GenerationError("Failed to generate story")

        paragraphs = split_paragraphs(content)
        if not paragraphs:
            raise GenerationError("Failed to generate story: no paragraphs")

        logger.info(f"Generated story for {name} with {len(paragraphs)} paragraphs")
        return paragraphs

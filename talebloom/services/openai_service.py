"""
OpenAI Service - chat, vision and image generation over the REST API
"""
import httpx
import logging
import time
from typing import Optional, List, Dict, Any

from talebloom.config import Settings

logger = logging.getLogger(__name__)


def image_content(image_base64: str, detail: str = "high") -> Dict[str, Any]:
    """Build an image_url content part from raw base64 or a data URI"""
    url = image_base64 if image_base64.startswith("data:") else f"data:image/jpeg;base64,{image_base64}"
    return {"type": "image_url", "image_url": {"url": url, "detail": detail}}


def text_content(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


class OpenAIService:
    """
    Thin async client for the OpenAI API.
    Non-2xx responses raise httpx.HTTPStatusError; callers decide what an
    empty completion means.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.base_url = settings.openai_base_url.rstrip("/")
        self.text_model = settings.openai_text_model
        self.image_model = settings.openai_image_model
        self.client = client or httpx.AsyncClient(
            timeout=settings.openai_timeout,
            headers={
                "Authorization": f"Bearer {settings.openai_api_key}",
                "Content-Type": "application/json",
            },
        )
        logger.info(f"OpenAI API configured with model: {self.text_model} at {self.base_url}")

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> Optional[str]:
        """Run one chat completion and return the first choice's text (or None)"""
        start_time = time.time()
        payload: Dict[str, Any] = {"model": self.text_model, "messages": messages}
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature

        response = await self.client.post(f"{self.base_url}/chat/completions", json=payload)
        response.raise_for_status()
        data = response.json()

        choices = data.get("choices") or []
        content = choices[0].get("message", {}).get("content") if choices else None
        tokens = data.get("usage", {}).get("total_tokens", 0)
        logger.debug(f"Chat completion: {tokens} tokens in {int((time.time() - start_time) * 1000)}ms")
        return content

    async def describe_image(
        self,
        persona: str,
        instruction: str,
        image_base64: str,
        detail: str = "high",
        max_tokens: Optional[int] = None,
    ) -> Optional[str]:
        """Vision call: persona as system message, instruction + image as user content"""
        messages = [
            {"role": "system", "content": persona},
            {"role": "user", "content": [text_content(instruction), image_content(image_base64, detail)]},
        ]
        return await self.chat(messages, max_tokens=max_tokens)

    async def generate_image(
        self,
        prompt: str,
        quality: str = "standard",
        size: str = "1024x1024",
    ) -> List[str]:
        """Generate one image and return the list of image URLs"""
        response = await self.client.post(
            f"{self.base_url}/images/generations",
            json={
                "model": self.image_model,
                "prompt": prompt,
                "n": 1,
                "quality": quality,
                "size": size,
            },
        )
        response.raise_for_status()
        data = response.json()
        return [item["url"] for item in data.get("data", []) if item.get("url")]

    async def close(self):
        await self.client.aclose()

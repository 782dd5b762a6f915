"""
Image helpers for uploaded photos
"""
import asyncio
import base64
from io import BytesIO

from PIL import Image, UnidentifiedImageError


class InvalidImageError(ValueError):
    """Uploaded bytes are not a readable image"""


def resize_to_jpeg(data: bytes, max_side: int = 512) -> bytes:
    """Shrink to fit inside max_side x max_side (never enlarges) and re-encode as JPEG."""
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise InvalidImageError(f"Unreadable image: {e}") from e

    if image.mode != "RGB":
        image = image.convert("RGB")
    image.thumbnail((max_side, max_side))

    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


async def prepare_story_image(data: bytes, max_side: int = 512) -> str:
    """Resize off the event loop and return the base64 JPEG"""
    loop = asyncio.get_running_loop()
    resized = await loop.run_in_executor(None, resize_to_jpeg, data, max_side)
    return base64.b64encode(resized).decode()


def to_data_uri(image_base64: str) -> str:
    return f"data:image/jpeg;base64,{image_base64}"

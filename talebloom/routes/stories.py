"""
Stories Routes - create illustrated stories, read them back, export PDFs
"""
import asyncio
import enum
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, UploadFile, File, Form
from fastapi.responses import Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from talebloom.config import settings
from talebloom.database import get_db
from talebloom.models.user import User
from talebloom.routes.auth import get_current_user
from talebloom.routes.deps import get_story_generator, get_style_registry
from talebloom.services.errors import MisalignedStoryError, StoryPipelineError, UploadError
from talebloom.services.illustration_service import IllustrationAsset
from talebloom.services.image_utils import InvalidImageError, prepare_story_image
from talebloom.services.pdf_export import decode_data_uri, fetch_illustrations, render_story_pdf
from talebloom.services.story_generator import StoryGenerator, StoryRequest
from talebloom.services.story_service import StoryService
from talebloom.services.style_templates import ArtStyle, StyleRegistry

logger = logging.getLogger(__name__)

router = APIRouter()
story_service = StoryService()


class ImageQuality(str, enum.Enum):
    STANDARD = "standard"
    HD = "hd"


class ImageSize(str, enum.Enum):
    SQUARE = "1024x1024"
    LANDSCAPE = "1792x1024"
    PORTRAIT = "1024x1792"


# Pydantic models
class StoryResponse(BaseModel):
    id: UUID
    user_id: UUID = Field(serialization_alias="userId")
    title: str
    content: List[str]
    images: List[Dict[str, Any]]
    hero_image: str = Field(serialization_alias="heroImage")
    style: Optional[str] = None
    created_at: datetime = Field(serialization_alias="createdAt")

    class Config:
        from_attributes = True


class StorySummaryResponse(BaseModel):
    id: UUID
    title: str
    hero_image: str = Field(serialization_alias="heroImage")
    created_at: datetime = Field(serialization_alias="createdAt")

    class Config:
        from_attributes = True


class UsageResponse(BaseModel):
    tier: str
    limit: int
    used: int
    remaining: int


class UploadImagesRequest(BaseModel):
    story_id: UUID = Field(alias="storyId")
    image_urls: List[str] = Field(alias="imageUrls", min_length=1)
    custom_prompt: str = Field(default="", alias="customPrompt")

    class Config:
        populate_by_name = True


class UploadImagesResponse(BaseModel):
    uploaded_images: List[Dict[str, Any]] = Field(serialization_alias="uploadedImages")
    custom_prompt: str = Field(serialization_alias="customPrompt")


# Routes
@router.post("/create", response_model=StoryResponse, status_code=status.HTTP_201_CREATED)
async def create_story(
    image: UploadFile = File(...),
    name: str = Form(settings.default_character_name),
    style: ArtStyle = Form(ArtStyle.GHIBLI),
    quality: ImageQuality = Form(ImageQuality.STANDARD),
    size: ImageSize = Form(ImageSize.SQUARE),
    force_refresh: bool = Form(False),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    generator: StoryGenerator = Depends(get_story_generator)
):
    """Generate an illustrated story starring the child in the uploaded photo"""
    if not image.content_type or not image.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")

    data = await image.read()
    if not data:
        raise HTTPException(status_code=400, detail="No image file uploaded")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Image exceeds the 5MB limit")

    decision = await generator.check_quota(db, current_user)
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Story limit reached",
                "limit": decision.limit,
                "used": decision.used,
                "tier": decision.tier.value,
            },
        )

    try:
        image_base64 = await prepare_story_image(data, settings.story_image_max_side)
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e))

    request = StoryRequest(
        user_id=current_user.id,
        image_base64=image_base64,
        name=name.strip() or settings.default_character_name,
        style=style.value,
        quality=quality.value,
        size=size.value,
        force_refresh=force_refresh,
    )

    try:
        story = await generator.generate(db, request)
    except MisalignedStoryError:
        raise
    except StoryPipelineError as e:
        logger.error(f"Story generation failed for user {current_user.id}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Story generation failed")

    return StoryResponse.model_validate(story)


@router.post("/upload-images", response_model=UploadImagesResponse)
async def upload_selected_images(
    payload: UploadImagesRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    generator: StoryGenerator = Depends(get_story_generator)
):
    """Re-host a chosen set of illustrations and attach them to the story"""
    story = await story_service.get_story(db, payload.story_id)
    if not story:
        raise HTTPException(status_code=404, detail="Story not found")
    if story.user_id != current_user.id:
        raise HTTPException(status_code=403, detail="Not authorized to modify this story")
    if len(payload.image_urls) != len(story.content or []):
        raise HTTPException(
            status_code=400,
            detail=f"Expected {len(story.content or [])} images, got {len(payload.image_urls)}",
        )

    try:
        uploads = await asyncio.gather(*(
            generator.pipeline.upload(url, caption=payload.custom_prompt)
            for url in payload.image_urls
        ))
    except UploadError as e:
        logger.error(f"Re-hosting images for story {story.id} failed: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Image upload failed")

    assets = [
        IllustrationAsset.from_upload(
            upload, prompt=payload.custom_prompt, style=story.style or "", caption=payload.custom_prompt
        ).to_dict()
        for upload in uploads
    ]
    await story_service.replace_images(db, story, assets)

    return UploadImagesResponse(uploaded_images=assets, custom_prompt=payload.custom_prompt)


@router.get("/user/stories", response_model=List[StorySummaryResponse])
async def list_user_stories(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the current user's stories, newest first"""
    stories = await story_service.get_stories_by_user(db, current_user.id)
    return [StorySummaryResponse.model_validate(s) for s in stories]


@router.get("/usage", response_model=UsageResponse)
async def get_usage(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    generator: StoryGenerator = Depends(get_story_generator)
):
    """Story quota for the current subscription tier"""
    decision = await generator.check_quota(db, current_user)
    return UsageResponse(
        tier=decision.tier.value,
        limit=decision.limit,
        used=decision.used,
        remaining=decision.remaining,
    )


@router.get("/styles")
async def list_styles(styles: StyleRegistry = Depends(get_style_registry)):
    """Available illustration styles"""
    return {"styles": styles.list_styles(), "default": ArtStyle.GHIBLI.value}


@router.get("/{story_id}", response_model=StoryResponse)
async def get_story(
    story_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """Get a specific story"""
    story = await story_service.get_story(db, story_id)
    if not story:
        raise HTTPException(status_code=404, detail="Story not found")
    return StoryResponse.model_validate(story)


@router.get("/{story_id}/pdf")
async def export_pdf(
    story_id: UUID,
    db: AsyncSession = Depends(get_db)
):
    """Export story as PDF"""
    story = await story_service.get_story(db, story_id)
    if not story:
        raise HTTPException(status_code=404, detail="Story not found")

    illustrations = await fetch_illustrations(story.images or [])
    loop = asyncio.get_running_loop()
    pdf_bytes = await loop.run_in_executor(
        None,
        render_story_pdf,
        story.title,
        story.content or [],
        decode_data_uri(story.hero_image),
        illustrations,
    )

    filename = f"{story.title.replace(' ', '_')}.pdf"
    encoded_filename = quote(filename, safe='')

    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{encoded_filename}"}
    )

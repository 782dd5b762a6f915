"""
User Routes - profile details and profile picture
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from talebloom.config import settings
from talebloom.database import get_db
from talebloom.models.user import User, SubscriptionTier
from talebloom.routes.auth import get_current_user
from talebloom.routes.deps import get_cloudinary_service
from talebloom.services.cloudinary_service import CloudinaryService

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_PICTURE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif"}


# Pydantic models
class ProfileUpdate(BaseModel):
    """Partial update; name and email are only replaced by non-empty values"""
    name: Optional[str] = Field(None, max_length=255)
    email: Optional[str] = Field(None, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    bio: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = Field(None, max_length=500)


class UserProfileResponse(BaseModel):
    id: UUID
    email: str
    name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    profile_picture: Optional[str] = Field(None, serialization_alias="profilePicture")
    subscription_tier: SubscriptionTier = Field(SubscriptionTier.NONE, serialization_alias="subscriptionTier")

    class Config:
        from_attributes = True


class ProfileUpdateResponse(BaseModel):
    user: UserProfileResponse


# Routes
@router.put("/profile", response_model=ProfileUpdateResponse)
async def update_profile(
    updates: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Update the current user's profile details"""
    update_data = updates.model_dump(exclude_unset=True)

    # Blank name/email leave the stored value alone
    for field in ("name", "email"):
        if not update_data.get(field):
            update_data.pop(field, None)

    for key, value in update_data.items():
        setattr(current_user, key, value)
    current_user.updated_at = datetime.utcnow()

    try:
        await db.flush()
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use")

    logger.info(f"Updated profile fields {sorted(update_data)} for user {current_user.id}")
    return ProfileUpdateResponse(user=UserProfileResponse.model_validate(current_user))


@router.post("/profile-picture")
async def update_profile_picture(
    profile_picture: UploadFile = File(..., alias="profilePicture"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    cloudinary: CloudinaryService = Depends(get_cloudinary_service)
):
    """Upload a new profile picture and store its hosted URL"""
    if profile_picture.content_type not in ALLOWED_PICTURE_TYPES:
        raise HTTPException(status_code=400, detail="Only image files are allowed")

    data = await profile_picture.read()
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Image exceeds the 5MB limit")

    result = await cloudinary.upload_bytes(data, filename=profile_picture.filename or "avatar.jpg")
    if not result:
        raise HTTPException(status_code=502, detail="Image upload failed")

    current_user.profile_picture = result["secure_url"]
    await db.flush()
    logger.info(f"Updated profile picture for user {current_user.id}")

    return {"profilePicture": result["secure_url"]}

"""
Story Service - Persistence for generated stories
"""
from typing import Optional, List, Dict, Any
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from talebloom.models.story import Story
from talebloom.services.errors import MisalignedStoryError


class StoryService:
    """Service for storing and reading stories"""

    async def create_story(
        self,
        db: AsyncSession,
        user_id: UUID,
        title: str,
        content: List[str],
        images: List[Dict[str, Any]],
        hero_image: str,
        style: Optional[str] = None,
    ) -> Story:
        """Create a story in one write; refuses misaligned content/images"""
        if len(content) != len(images):
            raise MisalignedStoryError(
                f"{len(content)} paragraphs but {len(images)} illustrations"
            )

        story = Story(
            user_id=user_id,
            title=title,
            content=list(content),
            images=list(images),
            hero_image=hero_image,
            style=style,
        )
        db.add(story)
        await db.flush()
        await db.refresh(story)
        return story

    async def get_story(self, db: AsyncSession, story_id: UUID) -> Optional[Story]:
        """Get a story by ID"""
        result = await db.execute(select(Story).where(Story.id == story_id))
        return result.scalar_one_or_none()

    async def get_stories_by_user(self, db: AsyncSession, user_id: UUID) -> List[Story]:
        """Get all stories for a user, newest first"""
        query = select(Story).where(Story.user_id == user_id).order_by(Story.created_at.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count_stories_by_user(self, db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(select(func.count(Story.id)).where(Story.user_id == user_id))
        return result.scalar() or 0

    async def replace_images(
        self,
        db: AsyncSession,
        story: Story,
        images: List[Dict[str, Any]],
    ) -> Story:
        """Swap in a new illustration set of the same length"""
        if len(images) != len(story.content or []):
            raise MisalignedStoryError(
                f"{len(story.content or [])} paragraphs but {len(images)} illustrations"
            )
        story.images = list(images)
        await db.flush()
        return story

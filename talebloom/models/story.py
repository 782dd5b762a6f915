"""
Story Model - An illustrated story generated from an uploaded photo
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from talebloom.database import Base


class Story(Base):
    """Persisted story: paragraphs and their illustrations, index-aligned"""
    __tablename__ = "stories"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(500), nullable=False)
    content = Column(JSONB, nullable=False, default=list)  # list of paragraphs
    images = Column(JSONB, nullable=False, default=list)  # images[i] illustrates content[i]
    hero_image = Column(Text, nullable=False)  # data URI of the uploaded photo
    style = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    owner = relationship("User", back_populates="stories")

    __table_args__ = (
        Index("ix_stories_user_id_created_at", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Story '{self.title}'>"

    @property
    def is_aligned(self) -> bool:
        return len(self.content or []) == len(self.images or [])

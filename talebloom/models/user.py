"""
User Model - Account, profile and subscription state
"""
from sqlalchemy import Column, String, DateTime, Text, Enum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from talebloom.database import Base


class SubscriptionTier(str, enum.Enum):
    """Subscription levels, each with its own story ceiling"""
    NONE = "none"
    PLUS = "plus"
    PRO = "pro"
    PREMIUM = "premium"


class SubscriptionStatus(str, enum.Enum):
    """Billing provider subscription status"""
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    TRIALING = "trialing"
    UNPAID = "unpaid"


class User(Base):
    """User account model"""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)

    # Profile
    profile_picture = Column(Text, nullable=True)
    bio = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    website = Column(String(500), nullable=True)

    # Billing
    stripe_customer_id = Column(String(255), nullable=True)
    subscription_tier = Column(Enum(SubscriptionTier), default=SubscriptionTier.NONE, nullable=False)
    subscription_status = Column(Enum(SubscriptionStatus), nullable=True)
    subscription_price_id = Column(String(255), nullable=True)
    subscription_period_end = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    stories = relationship("Story", back_populates="owner", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email}>"

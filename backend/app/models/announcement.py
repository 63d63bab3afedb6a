from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid, utcnow, enum_column
from app.models.notice import TargetAudience


class AnnouncementType(str, enum.Enum):
    GENERAL = "general"
    IMPORTANT = "important"
    URGENT = "urgent"
    MAINTENANCE = "maintenance"


class AnnouncementPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Announcement(Base):
    """Site-wide banner announcement"""
    __tablename__ = "announcements"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)  # max 2000 chars, enforced by the schema
    type = Column(enum_column(AnnouncementType), default=AnnouncementType.GENERAL, nullable=False)
    priority = Column(enum_column(AnnouncementPriority), default=AnnouncementPriority.MEDIUM, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    target_audience = Column(enum_column(TargetAudience), default=TargetAudience.ALL, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Announcement {self.title} ({self.type})>"

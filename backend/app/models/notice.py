from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow, enum_column


class NoticeType(str, enum.Enum):
    GENERAL = "general"
    EXAM = "exam"
    EVENT = "event"
    HOLIDAY = "holiday"
    URGENT = "urgent"


class NoticePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TargetAudience(str, enum.Enum):
    """Who a notice or announcement is shown to"""
    ALL = "all"
    STUDENTS = "students"
    ADMIN = "admin"


class Notice(Base):
    """Notice board entry"""
    __tablename__ = "notices"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(enum_column(NoticeType), default=NoticeType.GENERAL, nullable=False)
    priority = Column(enum_column(NoticePriority), default=NoticePriority.MEDIUM, nullable=False)
    target_audience = Column(enum_column(TargetAudience), default=TargetAudience.ALL, nullable=False)
    target_branch = Column(String(255), nullable=True)  # None = every branch

    is_pinned = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=True)

    attachments = Column(JSONType, default=list)
    tags = Column(JSONType, default=list)
    views = Column(Integer, default=0, nullable=False)

    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    reads = relationship("NoticeRead", back_populates="notice", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Notice {self.title}>"


class NoticeRead(Base):
    """A user having read a notice; one row per (notice, user)"""
    __tablename__ = "notice_reads"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    notice_id = Column(GUID, ForeignKey("notices.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    read_at = Column(DateTime, default=utcnow, nullable=False)

    notice = relationship("Notice", back_populates="reads")

    __table_args__ = (
        UniqueConstraint("notice_id", "user_id", name="uq_notice_reads_notice_user"),
    )

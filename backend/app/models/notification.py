from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow, enum_column


class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(Base):
    """In-app notification for one user"""
    __tablename__ = "notifications"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(enum_column(NotificationType), default=NotificationType.INFO, nullable=False)
    category = Column(String(50), default="general", nullable=False, index=True)
    data = Column(JSONType, default=dict)
    action_url = Column(Text, nullable=True)

    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<Notification {self.title} user={self.user_id} read={self.is_read}>"

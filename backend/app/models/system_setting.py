from sqlalchemy import Column, String, DateTime, Text

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow


class SystemSetting(Base):
    """Runtime switches persisted across restarts (e.g. maintenance_mode)"""
    __tablename__ = "system_settings"

    id = Column(GUID, primary_key=True, default=generate_uuid)

    # Setting key (unique identifier)
    key = Column(String(100), unique=True, nullable=False, index=True)

    # Setting value (stored as JSON for flexibility)
    value = Column(JSONType, nullable=False)

    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)  # 'general', 'maintenance'

    # Audit trail (no FK so deleting the admin keeps the setting)
    updated_by = Column(GUID, nullable=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<SystemSetting {self.key}={self.value!r}>"

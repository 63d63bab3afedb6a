from sqlalchemy import Column, String, DateTime, Text, ForeignKey

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow


class Course(Base):
    """Video course for a subject; lectures are stored inline as JSON"""
    __tablename__ = "courses"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False)
    branch = Column(String(255), nullable=False, index=True)
    semester = Column(String(10), nullable=False, index=True)
    subject = Column(String(255), nullable=False, index=True)

    poster = Column(Text, nullable=True)
    cover_photo = Column(Text, nullable=True)
    resource_url = Column(Text, nullable=True)
    lectures = Column(JSONType, default=list)  # [{title, videoUrl, duration}]

    created_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Course {self.title}>"

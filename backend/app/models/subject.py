from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, UniqueConstraint

from app.core.database import Base
from app.core.types import GUID, generate_uuid, utcnow


class Subject(Base):
    """Curriculum subject; codes are unique per branch, not globally"""
    __tablename__ = "subjects"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(50), nullable=False, index=True)
    branch = Column(String(255), nullable=False, index=True)
    semester = Column(Integer, nullable=False, index=True)
    credits = Column(Integer, default=4)
    hours = Column(Integer, default=60)
    type = Column(String(50), default="Theory")
    description = Column(Text, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    is_common = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("code", "branch", name="uq_subjects_code_branch"),
    )

    def __repr__(self):
        return f"<Subject {self.code} {self.branch} sem {self.semester}>"

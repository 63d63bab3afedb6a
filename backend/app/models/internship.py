from sqlalchemy import Column, String, DateTime, Text, UniqueConstraint
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid, utcnow, enum_column


class InternshipMode(str, enum.Enum):
    REMOTE = "Remote"
    HYBRID = "Hybrid"
    ONSITE = "Onsite"


class InternshipApplication(Base):
    """Internship application; one per email and semester"""
    __tablename__ = "internship_applications"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)  # lowercase
    phone = Column(String(20), nullable=False)
    college_name = Column(String(255), nullable=False)
    branch = Column(String(255), nullable=False)
    semester = Column(String(10), nullable=False)

    type = Column(String(50), nullable=False)  # e.g. Paid / Unpaid
    mode = Column(enum_column(InternshipMode), nullable=False)
    duration = Column(String(50), default="")
    preferred_location = Column(String(255), default="")
    internship_type = Column(String(255), nullable=False)
    resume_url = Column(Text, nullable=False)
    additional_notes = Column(Text, default="")

    status = Column(String(50), default="submitted", nullable=False)
    source = Column(String(50), default="public")
    user_id = Column(GUID, nullable=True)
    viewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint("email", "semester", name="uq_internship_email_semester"),
    )

    def __repr__(self):
        return f"<InternshipApplication {self.email} sem {self.semester}>"

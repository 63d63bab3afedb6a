from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey, Index
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow, enum_column


class ProjectStatus(str, enum.Enum):
    """Review state of a submitted project"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ProjectRequestStatus(str, enum.Enum):
    """Inbox state; the admin pipeline state lives in workflow_status"""
    NEW = "new"
    REPLIED = "replied"


class Project(Base):
    """Student (or admin showcase) project"""
    __tablename__ = "projects"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(500), nullable=False)
    description = Column(Text, default="")
    category = Column(String(255), nullable=False, index=True)
    branch = Column(String(255), nullable=False, index=True)
    semester = Column(Integer, nullable=False, default=0, index=True)

    # Owner
    student_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    student_name = Column(String(255), nullable=False)

    # Links and media
    github_link = Column(Text, default="")
    demo_link = Column(Text, default="")
    simulation_link = Column(Text, nullable=True)
    cover_photo = Column(Text, nullable=True)
    pdf_url = Column(Text, default="")
    image_urls = Column(JSONType, default=list)
    video_url = Column(Text, default="")

    # Details
    collaborators = Column(JSONType, default=list)
    team_members = Column(JSONType, default=list)
    tags = Column(JSONType, default=list)
    tech_stack = Column(JSONType, default=list)
    mentor = Column(String(255), default="")
    timeline = Column(String(255), default="")
    difficulty = Column(String(50), default="")
    project_type = Column(String(50), default="mini")
    project_category = Column(String(50), default="mini")
    academic_year = Column(String(20), nullable=True)

    # Visibility and review
    is_public = Column(Boolean, default=True, nullable=False, index=True)
    is_admin_project = Column(Boolean, default=False, nullable=False, index=True)
    status = Column(enum_column(ProjectStatus), default=ProjectStatus.PENDING, nullable=False, index=True)
    admin_feedback = Column(Text, default="")

    views = Column(Integer, default=0, nullable=False)
    likes = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_projects_branch_semester_status", "branch", "semester", "status"),
        Index("ix_projects_student_status", "student_id", "status"),
    )

    def __repr__(self):
        return f"<Project {self.title} ({self.status})>"


class ProjectRequest(Base):
    """Custom project request submitted from the public site"""
    __tablename__ = "project_requests"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), default="")
    branch = Column(String(255), default="")
    semester = Column(String(10), default="")
    project_idea = Column(Text, nullable=False)
    description = Column(Text, default="")
    required_tools = Column(Text, default="")
    deadline = Column(String(50), default="")
    notes = Column(Text, default="")

    status = Column(enum_column(ProjectRequestStatus), default=ProjectRequestStatus.NEW, nullable=False, index=True)
    workflow_status = Column(String(50), default="pending")  # accepted, under_review, rejected
    viewed_at = Column(DateTime, nullable=True)
    reply_history = Column(JSONType, default=list)
    admin_alert_email_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<ProjectRequest {self.email} ({self.status})>"

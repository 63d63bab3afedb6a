from pydantic import Field
from typing import Optional, List, Any
from datetime import datetime

from app.models.project import ProjectStatus, ProjectRequestStatus
from app.schemas.base import CamelModel, LooseStr


# ============================================
# Projects
# ============================================

class ProjectCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[LooseStr] = None
    student_name: Optional[str] = None
    github_link: str = ""
    demo_link: str = ""
    simulation_link: Optional[str] = None
    cover_photo: Optional[str] = None
    pdf_url: str = ""
    image_urls: List[str] = []
    video_url: str = ""
    collaborators: List[Any] = []
    team_members: List[Any] = []
    tags: List[str] = []
    tech_stack: List[str] = []
    mentor: str = ""
    timeline: str = ""
    difficulty: str = ""
    project_type: str = "mini"
    project_category: Optional[str] = None
    academic_year: Optional[str] = None
    is_public: bool = True
    is_admin_project: bool = False


class ProjectUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[int] = None
    github_link: Optional[str] = None
    demo_link: Optional[str] = None
    simulation_link: Optional[str] = None
    cover_photo: Optional[str] = None
    pdf_url: Optional[str] = None
    image_urls: Optional[List[str]] = None
    video_url: Optional[str] = None
    collaborators: Optional[List[Any]] = None
    team_members: Optional[List[Any]] = None
    tags: Optional[List[str]] = None
    tech_stack: Optional[List[str]] = None
    mentor: Optional[str] = None
    timeline: Optional[str] = None
    difficulty: Optional[str] = None
    project_type: Optional[str] = None
    project_category: Optional[str] = None
    academic_year: Optional[str] = None
    is_public: Optional[bool] = None


class ProjectReview(CamelModel):
    status: ProjectStatus
    feedback: str = ""


class ProjectResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = ""
    category: str
    branch: str
    semester: int = 0
    student_id: str
    student_name: str
    github_link: Optional[str] = ""
    demo_link: Optional[str] = ""
    simulation_link: Optional[str] = None
    cover_photo: Optional[str] = None
    pdf_url: Optional[str] = ""
    image_urls: List[str] = []
    video_url: Optional[str] = ""
    collaborators: List[Any] = []
    team_members: List[Any] = []
    tags: List[str] = []
    tech_stack: List[str] = []
    mentor: Optional[str] = ""
    timeline: Optional[str] = ""
    difficulty: Optional[str] = ""
    project_type: Optional[str] = "mini"
    project_category: Optional[str] = "mini"
    academic_year: Optional[str] = None
    is_public: bool = True
    is_admin_project: bool = False
    status: ProjectStatus
    admin_feedback: Optional[str] = ""
    views: int = 0
    likes: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================
# Custom project requests
# ============================================

class ProjectRequestCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = ""
    branch: str = ""
    semester: LooseStr = ""
    project_idea: str = Field(..., min_length=1)
    description: str = ""
    required_tools: str = ""
    deadline: str = ""
    notes: str = ""


class AdminReply(CamelModel):
    """Reply sent from the admin inbox (project requests and contact messages)"""
    reply_subject: str = Field(..., min_length=1)
    header_text: str = "DigiDiploma Support"
    message_text: str = Field(..., min_length=1)
    footer_text: str = "© DigiDiploma. All rights reserved."


class RequestStatusUpdate(CamelModel):
    status: Optional[str] = None


class ProjectRequestResponse(CamelModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = ""
    branch: Optional[str] = ""
    semester: Optional[str] = ""
    project_idea: str
    description: Optional[str] = ""
    required_tools: Optional[str] = ""
    deadline: Optional[str] = ""
    notes: Optional[str] = ""
    status: ProjectRequestStatus
    workflow_status: Optional[str] = "pending"
    viewed_at: Optional[datetime] = None
    reply_history: List[Any] = []
    admin_alert_email_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

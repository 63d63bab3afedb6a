from pydantic import Field
from typing import Optional
from datetime import datetime

from app.models.internship import InternshipMode
from app.schemas.base import CamelModel, LooseStr


class InternshipApply(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str = Field(..., min_length=1, max_length=20)
    college_name: str = Field(..., min_length=1)
    branch: str = Field(..., min_length=1)
    semester: LooseStr
    type: str = Field(..., min_length=1)
    mode: InternshipMode
    duration: Optional[LooseStr] = ""
    preferred_location: Optional[str] = ""
    internship_type: str = Field(..., min_length=1)
    additional_notes: Optional[str] = ""
    resume_url: Optional[str] = None
    resume_base64: Optional[str] = None
    resume_file_name: Optional[str] = None
    resume_content_type: Optional[str] = None
    source: str = "public"
    user_id: Optional[str] = None


class InternshipResponse(CamelModel):
    id: str
    name: str
    email: str
    phone: str
    college_name: str
    branch: str
    semester: str
    type: str
    mode: InternshipMode
    duration: Optional[str] = ""
    preferred_location: Optional[str] = ""
    internship_type: str
    resume_url: str
    additional_notes: Optional[str] = ""
    status: str = "submitted"
    source: Optional[str] = "public"
    user_id: Optional[str] = None
    viewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

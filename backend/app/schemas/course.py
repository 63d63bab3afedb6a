from typing import Optional, List, Any
from datetime import datetime

from app.schemas.base import CamelModel, LooseStr


class CourseCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[LooseStr] = None
    subject: Optional[str] = None
    poster: Optional[str] = None
    cover_photo: Optional[str] = None
    resource_url: Optional[str] = None
    lectures: List[Any] = []


class CourseUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[LooseStr] = None
    subject: Optional[str] = None
    poster: Optional[str] = None
    cover_photo: Optional[str] = None
    resource_url: Optional[str] = None
    lectures: Optional[List[Any]] = None


class CourseResponse(CamelModel):
    id: str
    title: str
    description: str
    branch: str
    semester: str
    subject: str
    poster: Optional[str] = None
    cover_photo: Optional[str] = None
    resource_url: Optional[str] = None
    lectures: List[Any] = []
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

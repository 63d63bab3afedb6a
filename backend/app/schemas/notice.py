from pydantic import Field
from typing import Optional, List, Any
from datetime import datetime

from app.models.notice import NoticeType, NoticePriority, TargetAudience
from app.models.announcement import AnnouncementType, AnnouncementPriority
from app.schemas.base import CamelModel


# ============================================
# Notices
# ============================================

class NoticeCreate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    type: NoticeType = NoticeType.GENERAL
    priority: NoticePriority = NoticePriority.MEDIUM
    target_audience: TargetAudience = TargetAudience.ALL
    target_branch: Optional[str] = None
    is_pinned: bool = False
    is_active: bool = True
    expires_at: Optional[datetime] = None
    attachments: List[Any] = []
    tags: List[str] = []


class NoticeUpdate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    type: Optional[NoticeType] = None
    priority: Optional[NoticePriority] = None
    target_audience: Optional[TargetAudience] = None
    target_branch: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None
    attachments: Optional[List[Any]] = None
    tags: Optional[List[str]] = None


class NoticeResponse(CamelModel):
    id: str
    title: str
    content: str
    type: NoticeType
    priority: NoticePriority
    target_audience: TargetAudience
    target_branch: Optional[str] = None
    is_pinned: bool = False
    is_active: bool = True
    expires_at: Optional[datetime] = None
    attachments: List[Any] = []
    tags: List[str] = []
    views: int = 0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ============================================
# Announcements
# ============================================

class AnnouncementCreate(CamelModel):
    title: Optional[str] = Field(None, max_length=200)
    content: Optional[str] = Field(None, max_length=2000)
    type: AnnouncementType = AnnouncementType.GENERAL
    priority: AnnouncementPriority = AnnouncementPriority.MEDIUM
    target_audience: TargetAudience = TargetAudience.ALL
    is_active: bool = True
    expires_at: Optional[datetime] = None


class AnnouncementUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1, max_length=2000)
    type: Optional[AnnouncementType] = None
    priority: Optional[AnnouncementPriority] = None
    target_audience: Optional[TargetAudience] = None
    is_active: Optional[bool] = None
    expires_at: Optional[datetime] = None


class AnnouncementResponse(CamelModel):
    id: str
    title: str
    content: str
    type: AnnouncementType
    priority: AnnouncementPriority
    target_audience: TargetAudience
    is_active: bool = True
    expires_at: Optional[datetime] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

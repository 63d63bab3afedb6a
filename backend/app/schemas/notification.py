from typing import Optional, List, Dict, Any
from datetime import datetime

from app.models.notification import NotificationType
from app.schemas.base import CamelModel


class NotificationData(CamelModel):
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    category: str = "general"
    data: Dict[str, Any] = {}
    action_url: Optional[str] = None


class AdminSendRequest(CamelModel):
    user_ids: List[str] = []
    notification_data: NotificationData


class RegisterTokenRequest(CamelModel):
    token: Optional[str] = None


class TopicRequest(CamelModel):
    topic: Optional[str] = None


class SendPushRequest(CamelModel):
    user_id: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Dict[str, Any] = {}
    image_url: Optional[str] = None


class SendTopicPushRequest(CamelModel):
    topic: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    data: Dict[str, Any] = {}
    image_url: Optional[str] = None


class NotificationResponse(CamelModel):
    id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    category: str
    data: Dict[str, Any] = {}
    action_url: Optional[str] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

from pydantic import Field
from typing import Optional, List, Any
from datetime import datetime

from app.schemas.base import CamelModel


class ContactMessageCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    subject: str = Field(..., min_length=1, max_length=500)
    message: str = Field(..., min_length=1, max_length=5000)
    phone: str = ""


class ContactMessageResponse(CamelModel):
    id: str
    name: str
    email: str
    phone: Optional[str] = ""
    subject: str
    message: str
    status: str = "new"
    viewed_at: Optional[datetime] = None
    reply_history: List[Any] = []
    admin_alert_email_sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

from sqlalchemy import Column, String, DateTime, Text

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow


class ContactMessage(Base):
    """Message from the public contact form"""
    __tablename__ = "contact_messages"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(20), default="")
    subject = Column(String(500), nullable=False)
    message = Column(Text, nullable=False)

    status = Column(String(20), default="new", nullable=False)  # new, replied
    viewed_at = Column(DateTime, nullable=True)
    reply_history = Column(JSONType, default=list)
    admin_alert_email_sent_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ContactMessage {self.email}: {self.subject}>"

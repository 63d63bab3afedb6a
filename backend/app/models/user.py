from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid, utcnow, enum_column


class UserType(str, enum.Enum):
    """User roles"""
    STUDENT = "student"
    ADMIN = "admin"


class User(Base):
    """Student or admin account"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)  # always lowercase
    password = Column(String(255), nullable=False)  # bcrypt hash

    # Enrollment number, unique when present
    student_id = Column(String(100), unique=True, index=True, nullable=True)
    college = Column(String(255), default="")
    branch = Column(String(255), default="", index=True)
    semester = Column(Integer, nullable=True)
    user_type = Column(enum_column(UserType), default=UserType.STUDENT, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Profile fields
    phone = Column(String(20), default="")
    address = Column(Text, default="")
    bio = Column(Text, default="")
    avatar = Column(Text, default="")  # URL or data: URI

    # Firebase Cloud Messaging
    fcm_token = Column(Text, default="")
    fcm_token_updated_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_login = Column(DateTime, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.user_type == UserType.ADMIN

    def __repr__(self):
        return f"<User {self.email} ({self.user_type})>"


class EmailOtp(Base):
    """
    One pending email verification per address.

    `last_sent_at` drives the resend cooldown; `verified` is flipped by
    /verify-email-otp and consumed (row deleted) by /register.
    """
    __tablename__ = "email_otps"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    otp = Column(String(6), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    last_sent_at = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<EmailOtp {self.email} verified={self.verified}>"

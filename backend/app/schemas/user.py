from pydantic import Field
from typing import Optional
from datetime import datetime

from app.models.user import UserType
from app.schemas.base import CamelModel


# ============================================
# Requests
# ============================================

class SendOtpRequest(CamelModel):
    email: Optional[str] = None


class VerifyOtpRequest(CamelModel):
    email: Optional[str] = None
    otp: Optional[str] = None


class UserRegister(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6)
    college: str = ""
    student_id: Optional[str] = None
    branch: str = ""
    semester: Optional[int] = None
    phone: str = ""


class UserLogin(CamelModel):
    email_or_student_id: Optional[str] = None
    password: Optional[str] = None


class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[int] = None


class AvatarUpdate(CamelModel):
    avatar: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email_or_student_id: Optional[str] = None


class ResetPasswordRequest(CamelModel):
    token: Optional[str] = None
    new_password: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class AdminChangePasswordRequest(CamelModel):
    user_id: Optional[str] = None
    new_password: str = Field(..., min_length=6)


# ============================================
# Responses
# ============================================

class UserSummary(CamelModel):
    """User as returned by /register and /login"""
    id: str
    name: str
    email: str
    student_id: Optional[str] = None
    college: Optional[str] = None
    branch: Optional[str] = None
    semester: Optional[int] = None
    user_type: UserType
    phone: Optional[str] = None


class UserResponse(UserSummary):
    """Full profile (self or admin views)"""
    is_active: bool = True
    address: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None

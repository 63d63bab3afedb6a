# Pydantic schemas
from app.schemas.base import CamelModel
from app.schemas.user import UserSummary, UserResponse
from app.schemas.material import MaterialResponse
from app.schemas.subject import SubjectResponse
from app.schemas.notice import NoticeResponse, AnnouncementResponse
from app.schemas.subscription import SubscriptionResponse
from app.schemas.payment import PaymentResponse
from app.schemas.project import ProjectResponse, ProjectRequestResponse
from app.schemas.internship import InternshipResponse
from app.schemas.course import CourseResponse
from app.schemas.contact import ContactMessageResponse
from app.schemas.notification import NotificationResponse

__all__ = [
    "CamelModel",
    "UserSummary",
    "UserResponse",
    "MaterialResponse",
    "SubjectResponse",
    "NoticeResponse",
    "AnnouncementResponse",
    "SubscriptionResponse",
    "PaymentResponse",
    "ProjectResponse",
    "ProjectRequestResponse",
    "InternshipResponse",
    "CourseResponse",
    "ContactMessageResponse",
    "NotificationResponse",
]

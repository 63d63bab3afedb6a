# Re-export all models for convenient imports
from app.models.user import User, UserType, EmailOtp
from app.models.material import Material, MaterialType, AccessType, StorageType
from app.models.subject import Subject
from app.models.notice import Notice, NoticeRead, NoticeType, NoticePriority, TargetAudience
from app.models.announcement import Announcement, AnnouncementType, AnnouncementPriority
from app.models.subscription import Subscription, SubscriptionPlan, SubscriptionStatus, PLAN_DETAILS
from app.models.activity_log import ActivityLog, LogAction, ACTION_LABELS
from app.models.payment import Payment, PaymentStatus, DownloadToken
from app.models.project import Project, ProjectStatus, ProjectRequest, ProjectRequestStatus
from app.models.internship import InternshipApplication, InternshipMode
from app.models.course import Course
from app.models.contact import ContactMessage
from app.models.notification import Notification, NotificationType
from app.models.system_setting import SystemSetting

__all__ = [
    # Users
    "User",
    "UserType",
    "EmailOtp",
    # Materials
    "Material",
    "MaterialType",
    "AccessType",
    "StorageType",
    "Subject",
    # Notices
    "Notice",
    "NoticeRead",
    "NoticeType",
    "NoticePriority",
    "TargetAudience",
    "Announcement",
    "AnnouncementType",
    "AnnouncementPriority",
    # Subscriptions & payments
    "Subscription",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "PLAN_DETAILS",
    "Payment",
    "PaymentStatus",
    "DownloadToken",
    # Projects
    "Project",
    "ProjectStatus",
    "ProjectRequest",
    "ProjectRequestStatus",
    "InternshipApplication",
    "InternshipMode",
    "Course",
    "ContactMessage",
    # Notifications
    "Notification",
    "NotificationType",
    # System
    "ActivityLog",
    "LogAction",
    "ACTION_LABELS",
    "SystemSetting",
]

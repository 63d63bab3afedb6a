from sqlalchemy import Column, String, DateTime, Text
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow, enum_column


class LogAction(str, enum.Enum):
    """Named actions recorded in the activity trail"""
    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    MATERIAL_UPLOADED = "material_uploaded"
    MATERIAL_UPDATED = "material_updated"
    MATERIAL_DELETED = "material_deleted"
    MATERIAL_DOWNLOADED = "material_downloaded"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_RENEWED = "subscription_renewed"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    ANNOUNCEMENT_CREATED = "announcement_created"
    ANNOUNCEMENT_UPDATED = "announcement_updated"
    ANNOUNCEMENT_DELETED = "announcement_deleted"
    USER_STATUS_CHANGED = "user_status_changed"
    USER_DELETED = "user_deleted"
    ADMIN_LOGIN = "admin_login"
    PROFILE_UPDATED = "profile_updated"
    PASSWORD_CHANGED = "password_changed"
    PAYMENT_COMPLETED = "payment_completed"
    MAINTENANCE_TOGGLED = "maintenance_toggled"


ACTION_LABELS = {
    LogAction.USER_REGISTERED: "New user registered",
    LogAction.USER_LOGIN: "User logged in",
    LogAction.USER_LOGOUT: "User logged out",
    LogAction.MATERIAL_UPLOADED: "Material uploaded",
    LogAction.MATERIAL_UPDATED: "Material updated",
    LogAction.MATERIAL_DELETED: "Material deleted",
    LogAction.MATERIAL_DOWNLOADED: "Material downloaded",
    LogAction.SUBSCRIPTION_CREATED: "Subscription created",
    LogAction.SUBSCRIPTION_RENEWED: "Subscription renewed",
    LogAction.SUBSCRIPTION_CANCELLED: "Subscription cancelled",
    LogAction.ANNOUNCEMENT_CREATED: "Announcement created",
    LogAction.ANNOUNCEMENT_UPDATED: "Announcement updated",
    LogAction.ANNOUNCEMENT_DELETED: "Announcement deleted",
    LogAction.USER_STATUS_CHANGED: "User status changed",
    LogAction.USER_DELETED: "User deleted",
    LogAction.ADMIN_LOGIN: "Admin logged in",
    LogAction.PROFILE_UPDATED: "Profile updated",
    LogAction.PASSWORD_CHANGED: "Password changed",
    LogAction.PAYMENT_COMPLETED: "Payment completed",
    LogAction.MAINTENANCE_TOGGLED: "Maintenance mode toggled",
}


class ActivityLog(Base):
    """Audit trail of named user and admin actions"""
    __tablename__ = "logs"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    action = Column(enum_column(LogAction), nullable=False, index=True)

    # Denormalized so entries survive user deletion
    user_id = Column(GUID, nullable=True, index=True)
    user_email = Column(String(255), nullable=True)
    user_name = Column(String(255), nullable=True)

    details = Column(JSONType, nullable=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    @property
    def label(self) -> str:
        return ACTION_LABELS.get(self.action, str(self.action))

    @property
    def actor(self) -> str:
        return self.user_name or self.user_email or "System"

    def __repr__(self):
        return f"<ActivityLog {self.action} by {self.actor}>"

from app.services.storage_service import StorageService, storage_service
from app.services.email_service import EmailService, email_service
from app.services.razorpay_service import RazorpayService, razorpay_service
from app.services.push_service import PushService, push_service
from app.services.notification_service import NotificationManager, notification_manager
from app.services.activity_service import log_activity

__all__ = [
    # Integrations
    "StorageService",
    "storage_service",
    "EmailService",
    "email_service",
    "RazorpayService",
    "razorpay_service",
    "PushService",
    "push_service",
    # Realtime
    "NotificationManager",
    "notification_manager",
    # Audit trail
    "log_activity",
]

from sqlalchemy import Column, String, DateTime, Float, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timedelta
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow, enum_column


class SubscriptionPlan(str, enum.Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    COMPLETE = "complete"


class SubscriptionStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


# Duration and unlocked features per plan; each tier includes the one below it
PLAN_DETAILS = {
    SubscriptionPlan.BASIC: {
        "duration_days": 30,
        "features": ["pdf_access"],
    },
    SubscriptionPlan.PREMIUM: {
        "duration_days": 90,
        "features": ["pdf_access", "video_access", "quiz_access"],
    },
    SubscriptionPlan.COMPLETE: {
        "duration_days": 180,
        "features": ["pdf_access", "video_access", "quiz_access", "download_access", "priority_support"],
    },
}


class Subscription(Base):
    """Semester access plan bought by a student"""
    __tablename__ = "subscriptions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    semester = Column(String(10), nullable=False)
    plan = Column(enum_column(SubscriptionPlan), nullable=False)

    start_date = Column(DateTime, default=utcnow, nullable=False)
    end_date = Column(DateTime, nullable=False, index=True)
    status = Column(enum_column(SubscriptionStatus), default=SubscriptionStatus.PENDING, nullable=False, index=True)

    payment_id = Column(String(255), nullable=True)
    amount = Column(Float, nullable=False, default=0)
    features = Column(JSONType, default=list)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", lazy="joined")

    @classmethod
    def for_plan(cls, user_id: str, semester: str, plan: SubscriptionPlan, amount: float,
                 start: datetime = None) -> "Subscription":
        details = PLAN_DETAILS[plan]
        start = start or datetime.utcnow()
        return cls(
            user_id=user_id,
            semester=semester,
            plan=plan,
            amount=amount,
            start_date=start,
            end_date=start + timedelta(days=details["duration_days"]),
            features=list(details["features"]),
            status=SubscriptionStatus.PENDING,
        )

    def is_active_now(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and self.end_date > datetime.utcnow()

    def extend(self, days: int) -> None:
        """Push the end date out; an already lapsed subscription restarts from now"""
        base = max(self.end_date, datetime.utcnow())
        self.end_date = base + timedelta(days=days)
        if self.status == SubscriptionStatus.EXPIRED:
            self.status = SubscriptionStatus.ACTIVE

    def __repr__(self):
        return f"<Subscription {self.plan} {self.status} user={self.user_id}>"

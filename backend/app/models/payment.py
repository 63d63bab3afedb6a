from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, ForeignKey
from datetime import datetime
import enum

from app.core.database import Base
from app.core.types import GUID, JSONType, generate_uuid, utcnow, enum_column


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base):
    """Razorpay purchase of a paid material"""
    __tablename__ = "payments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(GUID, ForeignKey("materials.id", ondelete="SET NULL"), nullable=True, index=True)

    # Razorpay identifiers
    razorpay_order_id = Column(String(255), unique=True, nullable=False, index=True)
    razorpay_payment_id = Column(String(255), nullable=True, index=True)
    razorpay_signature = Column(String(255), nullable=True)
    payment_link_id = Column(String(255), nullable=True, index=True)

    amount = Column(Integer, nullable=False)  # paise
    currency = Column(String(3), default="INR", nullable=False)
    status = Column(enum_column(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    payment_method = Column(String(50), nullable=True)
    extra_metadata = Column(JSONType, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Payment {self.razorpay_order_id} {self.status}>"


class DownloadToken(Base):
    """Single-use capability to fetch a paid material, issued after payment"""
    __tablename__ = "download_tokens"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    token = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(GUID, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    material_id = Column(GUID, ForeignKey("materials.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_id = Column(GUID, ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)

    expires_at = Column(DateTime, nullable=False, index=True)
    is_used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def is_valid(self, now: datetime = None) -> bool:
        return not self.is_used and self.expires_at > (now or datetime.utcnow())

    def __repr__(self):
        return f"<DownloadToken material={self.material_id} used={self.is_used}>"

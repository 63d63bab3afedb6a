from typing import Optional, Any, Dict
from datetime import datetime

from app.models.payment import PaymentStatus
from app.schemas.base import CamelModel


class MaterialPaymentRequest(CamelModel):
    material_id: Optional[str] = None


class VerifyPaymentRequest(CamelModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None


class RefundRequest(CamelModel):
    payment_id: Optional[str] = None
    amount: Optional[float] = None  # rupees; full refund when omitted
    reason: Optional[str] = None


class PaymentResponse(CamelModel):
    id: str
    user_id: str
    material_id: Optional[str] = None
    razorpay_order_id: str
    razorpay_payment_id: Optional[str] = None
    payment_link_id: Optional[str] = None
    amount: int
    currency: str = "INR"
    status: PaymentStatus
    payment_method: Optional[str] = None
    extra_metadata: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

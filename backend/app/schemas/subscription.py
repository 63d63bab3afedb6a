from pydantic import Field
from typing import Optional, List
from datetime import datetime

from app.models.subscription import SubscriptionPlan, SubscriptionStatus
from app.schemas.base import CamelModel, LooseStr


class SubscriptionCreate(CamelModel):
    semester: LooseStr
    # Checked against PLAN_DETAILS in the endpoint for a friendlier error
    plan: str
    amount: float = Field(..., ge=0)


class SubscriptionStatusUpdate(CamelModel):
    status: SubscriptionStatus


class SubscriptionExtend(CamelModel):
    days: int = Field(30, ge=1, le=3650)


class SubscriptionUser(CamelModel):
    id: str
    name: str
    email: str


class SubscriptionResponse(CamelModel):
    id: str
    user_id: str
    semester: str
    plan: SubscriptionPlan
    start_date: datetime
    end_date: datetime
    status: SubscriptionStatus
    payment_id: Optional[str] = None
    amount: float = 0
    features: List[str] = []
    user: Optional[SubscriptionUser] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

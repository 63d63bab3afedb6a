"""
Subscriptions API

Semester plans (basic / premium / complete), their lifecycle and the
revenue overview for admins.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.models.activity_log import LogAction
from app.models.subscription import Subscription, SubscriptionPlan, SubscriptionStatus
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.subscription import (
    SubscriptionCreate,
    SubscriptionStatusUpdate,
    SubscriptionExtend,
    SubscriptionResponse,
)
from app.services.activity_service import log_activity

router = APIRouter()

EXPIRING_WINDOW_DAYS = 7


async def _get_subscription(db: AsyncSession, subscription_id: str) -> Subscription:
    result = await db.execute(select(Subscription).where(Subscription.id == subscription_id))
    subscription = result.unique().scalar_one_or_none()
    if not subscription:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription not found")
    return subscription


def _ensure_owner_or_admin(subscription: Subscription, user: User) -> None:
    if not user.is_admin and subscription.user_id != str(user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")


@router.get("/")
async def list_subscriptions(
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    query = select(Subscription).order_by(Subscription.created_at.desc())
    if status_filter:
        try:
            query = query.where(Subscription.status == SubscriptionStatus(status_filter))
        except ValueError:
            return []

    result = await db.execute(query)
    return SubscriptionResponse.dump_many(result.unique().scalars().all())


@router.get("/my")
async def my_subscriptions(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == str(current_user.id))
        .order_by(Subscription.created_at.desc())
    )
    return SubscriptionResponse.dump_many(result.unique().scalars().all())


@router.get("/expiring/soon")
async def expiring_subscriptions(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    now = datetime.utcnow()
    result = await db.execute(
        select(Subscription)
        .where(
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.end_date > now,
            Subscription.end_date <= now + timedelta(days=EXPIRING_WINDOW_DAYS),
        )
        .order_by(Subscription.end_date)
    )
    return SubscriptionResponse.dump_many(result.unique().scalars().all())


@router.get("/stats/overview")
async def subscription_stats(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    counts = await db.execute(
        select(Subscription.status, func.count(Subscription.id)).group_by(Subscription.status)
    )
    by_status = {s.value: 0 for s in SubscriptionStatus}
    for sub_status, count in counts.all():
        by_status[sub_status.value] = count

    revenue = await db.execute(
        select(Subscription.plan, func.coalesce(func.sum(Subscription.amount), 0))
        .group_by(Subscription.plan)
    )
    revenue_by_plan = {p.value: 0.0 for p in SubscriptionPlan}
    for plan, total in revenue.all():
        revenue_by_plan[plan.value] = float(total or 0)

    return {
        "total": sum(by_status.values()),
        "active": by_status["active"],
        "expired": by_status["expired"],
        "pending": by_status["pending"],
        "cancelled": by_status["cancelled"],
        "totalRevenue": sum(revenue_by_plan.values()),
        "revenueByPlan": revenue_by_plan,
    }


@router.get("/{subscription_id}")
async def get_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    subscription = await _get_subscription(db, subscription_id)
    _ensure_owner_or_admin(subscription, current_user)
    return SubscriptionResponse.dump(subscription)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_subscription(
    data: SubscriptionCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        plan = SubscriptionPlan(data.plan)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid plan. Must be one of: {', '.join(p.value for p in SubscriptionPlan)}"
        )

    subscription = Subscription.for_plan(str(current_user.id), data.semester, plan, data.amount)
    db.add(subscription)
    await db.flush()
    await log_activity(db, LogAction.SUBSCRIPTION_CREATED, current_user, {
        "subscriptionId": subscription.id,
        "plan": plan.value,
        "semester": data.semester,
        "amount": data.amount,
    }, request)
    await db.commit()

    logger.info(f"[Subscriptions] {current_user.email} requested {plan.value} for semester {data.semester}")
    return SubscriptionResponse.dump(await _get_subscription(db, subscription.id))


@router.put("/{subscription_id}/status")
async def update_subscription_status(
    subscription_id: str,
    data: SubscriptionStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    subscription = await _get_subscription(db, subscription_id)
    subscription.status = data.status
    await db.commit()
    await db.refresh(subscription)
    return SubscriptionResponse.dump(subscription)


@router.put("/{subscription_id}/extend")
async def extend_subscription(
    subscription_id: str,
    request: Request,
    data: Optional[SubscriptionExtend] = None,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    days = data.days if data else 30
    subscription = await _get_subscription(db, subscription_id)
    subscription.extend(days)

    await log_activity(db, LogAction.SUBSCRIPTION_RENEWED, current_user, {
        "subscriptionId": subscription_id,
        "days": days,
    }, request)
    await db.commit()
    await db.refresh(subscription)
    return SubscriptionResponse.dump(subscription)


@router.put("/{subscription_id}/cancel")
async def cancel_subscription(
    subscription_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    subscription = await _get_subscription(db, subscription_id)
    _ensure_owner_or_admin(subscription, current_user)

    subscription.status = SubscriptionStatus.CANCELLED
    await log_activity(db, LogAction.SUBSCRIPTION_CANCELLED, current_user, {
        "subscriptionId": subscription_id,
    }, request)
    await db.commit()
    await db.refresh(subscription)
    return SubscriptionResponse.dump(subscription)

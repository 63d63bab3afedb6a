"""
Notifications API

In-app notifications per user, FCM token registration and admin
broadcast / push tools.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.models.notification import Notification, NotificationType
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.notification import (
    NotificationData,
    AdminSendRequest,
    RegisterTokenRequest,
    TopicRequest,
    SendPushRequest,
    SendTopicPushRequest,
    NotificationResponse,
)
from app.services.notification_service import notification_manager, EventType
from app.services.push_service import push_service

router = APIRouter()


def _parse_type(value: Optional[str]) -> Optional[NotificationType]:
    try:
        return NotificationType(value)
    except ValueError:
        return None


async def _get_own_notification(db: AsyncSession, notification_id: str, user: User) -> Notification:
    result = await db.execute(select(Notification).where(Notification.id == notification_id))
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if notification.user_id != str(user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized")
    return notification


async def _require_fcm_token(db: AsyncSession, user_id: str) -> str:
    result = await db.execute(select(User.fcm_token).where(User.id == str(user_id)))
    token = result.scalar_one_or_none()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="FCM token not found. Please register token first."
        )
    return token


async def deliver_notifications(db: AsyncSession, user_ids: List[str], data: NotificationData) -> List[Notification]:
    """Store one notification per user, then push each over the realtime channel"""
    notifications = [
        Notification(
            user_id=user_id,
            title=data.title,
            message=data.message,
            type=data.type,
            category=data.category,
            data=data.data,
            action_url=data.action_url,
        )
        for user_id in user_ids
    ]
    db.add_all(notifications)
    await db.commit()

    for notification in notifications:
        await notification_manager.send_to_user(
            notification.user_id, EventType.NOTIFICATION, NotificationResponse.dump(notification)
        )
    return notifications


# ==================== User routes ====================

@router.get("/my-notifications")
async def my_notifications(
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
    category: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    conditions = [Notification.user_id == str(current_user.id)]
    if category:
        conditions.append(Notification.category == category)
    if type:
        parsed = _parse_type(type)
        if parsed is None:
            return {"notifications": [], "total": 0, "unread": 0}
        conditions.append(Notification.type == parsed)
    if is_read is not None:
        conditions.append(Notification.is_read.is_(is_read))

    total = (await db.execute(select(func.count(Notification.id)).where(*conditions))).scalar() or 0
    unread = (await db.execute(
        select(func.count(Notification.id)).where(*conditions, Notification.is_read.is_(False))
    )).scalar() or 0
    result = await db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(limit)
    )

    return {
        "notifications": NotificationResponse.dump_many(result.scalars().all()),
        "total": total,
        "unread": unread,
    }


@router.get("/unread-count")
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == str(current_user.id),
            Notification.is_read.is_(False),
        )
    )
    return {"count": result.scalar() or 0}


@router.put("/mark-all-read")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == str(current_user.id), Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.utcnow())
    )
    await db.commit()
    return {"message": f"Marked {result.rowcount or 0} notifications as read"}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    notification = await _get_own_notification(db, notification_id, current_user)
    notification.is_read = True
    notification.read_at = datetime.utcnow()
    await db.commit()
    await db.refresh(notification)
    return NotificationResponse.dump(notification)


@router.put("/{notification_id}/unread")
async def mark_unread(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    notification = await _get_own_notification(db, notification_id, current_user)
    notification.is_read = False
    notification.read_at = None
    await db.commit()
    await db.refresh(notification)
    return NotificationResponse.dump(notification)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    notification = await _get_own_notification(db, notification_id, current_user)
    await db.delete(notification)
    await db.commit()
    return {"message": "Notification deleted successfully"}


# ==================== Push tokens and topics ====================

@router.post("/register-token")
async def register_token(
    data: RegisterTokenRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not data.token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="FCM token is required")

    current_user.fcm_token = data.token
    current_user.fcm_token_updated_at = datetime.utcnow()
    await db.commit()

    logger.info(f"[Push] FCM token registered for {current_user.email}")
    return {"message": "FCM token registered successfully"}


@router.post("/subscribe")
async def subscribe_topic(
    data: TopicRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not data.topic:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Topic is required")

    token = await _require_fcm_token(db, current_user.id)
    result = await push_service.subscribe([token], data.topic)
    return {"message": f"Topic subscription request recorded for: {data.topic}", "push": result}


@router.post("/unsubscribe")
async def unsubscribe_topic(
    data: TopicRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not data.topic:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Topic is required")

    token = await _require_fcm_token(db, current_user.id)
    result = await push_service.unsubscribe([token], data.topic)
    return {"message": f"Topic unsubscription request recorded for: {data.topic}", "push": result}


# ==================== Admin routes ====================

@router.post("/admin/send")
async def admin_send(
    data: AdminSendRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Send to the listed users, or to every active user when the list is empty"""
    if data.user_ids:
        result = await db.execute(select(User.id).where(User.id.in_(data.user_ids)))
        label = "notifications"
    else:
        result = await db.execute(select(User.id).where(User.is_active.is_(True)))
        label = "broadcast notifications"
    user_ids = [str(uid) for uid in result.scalars().all()]

    notifications = await deliver_notifications(db, user_ids, data.notification_data)
    logger.info(f"[Notifications] {current_user.email} sent {len(notifications)} {label}")

    return {
        "message": f"Sent {len(notifications)} {label}",
        "notifications": NotificationResponse.dump_many(notifications),
    }


@router.get("/admin/all")
async def admin_all_notifications(
    user_id: Optional[str] = Query(None, alias="userId"),
    category: Optional[str] = Query(None),
    is_read: Optional[bool] = Query(None, alias="isRead"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    conditions = []
    if user_id:
        conditions.append(Notification.user_id == user_id)
    if category:
        conditions.append(Notification.category == category)
    if is_read is not None:
        conditions.append(Notification.is_read.is_(is_read))

    total = (await db.execute(select(func.count(Notification.id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return {"notifications": NotificationResponse.dump_many(result.scalars().all()), "total": total}


@router.get("/admin/stats")
async def admin_notification_stats(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    total = (await db.execute(select(func.count(Notification.id)))).scalar() or 0
    unread = (await db.execute(
        select(func.count(Notification.id)).where(Notification.is_read.is_(False))
    )).scalar() or 0
    by_category = await db.execute(
        select(Notification.category, func.count(Notification.id)).group_by(Notification.category)
    )
    return {
        "total": total,
        "unread": unread,
        "read": total - unread,
        "byCategory": {category: count for category, count in by_category.all()},
    }


@router.delete("/admin/{notification_id}")
async def admin_delete_notification(
    notification_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(Notification).where(Notification.id == notification_id))
    notification = result.scalar_one_or_none()
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    await db.delete(notification)
    await db.commit()
    return {"message": "Notification deleted successfully"}


@router.post("/send-push")
async def send_push(
    data: SendPushRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if not (data.user_id and data.title and data.body):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId, title, and body are required")

    result = await db.execute(select(User.fcm_token).where(User.id == data.user_id))
    token = result.scalar_one_or_none()
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User FCM token not found")

    return await push_service.send_to_token(token, data.title, data.body, data.data, data.image_url)


@router.post("/send-topic-push")
async def send_topic_push(
    data: SendTopicPushRequest,
    current_user: User = Depends(require_admin)
):
    if not (data.topic and data.title and data.body):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="topic, title, and body are required")

    return await push_service.send_to_topic(data.topic, data.title, data.body, data.data)

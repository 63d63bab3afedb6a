"""
Announcements API

Site-wide banners shown by the frontend. Every write is pushed to
connected clients.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.types import utcnow
from app.models.activity_log import LogAction
from app.models.announcement import Announcement
from app.models.notice import TargetAudience
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.notice import AnnouncementCreate, AnnouncementUpdate, AnnouncementResponse
from app.services.activity_service import log_activity
from app.services.notification_service import notification_manager, EventType

router = APIRouter()


async def _get_announcement(db: AsyncSession, announcement_id: str) -> Announcement:
    result = await db.execute(select(Announcement).where(Announcement.id == announcement_id))
    announcement = result.scalar_one_or_none()
    if not announcement:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Announcement not found")
    return announcement


@router.get("/")
async def active_announcements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    audience = TargetAudience.ADMIN if current_user.is_admin else TargetAudience.STUDENTS
    result = await db.execute(
        select(Announcement)
        .where(
            Announcement.is_active.is_(True),
            or_(Announcement.expires_at.is_(None), Announcement.expires_at > utcnow()),
            Announcement.target_audience.in_([TargetAudience.ALL, audience]),
        )
        .order_by(Announcement.created_at.desc())
    )
    return AnnouncementResponse.dump_many(result.scalars().all())


@router.get("/admin")
async def all_announcements(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(Announcement).order_by(Announcement.created_at.desc()))
    return AnnouncementResponse.dump_many(result.scalars().all())


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_announcement(
    data: AnnouncementCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if not data.title or not data.content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title and content are required"
        )

    announcement = Announcement(
        title=data.title.strip(),
        content=data.content,
        type=data.type,
        priority=data.priority,
        target_audience=data.target_audience,
        is_active=data.is_active,
        expires_at=data.expires_at,
        created_by=str(current_user.id),
    )
    db.add(announcement)
    await db.flush()
    await log_activity(db, LogAction.ANNOUNCEMENT_CREATED, current_user, {
        "announcementId": announcement.id,
        "title": announcement.title,
    }, request)
    await db.commit()
    await db.refresh(announcement)

    payload = AnnouncementResponse.dump(announcement)
    await notification_manager.notify_announcement_change(EventType.ANNOUNCEMENT_CREATED, payload)
    return payload


@router.put("/{announcement_id}")
async def update_announcement(
    announcement_id: str,
    data: AnnouncementUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    announcement = await _get_announcement(db, announcement_id)

    updates = data.model_dump(exclude_unset=True)
    for field, value in updates.items():
        setattr(announcement, field, value)

    await log_activity(db, LogAction.ANNOUNCEMENT_UPDATED, current_user, {
        "announcementId": announcement_id,
        "fields": sorted(updates),
    }, request)
    await db.commit()
    await db.refresh(announcement)

    payload = AnnouncementResponse.dump(announcement)
    await notification_manager.notify_announcement_change(EventType.ANNOUNCEMENT_UPDATED, payload)
    return payload


@router.patch("/{announcement_id}/toggle")
async def toggle_announcement(
    announcement_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    announcement = await _get_announcement(db, announcement_id)
    announcement.is_active = not announcement.is_active
    await db.commit()
    await db.refresh(announcement)

    payload = AnnouncementResponse.dump(announcement)
    await notification_manager.notify_announcement_change(EventType.ANNOUNCEMENT_UPDATED, payload)
    return payload


@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    announcement = await _get_announcement(db, announcement_id)
    title = announcement.title
    await db.delete(announcement)
    await log_activity(db, LogAction.ANNOUNCEMENT_DELETED, current_user, {
        "announcementId": announcement_id,
        "title": title,
    }, request)
    await db.commit()

    await notification_manager.notify_announcement_change(EventType.ANNOUNCEMENT_DELETED, {"id": announcement_id})
    return {"message": "Announcement deleted successfully"}

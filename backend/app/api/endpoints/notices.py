"""
Notices API

Notice board: a public feed, audience-filtered lists for signed-in users,
admin CRUD and per-user read tracking.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.core.types import utcnow
from app.models.notice import Notice, NoticeRead, NoticeType, TargetAudience
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.notice import NoticeCreate, NoticeUpdate, NoticeResponse
from app.services.notification_service import notification_manager, EventType

router = APIRouter()

PUBLIC_NOTICE_LIMIT = 20


def _unexpired():
    return or_(Notice.expires_at.is_(None), Notice.expires_at > utcnow())


def _visible_to_students():
    return (
        Notice.is_active.is_(True),
        _unexpired(),
        Notice.target_audience.in_([TargetAudience.ALL, TargetAudience.STUDENTS]),
    )


async def _get_notice(db: AsyncSession, notice_id: str, *conditions) -> Notice:
    result = await db.execute(select(Notice).where(Notice.id == notice_id, *conditions))
    notice = result.scalar_one_or_none()
    if not notice:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notice not found")
    return notice


@router.get("/public")
async def public_notices(db: AsyncSession = Depends(get_db)):
    """Active notices for everyone, pinned first"""
    result = await db.execute(
        select(Notice)
        .where(
            Notice.is_active.is_(True),
            Notice.target_audience == TargetAudience.ALL,
            _unexpired(),
        )
        .order_by(Notice.is_pinned.desc(), Notice.created_at.desc())
        .limit(PUBLIC_NOTICE_LIMIT)
    )
    return NoticeResponse.dump_many(result.scalars().all())


@router.get("/")
async def list_notices(
    type: Optional[str] = Query(None),
    branch: Optional[str] = Query(None),
    include_inactive: bool = Query(False, alias="includeInactive"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = select(Notice)

    if current_user.is_admin:
        if not include_inactive:
            query = query.where(Notice.is_active.is_(True))
        if branch:
            query = query.where(Notice.target_branch == branch)
    else:
        query = query.where(*_visible_to_students())
        target_branch = branch or current_user.branch
        if target_branch:
            query = query.where(or_(
                Notice.target_branch.is_(None),
                Notice.target_branch == "",
                Notice.target_branch == target_branch,
            ))

    if type:
        try:
            query = query.where(Notice.type == NoticeType(type))
        except ValueError:
            return []

    result = await db.execute(query.order_by(Notice.is_pinned.desc(), Notice.created_at.desc()))
    notices = result.scalars().all()

    read_ids = set()
    if notices:
        reads = await db.execute(
            select(NoticeRead.notice_id).where(
                NoticeRead.user_id == str(current_user.id),
                NoticeRead.notice_id.in_([n.id for n in notices]),
            )
        )
        read_ids = set(reads.scalars().all())

    return [
        {**NoticeResponse.dump(n), "isRead": n.id in read_ids}
        for n in notices
    ]


@router.get("/{notice_id}")
async def get_notice(
    notice_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    # Students only reach notices their list would show them
    conditions = () if current_user.is_admin else _visible_to_students()
    notice = await _get_notice(db, notice_id, *conditions)
    notice.views = (notice.views or 0) + 1
    await db.commit()
    await db.refresh(notice)
    return NoticeResponse.dump(notice)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_notice(
    data: NoticeCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if not data.title or not data.content:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title and content are required"
        )

    notice = Notice(
        title=data.title.strip(),
        content=data.content,
        type=data.type,
        priority=data.priority,
        target_audience=data.target_audience,
        target_branch=data.target_branch or None,
        is_pinned=data.is_pinned,
        is_active=data.is_active,
        expires_at=data.expires_at,
        attachments=data.attachments,
        tags=data.tags,
        created_by=str(current_user.id),
    )
    db.add(notice)
    await db.commit()
    await db.refresh(notice)

    payload = NoticeResponse.dump(notice)
    logger.info(f"[Notices] Created '{notice.title}' ({notice.type.value})")
    await notification_manager.notify_notice_change(EventType.NOTICE_CREATED, {"notice": payload})

    return payload


@router.put("/{notice_id}")
async def update_notice(
    notice_id: str,
    data: NoticeUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    notice = await _get_notice(db, notice_id)

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(notice, field, value)

    await db.commit()
    await db.refresh(notice)

    payload = NoticeResponse.dump(notice)
    await notification_manager.notify_notice_change(EventType.NOTICE_UPDATED, {"notice": payload})
    return payload


@router.delete("/{notice_id}")
async def delete_notice(
    notice_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    notice = await _get_notice(db, notice_id)
    await db.delete(notice)
    await db.commit()

    await notification_manager.notify_notice_change(EventType.NOTICE_DELETED, {"id": notice_id})
    return {"message": "Notice deleted successfully"}


@router.post("/{notice_id}/read")
async def mark_notice_read(
    notice_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Idempotent; a second call leaves the original read time"""
    conditions = () if current_user.is_admin else _visible_to_students()
    await _get_notice(db, notice_id, *conditions)

    existing = await db.execute(
        select(NoticeRead).where(
            NoticeRead.notice_id == notice_id,
            NoticeRead.user_id == str(current_user.id),
        )
    )
    read = existing.scalar_one_or_none()
    if not read:
        read = NoticeRead(notice_id=notice_id, user_id=str(current_user.id))
        db.add(read)
        await db.commit()
        await db.refresh(read)

    return {"message": "Notice marked as read", "readAt": read.read_at.isoformat()}

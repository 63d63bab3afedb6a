"""
Analytics API (admin)

Platform totals, growth and the activity trail.
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models.activity_log import ActivityLog, LogAction
from app.models.material import Material
from app.models.notice import Notice
from app.models.subject import Subject
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.user import User, UserType
from app.modules.auth.dependencies import require_admin
from app.services.activity_service import format_logs

router = APIRouter()


async def _count(db: AsyncSession, column, *where) -> int:
    query = select(func.count(column))
    if where:
        query = query.where(*where)
    return (await db.execute(query)).scalar() or 0


@router.get("/")
async def analytics_overview(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    downloads = await db.execute(select(func.coalesce(func.sum(Material.downloads), 0)))

    summary = {
        "totalUsers": await _count(db, User.id),
        "totalStudents": await _count(db, User.id, User.user_type == UserType.STUDENT),
        "totalAdmins": await _count(db, User.id, User.user_type == UserType.ADMIN),
        "activeUsers": await _count(db, User.id, User.is_active.is_(True)),
        "totalMaterials": await _count(db, Material.id),
        "totalSubjects": await _count(db, Subject.id),
        "totalNotices": await _count(db, Notice.id),
        "totalSubscriptions": await _count(db, Subscription.id),
        "activeSubscriptions": await _count(db, Subscription.id, Subscription.status == SubscriptionStatus.ACTIVE),
        "totalDownloads": int(downloads.scalar() or 0),
    }

    # Registrations per day for the last 7 days, oldest first
    today = datetime.utcnow().date()
    start = datetime.combine(today - timedelta(days=6), datetime.min.time())
    created = await db.execute(select(User.created_at).where(User.created_at >= start))
    per_day = {today - timedelta(days=offset): 0 for offset in range(6, -1, -1)}
    for (created_at,) in created.all():
        day = created_at.date()
        if day in per_day:
            per_day[day] += 1

    branch_count = func.count(User.id).label("count")
    branches = await db.execute(
        select(User.branch, branch_count)
        .where(User.user_type == UserType.STUDENT, User.branch.is_not(None), User.branch != "")
        .group_by(User.branch)
        .order_by(branch_count.desc())
        .limit(10)
    )

    top_materials = await db.execute(
        select(Material.id, Material.title, Material.downloads, Material.rating)
        .order_by(Material.downloads.desc())
        .limit(5)
    )

    recent = await db.execute(select(ActivityLog).order_by(ActivityLog.timestamp.desc()).limit(10))

    return {
        "summary": summary,
        "userGrowth": [{"date": day.isoformat(), "count": count} for day, count in per_day.items()],
        "branchDistribution": [{"branch": branch, "count": count} for branch, count in branches.all()],
        "topMaterials": [
            {"id": mid, "title": title, "downloads": downloads or 0, "rating": rating or 0}
            for mid, title, downloads, rating in top_materials.all()
        ],
        "recentActivity": format_logs(recent.scalars().all()),
    }


@router.get("/logs")
async def activity_logs(
    action: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=500),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    query = select(ActivityLog).order_by(ActivityLog.timestamp.desc()).limit(limit)
    if action:
        try:
            query = query.where(ActivityLog.action == LogAction(action))
        except ValueError:
            return []

    result = await db.execute(query)
    return format_logs(result.scalars().all())

"""
Courses API

Video courses per branch, semester and subject.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.models.course import Course
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.course import CourseCreate, CourseUpdate, CourseResponse
from app.services.notification_service import notification_manager, EventType

router = APIRouter()


async def _list_courses(db: AsyncSession, branch: Optional[str], semester: Optional[str], subject: Optional[str]):
    query = select(Course)
    if branch:
        query = query.where(Course.branch == branch)
    if semester:
        query = query.where(Course.semester == str(semester).strip())
    if subject:
        query = query.where(Course.subject == subject)

    result = await db.execute(query.order_by(Course.created_at.desc()))
    return {"courses": CourseResponse.dump_many(result.scalars().all())}


async def _get_course(db: AsyncSession, course_id: str) -> Course:
    result = await db.execute(select(Course).where(Course.id == course_id))
    course = result.scalar_one_or_none()
    if not course:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    return course


@router.get("/public")
async def public_courses(
    branch: Optional[str] = Query(None),
    semester: Optional[str] = Query(None),
    subject: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await _list_courses(db, branch, semester, subject)


@router.get("/")
async def list_courses(
    branch: Optional[str] = Query(None),
    semester: Optional[str] = Query(None),
    subject: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await _list_courses(db, branch, semester, subject)


@router.post("/", status_code=status.HTTP_201_CREATED)
async def launch_course(
    data: CourseCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if not (data.title and data.description and data.branch and data.semester and data.subject):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    course = Course(
        title=data.title,
        description=data.description,
        branch=data.branch,
        semester=data.semester.strip(),
        subject=data.subject,
        poster=data.poster or None,
        cover_photo=data.cover_photo or None,
        resource_url=data.resource_url or None,
        lectures=data.lectures,
        created_by=str(current_user.id),
    )
    db.add(course)
    await db.commit()
    await db.refresh(course)

    payload = CourseResponse.dump(course)
    logger.info(f"[Courses] Launched '{course.title}' ({course.branch}, semester {course.semester})")
    await notification_manager.notify_course_change(EventType.COURSE_LAUNCHED, {"course": payload})
    return payload


@router.put("/{course_id}")
async def update_course(
    course_id: str,
    data: CourseUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    course = await _get_course(db, course_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(course, field, value)

    await db.commit()
    await db.refresh(course)

    payload = CourseResponse.dump(course)
    await notification_manager.notify_course_change(EventType.COURSE_UPDATED, {"course": payload})
    return payload


@router.delete("/{course_id}")
async def delete_course(
    course_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    course = await _get_course(db, course_id)
    await db.delete(course)
    await db.commit()

    await notification_manager.notify_course_change(EventType.COURSE_DELETED, {"courseId": course_id})
    return {"success": True}

"""
Projects API

Student project showcase with admin review, plus the public "request a
custom project" inbox.
"""

import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from sqlalchemy import select, func, or_, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.core.rate_limiter import public_form_rate_limit
from app.models.project import Project, ProjectRequest, ProjectStatus, ProjectRequestStatus
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.project import (
    ProjectCreate,
    ProjectUpdate,
    ProjectReview,
    ProjectResponse,
    ProjectRequestCreate,
    ProjectRequestResponse,
    AdminReply,
    RequestStatusUpdate,
)
from app.services.email_service import email_service
from app.services.notification_service import notification_manager

router = APIRouter()

DEFAULT_BRANCH = "General"


def current_academic_year(now: Optional[datetime] = None) -> str:
    """Academic years start in July"""
    now = now or datetime.utcnow()
    if now.month >= 7:
        return f"{now.year}-{now.year + 1}"
    return f"{now.year - 1}-{now.year}"


def _parse_int(value) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def resolve_semester(semester, user_semester) -> int:
    parsed = _parse_int(semester)
    if parsed is not None:
        return parsed
    parsed = _parse_int(user_semester)
    return parsed if parsed is not None else 0


def _parse_status(value: Optional[str]) -> Optional[ProjectStatus]:
    try:
        return ProjectStatus(value)
    except ValueError:
        return None


def _paginate(total: int, page: int, limit: int, count: int) -> dict:
    return {
        "current": page,
        "total": math.ceil(total / limit) if limit else 0,
        "count": count,
        "totalProjects": total,
    }


async def _get_project(db: AsyncSession, project_id: str) -> Project:
    result = await db.execute(select(Project).where(Project.id == project_id))
    project = result.scalar_one_or_none()
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    return project


async def _get_request(db: AsyncSession, request_id: str) -> ProjectRequest:
    result = await db.execute(select(ProjectRequest).where(ProjectRequest.id == request_id))
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Request not found")
    return record


async def can_student_download(db: AsyncSession, user_id: str) -> bool:
    """Students unlock downloads once one of their projects with a PDF is approved"""
    result = await db.execute(
        select(Project.id).where(
            Project.student_id == str(user_id),
            Project.status == ProjectStatus.APPROVED,
            Project.pdf_url.is_not(None),
            Project.pdf_url != "",
        ).limit(1)
    )
    return result.first() is not None


async def _page_of(db: AsyncSession, query, page: int, limit: int):
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(Project.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    return total, result.scalars().all()


def _apply_filters(query, category: Optional[str], branch: Optional[str], semester: Optional[int]):
    if category:
        query = query.where(Project.category == category)
    if branch:
        query = query.where(Project.branch == branch)
    if semester is not None:
        query = query.where(Project.semester == semester)
    return query


@router.post("/create", status_code=status.HTTP_201_CREATED)
async def create_project(
    data: ProjectCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if not data.title or not data.description or not data.category:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Required fields are missing.")

    is_admin = current_user.is_admin
    project = Project(
        title=data.title.strip(),
        description=data.description,
        category=data.category,
        branch=data.branch or current_user.branch or data.category or DEFAULT_BRANCH,
        semester=resolve_semester(data.semester, current_user.semester),
        student_id=str(current_user.id),
        student_name=data.student_name or current_user.name,
        github_link=data.github_link,
        demo_link=data.demo_link,
        simulation_link=data.simulation_link or None,
        cover_photo=data.cover_photo or None,
        pdf_url=data.pdf_url,
        image_urls=data.image_urls,
        video_url=data.video_url,
        collaborators=data.collaborators,
        team_members=data.team_members,
        tags=data.tags,
        tech_stack=data.tech_stack,
        mentor=data.mentor,
        timeline=data.timeline,
        difficulty=data.difficulty,
        project_type=data.project_type or "mini",
        project_category=data.project_category or data.project_type or "mini",
        academic_year=data.academic_year or current_academic_year(),
        is_public=data.is_public,
        is_admin_project=data.is_admin_project or is_admin,
        status=ProjectStatus.APPROVED if is_admin else ProjectStatus.PENDING,
    )
    db.add(project)
    await db.commit()
    await db.refresh(project)

    logger.info(f"[Projects] '{project.title}' created by {current_user.email} ({project.status.value})")
    return {"message": "Project created successfully", "project": ProjectResponse.dump(project)}


@router.get("/public")
async def public_projects(
    category: Optional[str] = Query(None),
    branch: Optional[str] = Query(None),
    semester: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db)
):
    """Approved student projects and public admin showcases"""
    query = select(Project).where(
        Project.status == ProjectStatus.APPROVED,
        or_(Project.is_admin_project.is_(False), Project.is_public.is_(True)),
    )
    query = _apply_filters(query, category, branch, semester)

    total, projects = await _page_of(db, query, page, limit)
    return {
        "projects": ProjectResponse.dump_many(projects),
        "pagination": _paginate(total, page, limit, len(projects)),
    }


@router.get("/requests/all")
async def list_project_requests(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(ProjectRequest).order_by(ProjectRequest.created_at.desc()))
    return ProjectRequestResponse.dump_many(result.scalars().all())


@router.post("/requests", status_code=status.HTTP_201_CREATED)
@public_form_rate_limit()
async def submit_project_request(
    request: Request,
    data: ProjectRequestCreate,
    db: AsyncSession = Depends(get_db)
):
    record = ProjectRequest(
        name=data.name.strip(),
        email=data.email.strip().lower(),
        phone=data.phone,
        branch=data.branch,
        semester=data.semester,
        project_idea=data.project_idea,
        description=data.description,
        required_tools=data.required_tools,
        deadline=data.deadline,
        notes=data.notes,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)

    if await email_service.send_project_request_alert(record):
        record.admin_alert_email_sent_at = datetime.utcnow()
        await db.commit()
        await db.refresh(record)

    await notification_manager.notify_project_request({
        "id": record.id,
        "name": record.name,
        "email": record.email,
        "title": record.project_idea,
        "preview": (record.description or "")[:160],
        "createdAt": record.created_at.isoformat(),
    })

    return {"message": "Project request submitted successfully", "request": ProjectRequestResponse.dump(record)}


@router.patch("/requests/{request_id}/view")
async def mark_request_viewed(
    request_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    record = await _get_request(db, request_id)
    record.viewed_at = datetime.utcnow()
    await db.commit()
    return {"ok": True, "viewedAt": record.viewed_at.isoformat()}


@router.post("/requests/{request_id}/reply")
async def reply_to_request(
    request_id: str,
    data: AdminReply,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    record = await _get_request(db, request_id)

    email_sent = await email_service.send_admin_reply(
        to_email=record.email,
        recipient_name=record.name,
        reply_subject=data.reply_subject,
        header_text=data.header_text,
        message_text=data.message_text,
        footer_text=data.footer_text,
        regarding=record.project_idea,
    )

    now = datetime.utcnow()
    record.status = ProjectRequestStatus.REPLIED
    record.viewed_at = record.viewed_at or now
    # Reassign so the JSON column is flagged dirty
    record.reply_history = list(record.reply_history or []) + [{
        "subject": data.reply_subject,
        "headerText": data.header_text,
        "messageText": data.message_text,
        "footerText": data.footer_text,
        "sentAt": now.isoformat(),
        "adminId": str(current_user.id),
        "adminName": current_user.name or "Admin",
        "emailSent": email_sent,
    }]
    await db.commit()

    return {"ok": True, "emailSent": email_sent, "status": ProjectRequestStatus.REPLIED.value}


@router.put("/requests/{request_id}/status")
async def update_request_status(
    request_id: str,
    data: RequestStatusUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if not data.status:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Status is required")

    record = await _get_request(db, request_id)
    record.workflow_status = data.status
    await db.commit()
    return {"message": "Request status updated"}


@router.delete("/requests/{request_id}")
async def delete_request(
    request_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    record = await _get_request(db, request_id)
    await db.delete(record)
    await db.commit()
    return {"ok": True, "message": "Request deleted successfully"}


@router.get("/")
async def list_projects(
    category: Optional[str] = Query(None),
    branch: Optional[str] = Query(None),
    semester: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = _apply_filters(select(Project), category, branch, semester)

    if status_filter:
        parsed = _parse_status(status_filter)
        if parsed is None:
            return {"projects": [], "pagination": _paginate(0, page, limit, 0)}
        query = query.where(Project.status == parsed)

    if not current_user.is_admin:
        query = query.where(or_(
            and_(
                Project.is_admin_project.is_(True),
                Project.is_public.is_(True),
                Project.status == ProjectStatus.APPROVED,
            ),
            Project.student_id == str(current_user.id),
        ))

    total, projects = await _page_of(db, query, page, limit)
    return {
        "projects": ProjectResponse.dump_many(projects),
        "pagination": _paginate(total, page, limit, len(projects)),
    }


@router.get("/{project_id}/public")
async def get_public_project(project_id: str, db: AsyncSession = Depends(get_db)):
    project = await _get_project(db, project_id)
    if project.status != ProjectStatus.APPROVED:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="This project is not publicly available")

    project.views = (project.views or 0) + 1
    await db.commit()
    return ProjectResponse.dump(project)


@router.get("/{project_id}/can-download")
async def check_can_download(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if current_user.is_admin:
        return {"canDownload": True}
    return {"canDownload": await can_student_download(db, current_user.id)}


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    project = await _get_project(db, project_id)
    project.views = (project.views or 0) + 1
    await db.commit()

    if current_user.is_admin or project.is_admin_project:
        can_download = True
    else:
        can_download = await can_student_download(db, current_user.id)

    return {"project": ProjectResponse.dump(project), "canDownload": can_download}


@router.put("/{project_id}")
async def update_project(
    project_id: str,
    data: ProjectUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    project = await _get_project(db, project_id)
    if not current_user.is_admin and project.student_id != str(current_user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to update this project")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(project, field, value)

    await db.commit()
    await db.refresh(project)
    return {"message": "Project updated successfully", "project": ProjectResponse.dump(project)}


@router.post("/{project_id}/approve")
async def review_project(
    project_id: str,
    data: ProjectReview,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    project = await _get_project(db, project_id)
    project.status = data.status
    project.admin_feedback = data.feedback or ""
    await db.commit()

    logger.info(f"[Projects] '{project.title}' {data.status.value} by {current_user.email}")
    return {"message": f"Project {data.status.value} successfully"}


@router.post("/{project_id}/convert-to-admin")
async def convert_to_admin_project(
    project_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    project = await _get_project(db, project_id)
    if project.is_admin_project:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project is already an admin project")

    project.is_admin_project = True
    project.status = ProjectStatus.APPROVED
    await db.commit()
    await db.refresh(project)

    return {
        "message": "Project converted to admin project successfully",
        "project": ProjectResponse.dump(project),
    }


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    project = await _get_project(db, project_id)
    await db.delete(project)
    await db.commit()
    return {"message": "Project deleted successfully"}


@router.post("/{project_id}/like")
async def like_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    project = await _get_project(db, project_id)
    project.likes = (project.likes or 0) + 1
    await db.commit()
    return {"likes": project.likes}

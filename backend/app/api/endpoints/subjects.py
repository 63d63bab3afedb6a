"""
Subjects API

Curriculum subjects per branch and semester: listing, grouping, admin
CRUD and bulk import.
"""

import time
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.logging_config import logger
from app.models.subject import Subject
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.subject import (
    SubjectCreate,
    SubjectUpdate,
    BulkImportRequest,
    SubjectResponse,
    CommonSubjectResponse,
)
from app.services.notification_service import notification_manager, EventType

router = APIRouter()

DEFAULT_BRANCHES = [
    "Computer Engineering",
    "Information Technology",
    "Electronics & Telecommunication",
    "Mechanical Engineering",
    "Electrical Engineering",
    "Civil Engineering",
    "Automobile Engineering",
    "Instrumentation Engineering",
    "Artificial Intelligence & Machine Learning (AIML)",
    "Mechatronics Engineering",
]

DEFAULT_SEMESTERS = [1, 2, 3, 4, 5, 6]


def _branch_matches(branch: str):
    return func.lower(Subject.branch) == branch.strip().lower()


async def _get_subject(db: AsyncSession, subject_id: str) -> Subject:
    result = await db.execute(select(Subject).where(Subject.id == subject_id))
    subject = result.scalar_one_or_none()
    if not subject:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    return subject


async def _code_taken(db: AsyncSession, code: str, branch: str, exclude_id: Optional[str] = None) -> bool:
    query = select(Subject.id).where(
        func.upper(Subject.code) == code.upper(),
        _branch_matches(branch),
    )
    if exclude_id:
        query = query.where(Subject.id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.first() is not None


@router.get("/")
async def list_subjects(
    branch: Optional[str] = Query(None),
    semester: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    query = select(Subject)
    if branch:
        query = query.where(_branch_matches(branch))
    if semester is not None:
        query = query.where(Subject.semester == semester)

    result = await db.execute(query.order_by(Subject.semester, Subject.name))
    return SubjectResponse.dump_many(result.scalars().all())


@router.get("/branches")
async def list_branches(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(Subject.branch).distinct().order_by(Subject.branch))
    branches = [b for b in result.scalars().all() if b]
    return branches or DEFAULT_BRANCHES


@router.get("/branches/{branch}/semesters")
async def list_semesters(
    branch: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Subject.semester).where(_branch_matches(branch)).distinct().order_by(Subject.semester)
    )
    semesters = list(result.scalars().all())
    return semesters or DEFAULT_SEMESTERS


@router.get("/common")
async def list_common_subjects(
    semester: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Subjects shared across branches, shaped for the material upload form"""
    query = select(Subject).where(Subject.is_common.is_(True))
    if semester is not None:
        query = query.where(Subject.semester == semester)

    result = await db.execute(query.order_by(Subject.semester, Subject.name))
    return [
        CommonSubjectResponse(
            subject_id=str(s.id),
            subject_name=s.name,
            subject_code=s.code,
            semester=s.semester,
            branch=s.branch,
        ).model_dump(by_alias=True)
        for s in result.scalars().all()
    ]


@router.get("/branch/{branch}")
async def subjects_by_branch(
    branch: str,
    semester: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Subjects of one branch grouped as {"<semester>": [...]}"""
    query = select(Subject).where(_branch_matches(branch))
    if semester is not None:
        query = query.where(Subject.semester == semester)

    result = await db.execute(query.order_by(Subject.semester, Subject.name))
    grouped: Dict[str, List[dict]] = {}
    for subject in result.scalars().all():
        grouped.setdefault(str(subject.semester), []).append(SubjectResponse.dump(subject))

    logger.debug(f"[Subjects] {branch}: {sum(len(v) for v in grouped.values())} subjects in {len(grouped)} semesters")

    if semester is not None:
        return {str(semester): grouped.get(str(semester), [])}
    return grouped


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_subject(
    data: SubjectCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if not data.name or not data.code or not data.branch or data.semester is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Name, code, branch, and semester are required"
        )

    code = data.code.strip().upper()
    branch = data.branch.strip()
    if await _code_taken(db, code, branch):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Subject with code {code} already exists for branch {branch}"
        )

    subject = Subject(
        name=data.name.strip(),
        code=code,
        branch=branch,
        semester=data.semester,
        credits=data.credits,
        hours=data.hours,
        type=data.type or "Theory",
        description=(data.description or "").strip(),
        is_common=data.is_common,
    )
    db.add(subject)
    await db.commit()
    await db.refresh(subject)

    payload = SubjectResponse.dump(subject)
    logger.info(f"[Subjects] Created {code} ({branch}, semester {subject.semester})")
    await notification_manager.notify_subject_change(EventType.SUBJECT_CREATED, {"subject": payload})

    return {"message": "Subject added successfully", "subject": payload}


@router.post("/bulk-import")
async def bulk_import_subjects(
    data: BulkImportRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Import many subjects at once.

    Rows are validated one at a time; a bad row is reported in
    errorDetails and does not stop the rest of the batch.
    """
    items = data.subjects
    if not isinstance(items, list):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Subjects must be an array")
    if not items:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Subjects array cannot be empty")

    results = []
    errors = []

    for item in items:
        item = item if isinstance(item, dict) else {}
        name = str(item.get("name") or "").strip()
        code = str(item.get("code") or "").strip().upper()
        branch = str(item.get("branch") or "").strip()
        raw_semester = item.get("semester")

        if not name or not code or not branch or raw_semester in (None, ""):
            errors.append({
                "code": code or "N/A",
                "name": name or "N/A",
                "error": "Missing required fields: name, code, branch, and semester are required",
            })
            continue

        try:
            semester = int(raw_semester)
        except (TypeError, ValueError):
            semester = None
        if semester is None or not 1 <= semester <= 6:
            errors.append({
                "code": code,
                "name": name,
                "error": f"Invalid semester: {raw_semester}. Must be a number between 1 and 6",
            })
            continue

        if await _code_taken(db, code, branch):
            errors.append({
                "code": code,
                "name": name,
                "error": f"Subject code {code} already exists for branch {branch}",
            })
            continue

        db.add(Subject(
            name=name,
            code=code,
            branch=branch,
            semester=semester,
            credits=int(item.get("credits") or 4),
            hours=int(item.get("hours") or 60),
            type=item.get("type") or "Theory",
            description=str(item.get("description") or "").strip(),
            is_common=bool(item.get("isCommon", False)),
        ))
        await db.flush()
        results.append({"code": code, "name": name})

    await db.commit()
    logger.info(f"[Subjects] Bulk import: {len(results)} succeeded, {len(errors)} failed")
    if results:
        await notification_manager.notify_subject_change(
            EventType.SUBJECTS_IMPORTED, {"imported": len(results)}
        )

    message = f"Imported {len(results)} subject(s) successfully"
    if errors:
        message += f". {len(errors)} subject(s) failed."

    return {
        "message": message,
        "imported": len(results),
        "errors": len(errors),
        "errorDetails": errors,
        "results": results,
        "total": len(items),
    }


@router.put("/{subject_id}")
async def update_subject(
    subject_id: str,
    data: SubjectUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    subject = await _get_subject(db, subject_id)
    updates = data.model_dump(exclude_unset=True)

    if "code" in updates and updates["code"]:
        updates["code"] = updates["code"].strip().upper()
    new_code = updates.get("code") or subject.code
    new_branch = updates.get("branch") or subject.branch
    if (new_code, new_branch) != (subject.code, subject.branch):
        if await _code_taken(db, new_code, new_branch, exclude_id=subject.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Subject with code {new_code} already exists for branch {new_branch}"
            )

    for field, value in updates.items():
        if value is not None:
            setattr(subject, field, value)

    await db.commit()
    await db.refresh(subject)

    payload = SubjectResponse.dump(subject)
    await notification_manager.notify_subject_change(EventType.SUBJECT_UPDATED, {"subject": payload})

    return {"message": "Subject updated successfully", "subject": payload}


@router.delete("/all")
async def delete_all_subjects(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    started = time.perf_counter()
    result = await db.execute(delete(Subject))
    await db.commit()
    deleted = result.rowcount or 0
    logger.log_db_query("DELETE", "subjects", (time.perf_counter() - started) * 1000, deleted)

    logger.warning(f"[Subjects] All subjects deleted by {current_user.email} ({deleted})")
    await notification_manager.notify_subject_change(EventType.SUBJECT_DELETED, {"id": "all"})

    return {"message": "All subjects deleted successfully", "deletedCount": deleted}


@router.delete("/branch/{branch}")
async def delete_branch_subjects(
    branch: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    started = time.perf_counter()
    result = await db.execute(delete(Subject).where(_branch_matches(branch)))
    await db.commit()
    deleted = result.rowcount or 0
    logger.log_db_query("DELETE", "subjects", (time.perf_counter() - started) * 1000, deleted, branch=branch)

    await notification_manager.notify_subject_change(EventType.SUBJECT_DELETED, {"id": f"branch:{branch}"})

    return {
        "message": f'All subjects for branch "{branch}" deleted successfully',
        "deletedCount": deleted,
    }


@router.delete("/{subject_id}")
async def delete_subject(
    subject_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    subject = await _get_subject(db, subject_id)
    await db.delete(subject)
    await db.commit()

    await notification_manager.notify_subject_change(EventType.SUBJECT_DELETED, {"id": subject_id})

    return {"message": "Subject deleted successfully"}

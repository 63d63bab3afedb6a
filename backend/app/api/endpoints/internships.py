"""
Internship applications API

Public application form (with resume upload) and the admin review list.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import StorageError
from app.core.logging_config import logger
from app.core.rate_limiter import public_form_rate_limit
from app.models.internship import InternshipApplication, InternshipMode
from app.models.user import User
from app.modules.auth.dependencies import require_admin
from app.schemas.internship import InternshipApply, InternshipResponse
from app.services.storage_service import storage_service

router = APIRouter()

LOCATION_REQUIRED_MODES = (InternshipMode.HYBRID, InternshipMode.ONSITE)


async def _get_application(db: AsyncSession, application_id: str) -> InternshipApplication:
    result = await db.execute(select(InternshipApplication).where(InternshipApplication.id == application_id))
    application = result.scalar_one_or_none()
    if not application:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Application not found")
    return application


@router.post("/apply", status_code=status.HTTP_201_CREATED)
@public_form_rate_limit()
async def apply_for_internship(
    request: Request,
    data: InternshipApply,
    db: AsyncSession = Depends(get_db)
):
    preferred_location = (data.preferred_location or "").strip()
    if data.mode in LOCATION_REQUIRED_MODES and not preferred_location:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Preferred location is required for Hybrid or Onsite mode."
        )

    if data.resume_base64 and len(data.resume_base64) * 3 / 4 > settings.MAX_RESUME_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Resume file is too large. Maximum allowed size is 7MB."
        )

    email = data.email.strip().lower()
    semester = data.semester.strip()
    duplicate = await db.execute(
        select(InternshipApplication.id).where(
            InternshipApplication.email == email,
            InternshipApplication.semester == semester,
        ).limit(1)
    )
    if duplicate.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="You have already submitted an application for this semester."
        )

    resume_url = (data.resume_url or "").strip()
    if data.resume_base64 and data.resume_file_name:
        filename = data.resume_file_name
        if not filename.lower().endswith(".pdf"):
            filename = f"{filename}.pdf"
        try:
            uploaded = await storage_service.upload_file(
                data.resume_base64,
                filename,
                data.resume_content_type or "application/pdf",
                prefix="internships",
                local_subfolder="internships",
            )
            resume_url = uploaded["url"]
        except StorageError as e:
            logger.error(f"[Internships] Resume upload failed for {email}: {e.message}")
            resume_url = ""

    if not resume_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Resume upload failed. Please try again."
        )

    application = InternshipApplication(
        name=data.name.strip(),
        email=email,
        phone=data.phone.strip(),
        college_name=data.college_name.strip(),
        branch=data.branch,
        semester=semester,
        type=data.type,
        mode=data.mode,
        duration=str(data.duration or "").strip(),
        preferred_location=preferred_location,
        internship_type=data.internship_type,
        resume_url=resume_url,
        additional_notes=(data.additional_notes or "").strip(),
        source=data.source or "public",
        user_id=data.user_id or None,
    )
    db.add(application)
    await db.commit()
    await db.refresh(application)

    logger.info(f"[Internships] Application from {email} for semester {semester}")
    return {"message": "Application submitted successfully", "application": InternshipResponse.dump(application)}


@router.get("/")
async def list_applications(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(InternshipApplication).order_by(InternshipApplication.created_at.desc()))
    return {"applications": InternshipResponse.dump_many(result.scalars().all())}


@router.patch("/{application_id}/view")
async def mark_application_viewed(
    application_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    application = await _get_application(db, application_id)
    application.viewed_at = datetime.utcnow()
    await db.commit()
    return {"ok": True, "viewedAt": application.viewed_at.isoformat()}


@router.delete("/{application_id}")
async def delete_application(
    application_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    application = await _get_application(db, application_id)
    await db.delete(application)
    await db.commit()
    return {"success": True}

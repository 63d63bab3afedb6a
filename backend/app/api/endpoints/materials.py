"""
Materials API

Listing, admin CRUD, access-controlled downloads (free / Google Drive /
paid with single-use download tokens), ratings, the R2 proxy and base64
uploads.
"""

import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status, Query
from fastapi.responses import JSONResponse, RedirectResponse, Response
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import InvalidFileTypeError, ValidationError
from app.core.logging_config import logger
from app.models.activity_log import LogAction
from app.models.material import Material, MaterialType, AccessType, StorageType
from app.models.payment import Payment, PaymentStatus, DownloadToken
from app.models.subject import Subject
from app.models.user import User
from app.modules.auth.dependencies import get_current_user, require_admin
from app.schemas.material import (
    MaterialCreate,
    MaterialUpdate,
    MaterialResponse,
    RateRequest,
    Base64UploadRequest,
)
from app.services.activity_service import log_activity
from app.services.notification_service import notification_manager
from app.services.storage_service import storage_service, PROXY_PATH

router = APIRouter()

VALID_ACCESS_TYPES = [a.value for a in AccessType]

ALLOWED_UPLOAD_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "video/mp4",
    "video/webm",
    "audio/mpeg",
    "audio/wav",
    "application/zip",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

_LOCALHOST_RE = re.compile(r"https?://(?:localhost|127\.0\.0\.1):\d+(/.*)")
_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9_.-]")


def resolve_file_url(url: Optional[str]) -> Optional[str]:
    """
    Absolute URL a browser can follow for a stored file.

    Development hosts are stripped, direct R2 URLs go through the proxy and
    relative paths are anchored at FRONTEND_URL.
    """
    if not url:
        return None
    match = _LOCALHOST_RE.match(url)
    if match:
        url = match.group(1)
    if "r2.cloudflarestorage.com" in url:
        key = storage_service.extract_key(url)
        url = f"{PROXY_PATH}{storage_service.safe_key(key)}"
    if url.startswith("/"):
        url = f"{settings.FRONTEND_URL.rstrip('/')}{url}"
    return url


def _parse_type(value: Optional[str]) -> Optional[MaterialType]:
    try:
        return MaterialType(value)
    except ValueError:
        return None


def _normalize_access_type(value: Optional[str]) -> AccessType:
    normalized = (value or "").strip()
    if normalized in VALID_ACCESS_TYPES:
        return AccessType(normalized)
    if value:
        logger.warning(f"[Materials] Unknown accessType '{value}', defaulting to free")
    return AccessType.FREE


def _check_access_rules(access_type: AccessType, price: Optional[float], drive_url: Optional[str]) -> None:
    if access_type == AccessType.DRIVE_PROTECTED and not drive_url:
        raise ValidationError("Google Drive URL is required for drive protected materials", field="googleDriveUrl")
    if access_type == AccessType.PAID and (price or 0) <= 0:
        raise ValidationError("Price must be greater than 0 for paid materials", field="price")


async def _get_material(db: AsyncSession, material_id: str) -> Material:
    result = await db.execute(select(Material).where(Material.id == material_id))
    material = result.scalar_one_or_none()
    if not material:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Material not found")
    return material


async def _has_completed_payment(db: AsyncSession, user_id: str, material_id: str) -> bool:
    result = await db.execute(
        select(Payment.id).where(
            Payment.user_id == str(user_id),
            Payment.material_id == str(material_id),
            Payment.status == PaymentStatus.COMPLETED,
        ).limit(1)
    )
    return result.first() is not None


# ==================== Reads ====================

@router.get("/")
async def list_materials(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(Material).order_by(Material.created_at.desc()))
    return MaterialResponse.dump_many(result.scalars().all())


@router.get("/subject/{subject_code}")
async def list_materials_by_subject(
    subject_code: str,
    type: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Frontend sends subject codes (e.g. CS302); older links pass the subject id"""
    material_type = _parse_type(type) if type else None
    if type and material_type is None:
        return []

    materials = []
    for column in (Material.subject_code, Material.subject_id):
        query = select(Material).where(column == subject_code)
        if material_type:
            query = query.where(Material.type == material_type)
        result = await db.execute(query.order_by(Material.created_at.desc()))
        materials = result.scalars().all()
        if materials:
            break

    return MaterialResponse.dump_many(materials)


@router.get("/branch/{branch}")
async def list_materials_by_branch(
    branch: str,
    type: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    material_type = _parse_type(type) if type else None
    if type and material_type is None:
        return []

    query = select(Material)
    if material_type:
        query = query.where(Material.type == material_type)
    result = await db.execute(query.order_by(Material.created_at.desc()))
    # branches is a JSON list; membership is checked in Python to stay portable
    materials = [
        m for m in result.scalars().all()
        if m.branch == branch or branch in (m.branches or [])
    ]
    return MaterialResponse.dump_many(materials)


# ==================== Admin CRUD ====================

@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_material(
    body: MaterialCreate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    access_type = _normalize_access_type(body.access_type)
    _check_access_rules(access_type, body.price, body.google_drive_url)

    if not body.branch or not body.branch.strip():
        raise ValidationError("Branch must be selected", field="branch")
    subject_code = (body.subject_code or "").strip().upper()
    if not subject_code:
        raise ValidationError("Subject code is required", field="subjectCode")

    branch = body.branch.strip()
    result = await db.execute(
        select(Subject).where(
            func.lower(Subject.branch) == branch.lower(),
            func.upper(Subject.code) == subject_code,
        )
    )
    subject = result.scalars().first()
    if not subject:
        raise ValidationError(f'Subject with code "{body.subject_code}" not found in branch "{body.branch}"')

    material = Material(
        title=body.title,
        type=body.type,
        url=body.url,
        description=body.description or "",
        uploaded_by=str(current_user.id),
        subject_id=str(subject.id),
        subject_name=subject.name or body.subject_name,
        subject_code=subject.code,
        branch=subject.branch,
        branches=[subject.branch],
        semester=str(subject.semester),
        resource_type=body.resource_type or "notes",
        access_type=access_type,
        price=float(body.price) if access_type == AccessType.PAID else 0,
        google_drive_url=body.google_drive_url if access_type == AccessType.DRIVE_PROTECTED else None,
        storage_type=body.storage_type or StorageType(storage_service.detect_storage(body.url)),
        tags=body.tags or [],
        cover_photo=body.cover_photo,
    )
    db.add(material)
    await db.flush()
    await log_activity(db, LogAction.MATERIAL_UPLOADED, current_user, {
        "materialId": str(material.id),
        "title": material.title,
        "subjectCode": material.subject_code,
    }, request)
    await db.commit()

    logger.info(f"[Materials] Created '{material.title}' ({access_type.value}) for {subject.branch} - {subject.code}")
    payload = MaterialResponse.dump(material)
    await notification_manager.notify_material_uploaded(payload)

    return {"message": "Material added successfully", "materials": [payload], "count": 1}


@router.put("/{material_id}")
async def update_material(
    material_id: str,
    body: MaterialUpdate,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    updates = body.model_dump(exclude_unset=True)

    if "access_type" in updates and updates["access_type"] not in VALID_ACCESS_TYPES:
        raise ValidationError(
            f"Invalid accessType. Must be one of: {', '.join(VALID_ACCESS_TYPES)}",
            field="accessType"
        )

    material = await _get_material(db, material_id)

    access_type = AccessType(updates.pop("access_type", None) or material.access_type)
    price = updates.pop("price", material.price)
    drive_url = updates.pop("google_drive_url", material.google_drive_url)
    _check_access_rules(access_type, price, drive_url)

    for field, value in updates.items():
        setattr(material, field, value)
    material.access_type = access_type
    material.price = float(price) if access_type == AccessType.PAID else 0
    material.google_drive_url = drive_url if access_type == AccessType.DRIVE_PROTECTED else None
    if "url" in updates and "storage_type" not in updates:
        material.storage_type = StorageType(storage_service.detect_storage(material.url))

    await log_activity(db, LogAction.MATERIAL_UPDATED, current_user, {"materialId": material_id}, request)
    await db.commit()
    await db.refresh(material)

    payload = MaterialResponse.dump(material)
    await notification_manager.notify_material_updated(payload)
    return {"message": "Material updated successfully", "material": payload}


@router.delete("/{material_id}")
async def delete_material(
    material_id: str,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    material = await _get_material(db, material_id)

    if material.url:
        storage = material.storage_type.value if material.storage_type else None
        deleted = await storage_service.delete_file(material.url, storage)
        if not deleted:
            logger.warning(f"[Materials] Could not delete stored file for {material_id}: {material.url}")

    await log_activity(db, LogAction.MATERIAL_DELETED, current_user, {
        "materialId": material_id,
        "title": material.title,
    }, request)
    await db.delete(material)
    await db.commit()

    await notification_manager.notify_material_deleted(material_id)
    return {"success": True, "message": "Material deleted successfully", "id": material_id}


# ==================== Downloads ====================

@router.post("/{material_id}/download")
async def download_material(
    material_id: str,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    material = await _get_material(db, material_id)

    if material.access_type == AccessType.PAID:
        if not await _has_completed_payment(db, current_user.id, material_id):
            return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={
                "error": "Payment required to download this material",
                "requiresPayment": True,
                "materialId": material_id,
                "price": material.price,
                "accessType": material.access_type.value,
            })
        # Paid files are only served through /secure-download/{token}
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={
            "error": "Please use the secure download link to access this paid material",
            "requiresSecureDownload": True,
            "materialId": material_id,
        })

    if material.access_type == AccessType.DRIVE_PROTECTED:
        if not material.google_drive_url:
            return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={
                "error": "This material requires Google Drive access",
                "requiresDriveAccess": True,
                "materialId": material_id,
                "accessType": material.access_type.value,
            })
        material.downloads = (material.downloads or 0) + 1
        await log_activity(db, LogAction.MATERIAL_DOWNLOADED, current_user, {"materialId": material_id}, request)
        await db.commit()
        await notification_manager.notify_material_stats(material_id, material.downloads, material.rating)
        return {
            "message": "Drive link provided",
            "material": MaterialResponse.dump(material),
            "driveUrl": material.google_drive_url,
        }

    material.downloads = (material.downloads or 0) + 1
    await log_activity(db, LogAction.MATERIAL_DOWNLOADED, current_user, {"materialId": material_id}, request)
    await db.commit()
    await notification_manager.notify_material_stats(material_id, material.downloads, material.rating)

    file_url = resolve_file_url(material.url)
    if file_url:
        return RedirectResponse(file_url, status_code=status.HTTP_302_FOUND)
    return {"message": "Download count updated", "material": MaterialResponse.dump(material)}


@router.get("/secure-download/{token}")
async def secure_download(
    token: str,
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """The token is the credential; no bearer header is needed"""
    result = await db.execute(select(DownloadToken).where(DownloadToken.token == token))
    download_token = result.scalar_one_or_none()

    if not download_token or not download_token.is_valid():
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={
            "error": "Invalid or expired download link",
            "code": "INVALID_TOKEN",
        })

    forwarded = request.headers.get("x-forwarded-for")
    download_token.is_used = True
    download_token.used_at = datetime.utcnow()
    download_token.ip_address = forwarded.split(",")[0].strip() if forwarded else (
        request.client.host if request.client else None
    )
    download_token.user_agent = request.headers.get("user-agent")
    await db.commit()

    material = await _get_material(db, download_token.material_id)

    if material.access_type == AccessType.PAID and not await _has_completed_payment(
        db, download_token.user_id, material.id
    ):
        return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={
            "error": "Payment verification failed",
            "code": "PAYMENT_INVALID",
        })

    material.downloads = (material.downloads or 0) + 1
    await db.commit()
    logger.info(f"[Materials] Secure download of {material.id} by user {download_token.user_id}")

    file_url = resolve_file_url(material.url)
    if not file_url:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File URL not found")
    return RedirectResponse(file_url, status_code=status.HTTP_302_FOUND)


@router.post("/{material_id}/rate")
async def rate_material(
    material_id: str,
    body: RateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    if body.rating is None or body.rating <= 0 or body.rating > 5:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Rating must be between 0 and 5")

    material = await _get_material(db, material_id)
    material.add_rating(body.rating)
    await db.commit()

    await notification_manager.notify_material_stats(material_id, material.downloads, material.rating)
    return {"message": "Rating updated successfully", "material": MaterialResponse.dump(material)}


# ==================== Storage ====================

@router.get("/proxy/{storage}/{key:path}")
async def proxy_file(storage: str, key: str):
    """Serve an R2 object through the API (no public bucket URL needed)"""
    if storage != "r2":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported storage type: {storage}. Supported: 'r2'"
        )

    stored = await storage_service.get_object(storage_service.extract_key(key))
    return Response(
        content=stored.body,
        media_type=stored.content_type,
        headers={
            "Content-Disposition": "inline",
            "Cache-Control": "public, max-age=31536000",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
        },
    )


@router.post("/upload-base64", status_code=status.HTTP_201_CREATED)
async def upload_base64(
    body: Base64UploadRequest,
    current_user: User = Depends(get_current_user)
):
    if not body.filename or not body.data_base64:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="filename and dataBase64 are required")

    if body.content_type and body.content_type not in ALLOWED_UPLOAD_TYPES:
        raise InvalidFileTypeError(body.content_type, "PDF, images, videos, audio, ZIP, DOCX")

    max_size = settings.MAX_MATERIAL_UPLOAD_SIZE
    if len(body.data_base64) * 3 / 4 > max_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Maximum size is {max_size // (1024 * 1024)}MB"
        )

    safe_name = _UNSAFE_FILENAME_RE.sub("_", body.filename)
    folder = "materials" if current_user.is_admin else "projects"
    content_type = body.content_type or "application/octet-stream"

    result = await storage_service.upload_file(body.data_base64, safe_name, content_type, folder, folder)
    logger.info(f"[Storage] {current_user.email} uploaded {safe_name} to {result['storage']}")

    return {"url": result["url"], "contentType": content_type, "storage": result["storage"]}

"""
Contact API

Public contact form and the admin message center.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.rate_limiter import public_form_rate_limit
from app.models.contact import ContactMessage
from app.models.user import User
from app.modules.auth.dependencies import require_admin
from app.schemas.contact import ContactMessageCreate, ContactMessageResponse
from app.schemas.project import AdminReply
from app.services.email_service import email_service
from app.services.notification_service import notification_manager

router = APIRouter()


async def _get_message(db: AsyncSession, message_id: str) -> ContactMessage:
    result = await db.execute(select(ContactMessage).where(ContactMessage.id == message_id))
    message = result.scalar_one_or_none()
    if not message:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return message


@router.post("/messages")
@public_form_rate_limit()
async def submit_message(
    request: Request,
    data: ContactMessageCreate,
    db: AsyncSession = Depends(get_db)
):
    message = ContactMessage(
        name=data.name.strip(),
        email=data.email.strip().lower(),
        phone=data.phone,
        subject=data.subject.strip(),
        message=data.message,
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)

    admin_email_sent = await email_service.send_contact_alert(
        message.name, message.email, message.phone, message.subject, message.message
    )
    if admin_email_sent:
        message.admin_alert_email_sent_at = datetime.utcnow()
        await db.commit()

    await notification_manager.notify_contact_message({
        "id": message.id,
        "name": message.name,
        "email": message.email,
        "subject": message.subject,
        "preview": message.message[:160],
        "createdAt": message.created_at.isoformat(),
    })

    return {"ok": True, "id": message.id, "adminEmailSent": admin_email_sent}


@router.get("/messages")
async def list_messages(
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(select(ContactMessage).order_by(ContactMessage.created_at.desc()))
    return ContactMessageResponse.dump_many(result.scalars().all())


@router.patch("/messages/{message_id}/view")
async def mark_message_viewed(
    message_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    message = await _get_message(db, message_id)
    message.viewed_at = datetime.utcnow()
    await db.commit()
    return {"ok": True, "viewedAt": message.viewed_at.isoformat()}


@router.post("/messages/{message_id}/reply")
async def reply_to_message(
    message_id: str,
    data: AdminReply,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    message = await _get_message(db, message_id)

    email_sent = await email_service.send_admin_reply(
        to_email=message.email,
        recipient_name=message.name,
        reply_subject=data.reply_subject,
        header_text=data.header_text,
        message_text=data.message_text,
        footer_text=data.footer_text,
        regarding=message.subject,
    )

    now = datetime.utcnow()
    message.status = "replied"
    message.viewed_at = message.viewed_at or now
    message.reply_history = list(message.reply_history or []) + [{
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

    return {"ok": True, "emailSent": email_sent, "status": "replied"}


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    message = await _get_message(db, message_id)
    await db.delete(message)
    await db.commit()
    return {"ok": True, "message": "Message deleted successfully"}

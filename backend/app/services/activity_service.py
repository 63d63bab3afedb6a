from typing import Optional, Dict, Any, List

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging_config import logger
from app.models.activity_log import ActivityLog, LogAction
from app.models.user import User


def _client_ip(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


async def log_activity(
    db: AsyncSession,
    action: LogAction,
    user: Optional[User] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> ActivityLog:
    """
    Append an entry to the activity trail.

    The row is added to the caller's session and flushed; it commits with
    the surrounding request.
    """
    entry = ActivityLog(
        action=action,
        user_id=str(user.id) if user else None,
        user_email=user.email if user else None,
        user_name=user.name if user else None,
        details=details or {},
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent") if request else None,
    )
    db.add(entry)
    await db.flush()
    logger.debug(f"[Activity] {action.value} by {entry.actor}")
    return entry


def format_log(entry: ActivityLog) -> Dict[str, Any]:
    """Shape used by the analytics and dashboard activity feeds"""
    return {
        "id": str(entry.id),
        "action": entry.action.value if entry.action else None,
        "description": entry.label,
        "user": entry.actor,
        "userId": entry.user_id,
        "details": entry.details or {},
        "ipAddress": entry.ip_address,
        "timestamp": entry.timestamp.isoformat() if entry.timestamp else None,
    }


def format_logs(entries: List[ActivityLog]) -> List[Dict[str, Any]]:
    return [format_log(e) for e in entries]

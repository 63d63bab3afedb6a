"""
System endpoints: health probe and the maintenance switch
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.logging_config import logger
from app.models.activity_log import LogAction
from app.models.user import User
from app.modules.auth.dependencies import require_admin
from app.services.activity_service import log_activity
from app.services.maintenance_service import load_maintenance_state, set_maintenance_mode
from app.services.notification_service import notification_manager, EventType

router = APIRouter()


class MaintenanceToggle(BaseModel):
    maintenance: Optional[bool] = None


@router.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus a database round trip"""
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        database = "unavailable"

    return {
        "ok": True,
        "environment": settings.ENVIRONMENT,
        "database": database,
    }


@router.get("/system/maintenance", tags=["System"])
async def get_maintenance(db: AsyncSession = Depends(get_db)):
    enabled = await load_maintenance_state(db)
    return {"maintenance": enabled}


@router.post("/system/maintenance", tags=["System"])
async def update_maintenance(
    body: MaintenanceToggle,
    request: Request,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    if body.maintenance is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="maintenance must be a boolean"
        )

    await log_activity(db, LogAction.MAINTENANCE_TOGGLED, current_user, {"maintenance": body.maintenance}, request)
    enabled = await set_maintenance_mode(db, body.maintenance, str(current_user.id))

    await notification_manager.broadcast(EventType.MAINTENANCE_CHANGED, {"maintenance": enabled})

    return {
        "maintenance": enabled,
        "message": f"Maintenance mode {'enabled' if enabled else 'disabled'}",
    }

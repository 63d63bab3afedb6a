"""
Maintenance mode state.

The flag lives in the system_settings row "maintenance_mode" so it survives
restarts; `maintenance_state` caches it in process for the middleware, which
checks it on every request.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging_config import logger
from app.models.system_setting import SystemSetting


MAINTENANCE_SETTING_KEY = "maintenance_mode"


@dataclass
class MaintenanceState:
    enabled: bool = False


maintenance_state = MaintenanceState()


async def load_maintenance_state(db: AsyncSession) -> bool:
    """Refresh the cached flag from the database"""
    result = await db.execute(
        select(SystemSetting.value).where(SystemSetting.key == MAINTENANCE_SETTING_KEY)
    )
    value = result.scalar_one_or_none()
    maintenance_state.enabled = bool(value)
    return maintenance_state.enabled


async def set_maintenance_mode(db: AsyncSession, enabled: bool, user_id: Optional[str] = None) -> bool:
    """Persist the flag, committing the session; the cache changes only once the commit succeeds"""
    result = await db.execute(
        select(SystemSetting).where(SystemSetting.key == MAINTENANCE_SETTING_KEY)
    )
    setting = result.scalar_one_or_none()

    if setting is None:
        setting = SystemSetting(
            key=MAINTENANCE_SETTING_KEY,
            value=enabled,
            category="maintenance",
            description="Block non-admin traffic while the site is under maintenance",
            updated_by=user_id,
        )
        db.add(setting)
    else:
        setting.value = enabled
        setting.updated_by = user_id

    await db.commit()
    maintenance_state.enabled = enabled
    logger.info(f"[Maintenance] Maintenance mode {'enabled' if enabled else 'disabled'} by {user_id or 'system'}")
    return enabled

"""
Unit Tests for the persisted maintenance flag
"""
import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.models.system_setting import SystemSetting
from app.services.maintenance_service import (
    MAINTENANCE_SETTING_KEY,
    load_maintenance_state,
    maintenance_state,
    set_maintenance_mode,
)


class TestSetMaintenanceMode:

    async def test_persists_and_caches(self, db_session):
        enabled = await set_maintenance_mode(db_session, True, 'admin-1')

        assert enabled is True
        assert maintenance_state.enabled is True
        setting = (await db_session.execute(
            select(SystemSetting).where(SystemSetting.key == MAINTENANCE_SETTING_KEY)
        )).scalar_one()
        assert setting.value is True
        assert setting.updated_by == 'admin-1'

    async def test_failed_commit_leaves_cache_alone(self, db_session):
        failure = AsyncMock(side_effect=OperationalError('COMMIT', {}, Exception('database is locked')))

        with patch.object(db_session, 'commit', failure):
            with pytest.raises(OperationalError):
                await set_maintenance_mode(db_session, True, 'admin-1')

        assert maintenance_state.enabled is False

    async def test_reload_from_database(self, db_session):
        await set_maintenance_mode(db_session, True)
        maintenance_state.enabled = False

        assert await load_maintenance_state(db_session) is True
        assert maintenance_state.enabled is True

"""
Unit Tests for the auth dependencies
"""
import pytest
from datetime import timedelta
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from app.core.security import create_access_token, create_user_token, create_password_reset_token
from app.modules.auth.dependencies import (
    get_current_user,
    get_current_user_allow_expired,
    get_optional_user,
    require_admin,
    require_student,
)


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


def expired_token(user) -> str:
    return create_access_token({"sub": str(user.id)}, expires_delta=timedelta(minutes=-1))


class TestStrictAuth:

    async def test_missing_token(self, db_session):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(None, db_session)

        assert exc.value.status_code == 401
        assert exc.value.detail == "Access token required"

    async def test_valid_token(self, db_session, test_user):
        user = await get_current_user(bearer(create_user_token(test_user)), db_session)

        assert user.id == test_user.id

    async def test_expired_token(self, db_session, test_user):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(bearer(expired_token(test_user)), db_session)

        assert exc.value.status_code == 401
        assert exc.value.detail == "Token expired"

    async def test_malformed_token(self, db_session):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(bearer("garbage"), db_session)

        assert exc.value.status_code == 403
        assert exc.value.detail == "Invalid token"

    async def test_password_reset_token_rejected(self, db_session, test_user):
        with pytest.raises(HTTPException) as exc:
            await get_current_user(bearer(create_password_reset_token(test_user.id)), db_session)

        assert exc.value.status_code == 403

    async def test_unknown_user(self, db_session):
        token = create_access_token({"sub": "00000000-0000-0000-0000-000000000000"})

        with pytest.raises(HTTPException) as exc:
            await get_current_user(bearer(token), db_session)

        assert exc.value.status_code == 401

    async def test_deactivated_user(self, db_session, test_user):
        test_user.is_active = False
        await db_session.commit()

        with pytest.raises(HTTPException) as exc:
            await get_current_user(bearer(create_user_token(test_user)), db_session)

        assert exc.value.status_code == 403
        assert exc.value.detail == "Account is deactivated"


class TestAllowExpired:

    async def test_accepts_expired_token(self, db_session, test_user):
        user = await get_current_user_allow_expired(bearer(expired_token(test_user)), db_session)

        assert user.id == test_user.id

    async def test_still_rejects_malformed_token(self, db_session):
        with pytest.raises(HTTPException) as exc:
            await get_current_user_allow_expired(bearer("garbage"), db_session)

        assert exc.value.status_code == 403


class TestOptionalAndRoles:

    async def test_optional_user_none_without_token(self, db_session):
        assert await get_optional_user(None, db_session) is None

    async def test_optional_user_none_for_bad_token(self, db_session):
        assert await get_optional_user(bearer("garbage"), db_session) is None

    async def test_require_admin_rejects_student(self, test_user):
        with pytest.raises(HTTPException) as exc:
            await require_admin(test_user)

        assert exc.value.status_code == 403
        assert exc.value.detail == "Admin access required"

    async def test_require_admin_accepts_admin(self, admin_user):
        assert await require_admin(admin_user) is admin_user

    async def test_require_student_rejects_admin(self, admin_user):
        with pytest.raises(HTTPException) as exc:
            await require_student(admin_user)

        assert exc.value.status_code == 403

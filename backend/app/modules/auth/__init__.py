# Authentication module

from app.modules.auth.dependencies import (
    get_current_user,
    get_current_user_allow_expired,
    get_optional_user,
    require_admin,
    require_student,
)

__all__ = [
    "get_current_user",
    "get_current_user_allow_expired",
    "get_optional_user",
    "require_admin",
    "require_student",
]

"""Identity resolution, roles and staff profiles."""

from .dependencies import (
    RoleChecker,
    get_current_user,
    require_accounts,
    require_admin,
    require_partner,
    require_staff,
    require_support,
)
from .models import CurrentUser, Role, home_path

__all__ = [
    "CurrentUser",
    "Role",
    "RoleChecker",
    "get_current_user",
    "home_path",
    "require_accounts",
    "require_admin",
    "require_partner",
    "require_staff",
    "require_support",
]

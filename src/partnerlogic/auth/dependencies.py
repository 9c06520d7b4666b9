"""
FastAPI dependencies for resolving the caller and gating by role.
"""

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..db import get_async_session
from ..exceptions import PermissionDeniedError
from ..settings import settings
from .models import CurrentUser, Role
from .service import IdentityService

logger = structlog.get_logger(__name__)


async def get_current_user(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
) -> CurrentUser:
    """Resolve the caller from the auth user id header set by the gateway."""
    auth_user_id = request.headers.get(settings.auth.user_id_header)
    return await IdentityService(session).resolve(auth_user_id)


class RoleChecker:
    """
    Dependency class for checking roles.
    """

    def __init__(self, roles: list[Role], error_message: str | None = None):
        self.roles = roles
        self.error_message = error_message or "Forbidden: insufficient role"

    async def __call__(self, current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        """Check if current user holds one of the required roles."""
        if current_user.role not in self.roles:
            logger.warning(
                "auth.role_check.failed",
                auth_user_id=current_user.auth_user_id,
                role=current_user.role.value,
                required=[r.value for r in self.roles],
            )
            raise PermissionDeniedError(self.error_message, [r.value for r in self.roles])
        return current_user


require_admin = RoleChecker([Role.ADMIN], "Forbidden: Admin access required")
require_partner = RoleChecker([Role.PARTNER], "Forbidden: Partner access required")
require_staff = RoleChecker(
    [Role.ADMIN, Role.PARTNER_MANAGER],
    "Forbidden: Admin or partner manager access required",
)
require_accounts = RoleChecker(
    [Role.ADMIN, Role.ACCOUNT_USER],
    "Forbidden: Accounts access required",
)
require_support = RoleChecker(
    [Role.ADMIN, Role.SUPPORT_USER],
    "Forbidden: Support access required",
)

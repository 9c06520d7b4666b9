"""
Identity resolution, staff profile management and admin password resets.
"""

import re
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import (
    AuthenticationRequiredError,
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..logging import log_audit_event
from ..notifications import NotificationService, templates
from ..partners.models import Partner
from ..settings import settings
from .client import AuthAdminClient
from .models import (
    PROFILE_MODELS,
    AdminProfile,
    CurrentUser,
    ProfileCreate,
    ProfileMixin,
    ProfileUpdate,
    Role,
    home_path,
)

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

# Path prefix owned by each role's area of the application.
ROLE_SECTIONS: list[tuple[str, Role]] = [
    ("/admin", Role.ADMIN),
    ("/partner-manager", Role.PARTNER_MANAGER),
    ("/accounts", Role.ACCOUNT_USER),
    ("/support", Role.SUPPORT_USER),
    ("/dashboard", Role.PARTNER),
]


def is_valid_email(value: str | None) -> bool:
    return bool(value) and EMAIL_PATTERN.search(value or "") is not None


def redirect_for(role: Role, path: str) -> str | None:
    """Where a user should be sent when ``path`` belongs to another role's area.

    Returns None when the user may stay on ``path``.
    """
    for prefix, owner in ROLE_SECTIONS:
        if path == prefix or path.startswith(prefix + "/"):
            return None if owner == role else home_path(role)
    return None


class IdentityService:
    """Resolve a hosted auth user id to a role and profile."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, auth_user_id: str | None) -> CurrentUser:
        """Resolve the caller.

        Precedence is admin, partner manager, account user, support user, then
        partner. Inactive account and support users are not matched.
        """
        if not auth_user_id:
            raise AuthenticationRequiredError()

        for role in (Role.ADMIN, Role.PARTNER_MANAGER, Role.ACCOUNT_USER, Role.SUPPORT_USER):
            model = PROFILE_MODELS[role]
            query = select(model).where(model.auth_user_id == auth_user_id)
            if role in (Role.ACCOUNT_USER, Role.SUPPORT_USER):
                query = query.where(model.is_active.is_(True))
            profile = (await self.session.execute(query)).scalar_one_or_none()
            if profile is not None:
                return CurrentUser(
                    auth_user_id=auth_user_id,
                    role=role,
                    profile_id=profile.id,
                    email=profile.email,
                    name=profile.full_name,
                )

        partner = (
            await self.session.execute(select(Partner).where(Partner.auth_user_id == auth_user_id))
        ).scalar_one_or_none()
        if partner is not None:
            return CurrentUser(
                auth_user_id=auth_user_id,
                role=Role.PARTNER,
                profile_id=partner.id,
                email=partner.email,
                name=partner.full_name,
            )

        logger.warning("auth.resolve.unknown_user", auth_user_id=auth_user_id)
        raise AuthenticationRequiredError("No profile found for this user")


class ProfileService:
    """CRUD over one staff profile table."""

    def __init__(self, session: AsyncSession, role: Role):
        if role not in PROFILE_MODELS:
            raise ValidationError(f"Unsupported staff role: {role.value}")
        self.session = session
        self.role = role
        self.model = PROFILE_MODELS[role]

    def _validate(self, first_name: str, last_name: str, email: str) -> None:
        if not first_name:
            raise ValidationError("First name is required", field="first_name")
        if not last_name:
            raise ValidationError("Last name is required", field="last_name")
        if not email:
            raise ValidationError("Email is required", field="email")
        if not is_valid_email(email):
            raise ValidationError("Please enter a valid email address", field="email")

    async def create(self, data: ProfileCreate) -> ProfileMixin:
        self._validate(data.first_name, data.last_name, data.email)

        existing = await self.session.execute(
            select(self.model).where(
                or_(
                    self.model.auth_user_id == data.auth_user_id,
                    func.lower(self.model.email) == data.email.lower(),
                )
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError(
                f"A {self.role.value.replace('_', ' ')} with this email or user already exists",
                email=data.email,
            )

        profile = self.model(**data.model_dump())
        self.session.add(profile)
        await self.session.commit()
        await self.session.refresh(profile)

        logger.info("profile.created", role=self.role.value, profile_id=str(profile.id))
        return profile

    async def get(self, profile_id: UUID) -> ProfileMixin:
        profile = await self.session.get(self.model, profile_id)
        if profile is None:
            raise NotFoundError(self.role.value.replace("_", " ").title(), profile_id)
        return profile

    async def list_profiles(
        self, search: str | None = None, active_only: bool = False
    ) -> list[ProfileMixin]:
        query = select(self.model)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(
                or_(
                    func.lower(self.model.first_name).like(pattern),
                    func.lower(self.model.last_name).like(pattern),
                    func.lower(self.model.email).like(pattern),
                )
            )
        if active_only:
            query = query.where(self.model.is_active.is_(True))
        result = await self.session.execute(query.order_by(self.model.created_at.desc()))
        return list(result.scalars().all())

    async def update(self, profile_id: UUID, data: ProfileUpdate) -> ProfileMixin:
        profile = await self.get(profile_id)
        changes = data.model_dump(exclude_unset=True)
        for key, value in changes.items():
            setattr(profile, key, value)
        self._validate(profile.first_name, profile.last_name, profile.email)

        await self.session.commit()
        await self.session.refresh(profile)
        logger.info("profile.updated", role=self.role.value, profile_id=str(profile_id))
        return profile

    async def delete(self, profile_id: UUID) -> None:
        profile = await self.get(profile_id)
        await self.session.delete(profile)
        await self.session.commit()
        logger.info("profile.deleted", role=self.role.value, profile_id=str(profile_id))


class PasswordResetService:
    """Admin-initiated password change delegated to the hosted auth API."""

    def __init__(self, session: AsyncSession, client: AuthAdminClient):
        self.session = session
        self.client = client

    async def reset_password(
        self, user_id: str | None, new_password: str | None, admin_auth_user_id: str | None
    ) -> None:
        if not user_id or not new_password or not admin_auth_user_id:
            raise ValidationError(
                "User ID, new password, and admin ID are required", status_code=400
            )

        if len(new_password) < settings.auth.min_password_length:
            raise ValidationError(
                f"Password must be at least {settings.auth.min_password_length} characters long",
                field="new_password",
                status_code=400,
            )

        admin = (
            await self.session.execute(
                select(AdminProfile).where(AdminProfile.auth_user_id == admin_auth_user_id)
            )
        ).scalar_one_or_none()
        if admin is None:
            logger.warning("auth.password_reset.forbidden", requested_by=admin_auth_user_id)
            raise PermissionDeniedError("Forbidden: Admin access required")

        await self.client.update_user_password(user_id, new_password)

        log_audit_event(
            "auth.password_reset",
            "security",
            user_id=admin_auth_user_id,
            resource_type="auth_user",
            resource_id=user_id,
        )

        try:
            await NotificationService(self.session).notify_user(user_id, templates.password_reset())
        except Exception as e:
            await self.session.rollback()
            logger.error("auth.password_reset.notify_failed", user_id=user_id, error=str(e))

"""
Staff profiles, roles and the resolved caller.

Each staff role has its own profile table keyed by the hosted auth user id.
Partners live in ``partners.models``.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Role(str, Enum):
    """Roles in precedence order: an auth user holding several resolves to the first."""

    ADMIN = "admin"
    PARTNER_MANAGER = "partner_manager"
    ACCOUNT_USER = "account_user"
    SUPPORT_USER = "support_user"
    PARTNER = "partner"


ROLE_HOME_PATHS: dict[Role, str] = {
    Role.ADMIN: "/admin",
    Role.PARTNER_MANAGER: "/partner-manager",
    Role.ACCOUNT_USER: "/accounts",
    Role.SUPPORT_USER: "/support",
    Role.PARTNER: "/dashboard",
}


def home_path(role: Role) -> str:
    """Landing page for a role."""
    return ROLE_HOME_PATHS[role]


class ProfileMixin(UUIDPrimaryKeyMixin, TimestampMixin):
    """Columns shared by every staff profile."""

    auth_user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AdminProfile(Base, ProfileMixin):
    __tablename__ = "admins"


class PartnerManagerProfile(Base, ProfileMixin):
    __tablename__ = "partner_managers"


class AccountUserProfile(Base, ProfileMixin):
    __tablename__ = "account_users"


class SupportUserProfile(Base, ProfileMixin):
    __tablename__ = "support_users"


PROFILE_MODELS: dict[Role, type[ProfileMixin]] = {
    Role.ADMIN: AdminProfile,
    Role.PARTNER_MANAGER: PartnerManagerProfile,
    Role.ACCOUNT_USER: AccountUserProfile,
    Role.SUPPORT_USER: SupportUserProfile,
}


# Pydantic models for API


class CurrentUser(BaseModel):
    """The resolved caller of a request."""

    auth_user_id: str
    role: Role
    profile_id: UUID
    email: str
    name: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class CurrentUserResponse(CurrentUser):
    home_path: str


class ProfileCreate(BaseModel):
    """Create a staff profile for an existing auth user."""

    model_config = ConfigDict(str_strip_whitespace=True)

    auth_user_id: str = Field(min_length=1)
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str | None = None
    is_active: bool = True


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    is_active: bool | None = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    auth_user_id: str
    first_name: str
    last_name: str
    email: str
    phone: str | None
    is_active: bool
    created_at: datetime


class PasswordResetRequest(BaseModel):
    """Admin-initiated password change for another user."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(None, alias="userId")
    new_password: str | None = Field(None, alias="newPassword")
    admin_auth_user_id: str | None = Field(None, alias="adminAuthUserId")


class PasswordResetResponse(BaseModel):
    success: bool = True
    message: str = "Password updated successfully"


class RouteDecision(BaseModel):
    """Whether the caller may stay on a page of the web app."""

    path: str
    allowed: bool
    redirect_to: str | None = None

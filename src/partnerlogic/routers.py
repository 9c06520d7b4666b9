"""
Centralized router registration for all API endpoints.

Every router except the admin password endpoint resolves the caller from the
auth user id header.
"""

import importlib
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import Depends, FastAPI

from partnerlogic.auth.dependencies import get_current_user
from partnerlogic.settings import settings

logger = structlog.get_logger(__name__)


@dataclass
class RouterConfig:
    """Configuration for a router to be registered."""

    module_path: str
    router_name: str
    prefix: str
    tags: Sequence[str] | None
    requires_auth: bool = True
    description: str = ""


ROUTER_CONFIGS = [
    # ===========================================
    # Identity
    # ===========================================
    RouterConfig(
        module_path="partnerlogic.auth.router",
        router_name="router",
        prefix="/auth",
        tags=["Auth"],
        description="Current user, route guard and staff profiles",
    ),
    RouterConfig(
        module_path="partnerlogic.auth.router",
        router_name="admin_router",
        prefix="/admin",
        tags=["Admin"],
        requires_auth=False,
        description="Admin password changes (requester checked in the body)",
    ),
    # ===========================================
    # Partner program
    # ===========================================
    RouterConfig(
        module_path="partnerlogic.tiers.router",
        router_name="router",
        prefix="/tiers",
        tags=["Tiers"],
        description="Tier settings and commission",
    ),
    RouterConfig(
        module_path="partnerlogic.partners.router",
        router_name="router",
        prefix="/partners",
        tags=["Partners"],
        description="Partners and organizations",
    ),
    RouterConfig(
        module_path="partnerlogic.products.router",
        router_name="router",
        prefix="/products",
        tags=["Products"],
        description="Product catalog",
    ),
    RouterConfig(
        module_path="partnerlogic.currencies.router",
        router_name="router",
        prefix="/currencies",
        tags=["Currencies"],
        description="Currencies",
    ),
    RouterConfig(
        module_path="partnerlogic.bonuses.router",
        router_name="router",
        prefix="/bonuses",
        tags=["Bonuses"],
        description="Partner bonuses",
    ),
    # ===========================================
    # Sales
    # ===========================================
    RouterConfig(
        module_path="partnerlogic.deals.router",
        router_name="router",
        prefix="/deals",
        tags=["Deals"],
        description="Deal registration and pipeline",
    ),
    RouterConfig(
        module_path="partnerlogic.referrals.router",
        router_name="router",
        prefix="/referral-orders",
        tags=["Referral Orders"],
        description="Referral orders",
    ),
    RouterConfig(
        module_path="partnerlogic.mdf.router",
        router_name="router",
        prefix="/mdf",
        tags=["MDF"],
        description="Marketing development funds",
    ),
    RouterConfig(
        module_path="partnerlogic.invoices.router",
        router_name="router",
        prefix="/invoices",
        tags=["Invoices"],
        description="Invoices and payment status",
    ),
    # ===========================================
    # Enablement & support
    # ===========================================
    RouterConfig(
        module_path="partnerlogic.knowledge.router",
        router_name="router",
        prefix="/knowledge",
        tags=["Knowledge Base"],
        description="Knowledge base",
    ),
    RouterConfig(
        module_path="partnerlogic.support.router",
        router_name="router",
        prefix="/support",
        tags=["Support"],
        description="Support tickets",
    ),
    RouterConfig(
        module_path="partnerlogic.notifications.router",
        router_name="router",
        prefix="/notifications",
        tags=["Notifications"],
        description="In-app notifications",
    ),
    RouterConfig(
        module_path="partnerlogic.audit.router",
        router_name="router",
        prefix="/admin/logs",
        tags=["Activity Logs"],
        description="Admin activity logs",
    ),
]


def _register_router(app: FastAPI, config: RouterConfig) -> None:
    """Register a single router with the application.

    Import or lookup failures propagate: every configured router is required.
    """
    module = importlib.import_module(config.module_path)
    router = getattr(module, config.router_name)

    dependencies = [Depends(get_current_user)] if config.requires_auth else None
    prefix = f"{settings.api_prefix}{config.prefix}"

    app.include_router(
        router,
        prefix=prefix,
        tags=list(config.tags) if config.tags is not None else None,
        dependencies=dependencies,
    )
    logger.debug("router.registered", module=config.module_path, prefix=prefix)


def register_routers(app: FastAPI) -> None:
    """Register all API routers under ``settings.api_prefix``."""
    for config in ROUTER_CONFIGS:
        _register_router(app, config)
    logger.info("routers.registered", count=len(ROUTER_CONFIGS))


def get_api_info() -> dict[str, Any]:
    """Describe the registered API endpoints."""
    return {
        "version": "v1",
        "base_path": settings.api_prefix,
        "endpoints": {
            config.prefix.strip("/").replace("/", "_"): f"{settings.api_prefix}{config.prefix}"
            for config in ROUTER_CONFIGS
        },
        "public_endpoints": [
            "/health",
            "/health/live",
            "/health/ready",
            "/docs",
            "/openapi.json",
        ]
        + [
            f"{settings.api_prefix}{config.prefix}"
            for config in ROUTER_CONFIGS
            if not config.requires_auth
        ],
    }


def get_registered_routers() -> list[RouterConfig]:
    return ROUTER_CONFIGS.copy()

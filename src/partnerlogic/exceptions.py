"""
Partner program exceptions.

Custom exceptions with clear error messages, HTTP status codes, context and
recovery hints. ``register_exception_handlers`` turns them into JSON responses.
"""

from typing import Any, cast

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class PRMError(Exception):
    """
    Base error with enhanced context.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        status_code: HTTP status code for this error type
        context: Additional context data about the error
        recovery_hint: Suggested action to resolve the error
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 400,
        context: dict[str, Any] | None = None,
        recovery_hint: str | None = None,
    ):
        self.message = message
        self.error_code = error_code or "PRM_ERROR"
        self.status_code = status_code
        self.context = context or {}
        self.recovery_hint = recovery_hint
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "context": self.context,
            "recovery_hint": self.recovery_hint,
        }


class ValidationError(PRMError):
    """Business validation failed. Carries the user-facing message."""

    def __init__(self, message: str, field: str | None = None, status_code: int = 422) -> None:
        context = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", status_code=status_code, context=context)


class NotFoundError(PRMError):
    """Generic missing-record error."""

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        context: dict[str, Any] = {"resource": resource}
        if resource_id is not None:
            context["resource_id"] = str(resource_id)
        super().__init__(
            f"{resource} not found",
            "NOT_FOUND",
            status_code=404,
            context=context,
            recovery_hint=f"Verify the {resource.lower()} ID and ensure it exists",
        )


class DealNotFoundError(NotFoundError):
    """Deal not found error."""

    def __init__(self, deal_id: Any = None) -> None:
        super().__init__("Deal", deal_id)
        self.error_code = "DEAL_NOT_FOUND"


class PartnerNotFoundError(NotFoundError):
    """Partner not found error."""

    def __init__(self, partner_id: Any = None) -> None:
        super().__init__("Partner", partner_id)
        self.error_code = "PARTNER_NOT_FOUND"


class TierNotFoundError(NotFoundError):
    """Tier setting not found error."""

    def __init__(self, tier_name: str) -> None:
        super().__init__("Tier", tier_name)
        self.error_code = "TIER_NOT_FOUND"


class DuplicateError(PRMError):
    """Record already exists error."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(
            message,
            "DUPLICATE",
            status_code=409,
            context={k: str(v) for k, v in context.items()},
            recovery_hint="Use a unique value or update the existing record",
        )


class AuthenticationRequiredError(PRMError):
    """The request carries no resolvable user."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, "AUTHENTICATION_REQUIRED", status_code=401)


class PermissionDeniedError(PRMError):
    """The caller's role may not perform the operation."""

    def __init__(self, message: str = "Forbidden", required_roles: list[str] | None = None) -> None:
        context = {"required_roles": required_roles} if required_roles else {}
        super().__init__(message, "PERMISSION_DENIED", status_code=403, context=context)


class InvalidStageError(PRMError):
    """Unknown pipeline stage or a stage not allowed in this context."""

    def __init__(self, message: str, stage: str) -> None:
        super().__init__(message, "INVALID_STAGE", status_code=400, context={"stage": stage})


class ClosedWonConfirmationRequiredError(PRMError):
    """A partner tried to close a deal without confirming the invoice step."""

    def __init__(self, deal_id: Any) -> None:
        super().__init__(
            "Moving this deal to Closed Won sends an invoice. Confirm to continue.",
            "CLOSED_WON_CONFIRMATION_REQUIRED",
            status_code=409,
            context={"deal_id": str(deal_id)},
            recovery_hint="Repeat the request with confirm=true",
        )


class MDFAllocationExceededError(PRMError):
    """Approving the request would exceed the organization's MDF allocation."""

    def __init__(self, allocation: Any, current_approved: Any, requested: Any) -> None:
        remaining = allocation - current_approved
        super().__init__(
            "Cannot approve this request. This would exceed the partner's MDF allocation.",
            "MDF_ALLOCATION_EXCEEDED",
            status_code=400,
            context={
                "allocation": str(allocation),
                "currently_approved": str(current_approved),
                "remaining": str(remaining),
                "requested": str(requested),
            },
            recovery_hint=f"Approve at most {remaining} to stay within the allocation",
        )


class ExternalServiceError(PRMError):
    """A hosted collaborator (email functions, auth admin API) failed."""

    def __init__(self, service: str, message: str, upstream_status: int | None = None) -> None:
        context: dict[str, Any] = {"service": service}
        if upstream_status is not None:
            context["upstream_status"] = upstream_status
        super().__init__(message, "EXTERNAL_SERVICE_ERROR", status_code=502, context=context)


async def prm_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render a PRMError as JSON."""
    # Registered for PRMError only
    error = cast(PRMError, exc)
    logger.info(
        "request.failed",
        path=request.url.path,
        method=request.method,
        error_code=error.error_code,
        status_code=error.status_code,
    )
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the PRMError handler to the application."""
    app.add_exception_handler(PRMError, prm_error_handler)


__all__ = [
    "PRMError",
    "ValidationError",
    "NotFoundError",
    "DealNotFoundError",
    "PartnerNotFoundError",
    "TierNotFoundError",
    "DuplicateError",
    "AuthenticationRequiredError",
    "PermissionDeniedError",
    "InvalidStageError",
    "ClosedWonConfirmationRequiredError",
    "MDFAllocationExceededError",
    "ExternalServiceError",
    "register_exception_handlers",
]

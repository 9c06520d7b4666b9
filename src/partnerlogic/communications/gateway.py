"""
Email dispatch through hosted edge functions.

Delivery itself is external. This module only POSTs a JSON payload to
``{functions_url}/{function_name}``.
"""

from typing import Any

import httpx
import structlog

from ..exceptions import ExternalServiceError
from ..settings import settings

logger = structlog.get_logger(__name__)

SEND_INVOICE_EMAIL = "send-invoice-email"
SEND_OVERDUE_REMINDER = "send-overdue-reminder"
SEND_SUPPORT_EMAIL = "send-support-email"
SEND_DEAL_NOTIFICATION = "send-deal-notification"


class EmailGateway:
    """Invokes the hosted email functions."""

    def __init__(
        self,
        functions_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        enabled: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.functions_url = (functions_url or settings.email.functions_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.email.api_key
        self.timeout = timeout or settings.email.timeout
        self.enabled = settings.email.enabled if enabled is None else enabled
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.functions_url,
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def invoke(self, function_name: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST ``payload`` to a hosted function and return its JSON body.

        Raises:
            ExternalServiceError: transport failure or a non-2xx response
        """
        if not self.enabled:
            logger.info("email.dispatch.disabled", function=function_name)
            return {"skipped": True}

        client = await self._get_client()
        try:
            response = await client.post(f"/{function_name}", json=payload)
        except httpx.RequestError as e:
            logger.error("email.dispatch.request_failed", function=function_name, error=str(e))
            raise ExternalServiceError("email", f"Request failed: {e}") from e

        if response.status_code >= 400:
            logger.error(
                "email.dispatch.failed",
                function=function_name,
                status_code=response.status_code,
            )
            raise ExternalServiceError(
                "email",
                f"{function_name} returned {response.status_code}",
                upstream_status=response.status_code,
            )

        logger.info("email.dispatch.sent", function=function_name)
        try:
            return response.json()
        except ValueError:
            return {}

    async def send_invoice_email(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.invoke(SEND_INVOICE_EMAIL, payload)

    async def send_overdue_reminder(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.invoke(SEND_OVERDUE_REMINDER, payload)

    async def send_support_email(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.invoke(SEND_SUPPORT_EMAIL, payload)

    async def send_deal_notification(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.invoke(SEND_DEAL_NOTIFICATION, payload)

    async def send_invoice(
        self,
        record_id: Any,
        customer_name: str,
        amount: str,
        description: str | None = None,
        partner_manager_email: str | None = None,
    ) -> dict[str, Any]:
        """Send an invoice to the billing address, copying the partner manager."""
        return await self.send_invoice_email(
            {
                "clientEmail": settings.email.billing_address,
                "partnerManagerEmail": partner_manager_email,
                "dealDetails": {
                    "id": str(record_id),
                    "customerName": customer_name,
                    "amount": amount,
                    "description": description or "",
                },
            }
        )

    async def send_overdue(
        self,
        record_id: Any,
        customer_name: str,
        partner_email: str,
        partner_name: str,
        amount: str,
        description: str | None = None,
    ) -> dict[str, Any]:
        """Remind a partner that an invoice is overdue."""
        return await self.send_overdue_reminder(
            {
                "partnerEmail": partner_email,
                "partnerName": partner_name,
                "dealDetails": {
                    "id": str(record_id),
                    "customerName": customer_name,
                    "amount": amount,
                    "description": description or "",
                },
            }
        )


_email_gateway: EmailGateway | None = None


def get_email_gateway() -> EmailGateway:
    """FastAPI dependency returning the shared email gateway."""
    global _email_gateway
    if _email_gateway is None:
        _email_gateway = EmailGateway()
    return _email_gateway

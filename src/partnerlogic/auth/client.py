"""
Client for the hosted auth admin API.

Only the operations this service needs: changing another user's password.
Requests authenticate with the service role key.
"""

from typing import Any

import httpx
import structlog

from ..exceptions import ExternalServiceError
from ..settings import settings

logger = structlog.get_logger(__name__)


class AuthAdminClient:
    """Hosted auth admin API client."""

    def __init__(
        self,
        base_url: str | None = None,
        service_role_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: Auth API base URL, e.g. https://project.example.co/auth/v1
            service_role_key: Key with admin privileges
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = (base_url or settings.auth.admin_api_url).rstrip("/")
        self.service_role_key = (
            service_role_key if service_role_key is not None else settings.auth.service_role_key
        )
        self.timeout = timeout or settings.auth.timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self.service_role_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.service_role_key}",
                    "apikey": self.service_role_key,
                    "Content-Type": "application/json",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def update_user_password(self, user_id: str, new_password: str) -> dict[str, Any]:
        """Set a new password for ``user_id``."""
        if not self.is_configured:
            raise ExternalServiceError(
                "auth", "Server configuration error - missing service role key"
            )

        client = await self._get_client()
        path = f"/admin/users/{user_id}"
        try:
            response = await client.put(path, json={"password": new_password})
        except httpx.RequestError as e:
            logger.error("auth.admin.request_failed", path=path, error=str(e))
            raise ExternalServiceError("auth", f"Request failed: {e}") from e

        if response.status_code >= 400:
            detail = response.text
            try:
                body = response.json()
                detail = body.get("msg") or body.get("message") or str(body)
            except ValueError:
                pass
            logger.error(
                "auth.admin.password_update_failed",
                user_id=user_id,
                status_code=response.status_code,
            )
            raise ExternalServiceError(
                "auth", detail or "Failed to update password", upstream_status=response.status_code
            )

        return response.json() if response.content else {}


_auth_admin_client: AuthAdminClient | None = None


def get_auth_admin_client() -> AuthAdminClient:
    """FastAPI dependency returning the shared auth admin client."""
    global _auth_admin_client
    if _auth_admin_client is None:
        _auth_admin_client = AuthAdminClient()
    return _auth_admin_client

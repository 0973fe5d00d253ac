"""
Email client for the Communications Service's templated email API.

Order emails are rendered by the Communications Service; this client only
forwards the template type and data, authenticating with a short-lived
service-role JWT.

Usage:
    from libs.common.emails.client import get_email_client

    email_client = get_email_client()
    await email_client.send_template(
        template_type="order_confirmation",
        to_email="pharmacy@example.com",
        template_data={"order_number": "LC-20260101-AB12C", ...},
    )
"""

from typing import Any, Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


class EmailClient:
    """
    HTTP client for sending templated emails through the Communications Service.

    Sending never raises: delivery problems are logged and reported through
    the boolean return value so callers can treat email as best-effort.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: float = 15.0):
        settings = get_settings()
        self.base_url = base_url or settings.COMMUNICATIONS_SERVICE_URL
        self.timeout = timeout

    def _get_auth_headers(self) -> dict[str, str]:
        from libs.auth.dependencies import _service_role_jwt

        headers = {"Authorization": f"Bearer {_service_role_jwt('commerce_service')}"}
        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id
        return headers

    async def send_template(
        self,
        template_type: str,
        to_email: str,
        template_data: dict[str, Any],
    ) -> bool:
        """
        Send a templated email.

        Template types used by the commerce service:
        - order_confirmation: order placed (customer)
        - admin_new_order: order placed (admin inbox)
        - order_status_update: order moved to a new status (customer)

        Returns:
            True if the Communications Service accepted the email.
        """
        payload = {
            "template_type": template_type,
            "to_email": to_email,
            "template_data": template_data,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/email/template",
                    json=payload,
                    headers=self._get_auth_headers(),
                )
        except httpx.RequestError as e:
            logger.error(
                "Communications Service unreachable, '%s' email to %s not sent: %s",
                template_type,
                to_email,
                e,
            )
            return False

        if response.status_code != 200:
            logger.error(
                "Template email API returned %d for '%s': %s",
                response.status_code,
                template_type,
                response.text,
            )
            return False
        return bool(response.json().get("success", False))


# Singleton instance for convenience
_email_client: Optional[EmailClient] = None


def get_email_client() -> EmailClient:
    """Get or create the singleton EmailClient instance."""
    global _email_client
    if _email_client is None:
        _email_client = EmailClient()
    return _email_client

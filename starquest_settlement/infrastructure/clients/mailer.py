"""Transactional email HTTP client used to deliver settlement notices"""

import httpx
from typing import Optional
from starquest_settlement.config import settings
from starquest_settlement.domain.models import DeliveryResult


class MailerClient:
    """Client for the outbound email API (single attempt, no retry)"""

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url or settings.mailer_api_url
        self.api_key = api_key if api_key is not None else settings.mailer_api_key
        self.sender = sender or settings.mailer_from
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def send(self, recipient: str, subject: str, body: str) -> DeliveryResult:
        """
        Send a plain-text email.

        Never raises for delivery problems; failures come back as
        DeliveryResult(success=False, error=...) for the audit trail.
        """
        if not self.is_available():
            return DeliveryResult(success=False, error="Email service not configured")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={"from": self.sender, "to": [recipient], "subject": subject, "text": body},
                )
                response.raise_for_status()
                return DeliveryResult(success=True)

            except httpx.TimeoutException:
                return DeliveryResult(success=False, error=f"Email API timeout after {self.timeout}s")
            except httpx.HTTPStatusError as e:
                return DeliveryResult(success=False, error=f"Email API error: {e.response.status_code}")
            except httpx.RequestError as e:
                return DeliveryResult(success=False, error=f"Email API unreachable: {e}")

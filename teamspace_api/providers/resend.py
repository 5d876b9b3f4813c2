"""Resend HTTP API delivery provider."""

from typing import Optional

import httpx

from teamspace import config
from teamspace.logging import get_logger
from teamspace_api.providers.base import (
    BaseDeliveryProvider,
    ProviderResult,
    RenderedMessage,
)

logger = get_logger(__name__)


class ResendProvider(BaseDeliveryProvider):
    """Deliver email through the Resend REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key or config.RESEND_API_KEY
        if not self.api_key:
            raise RuntimeError(
                "RESEND_API_KEY environment variable is required when "
                "EMAIL_PROVIDER=resend"
            )
        self.api_url = api_url or config.RESEND_API_URL
        self.from_email = from_email or config.EMAIL_FROM_ADDRESS
        self.from_name = from_name or config.EMAIL_FROM_NAME
        self._transport = transport

    @property
    def name(self) -> str:
        return "resend"

    def _payload(self, message: RenderedMessage) -> dict:
        payload = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": message.to,
            "subject": message.subject,
            "text": message.text,
        }
        if message.html:
            payload["html"] = message.html
        if message.cc:
            payload["cc"] = message.cc
        if message.bcc:
            payload["bcc"] = message.bcc
        return payload

    def deliver(self, message: RenderedMessage, timeout: float) -> ProviderResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=timeout, transport=self._transport) as client:
                response = client.post(
                    self.api_url,
                    json=self._payload(message),
                    headers=headers,
                )
        except httpx.TimeoutException:
            logger.warning("resend_timeout", to=message.to, timeout=timeout)
            return ProviderResult(success=False, error="Delivery timed out")
        except httpx.RequestError as e:
            logger.error("resend_request_failed", to=message.to, error=str(e))
            return ProviderResult(success=False, error="Provider unreachable")

        if not 200 <= response.status_code < 300:
            try:
                detail = response.json().get("message")
            except ValueError:
                detail = None
            logger.error(
                "resend_rejected",
                to=message.to,
                status_code=response.status_code,
                error=detail or response.text[:500],
            )
            return ProviderResult(
                success=False,
                error=f"Provider rejected message (HTTP {response.status_code})",
            )

        message_id = response.json().get("id")
        logger.info("email_sent", provider="resend", to=message.to, message_id=message_id)
        return ProviderResult(success=True, provider_message_id=message_id)

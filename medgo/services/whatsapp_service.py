"""Operator WhatsApp alerts via CallMeBot."""

import httpx
import structlog

from medgo.config import settings

logger = structlog.get_logger(__name__)

DEFAULT_ALERT_TEXT = "Emergency alert from MedGo."


class WhatsAppService:
    """Send a WhatsApp message to the configured operator phone."""

    def __init__(
        self,
        api_key: str | None = None,
        phone: str | None = None,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize with explicit config, falling back to settings."""
        self.api_key = settings.callmebot_api_key if api_key is None else api_key
        self.phone = settings.callmebot_phone if phone is None else phone
        self.url = url or settings.callmebot_url
        self.timeout = timeout or settings.external_http_timeout
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        """True when both API key and operator phone are set."""
        return bool(self.api_key and self.phone)

    async def send(self, text: str | None = None) -> bool:
        """
        Send a WhatsApp alert.

        Returns:
            True if CallMeBot answered with a 2xx status
        """
        if not self.is_configured:
            logger.info("whatsapp_not_configured")
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(
                    self.url,
                    params={
                        "phone": self.phone,
                        "text": text or DEFAULT_ALERT_TEXT,
                        "apikey": self.api_key,
                    },
                )
        except httpx.HTTPError as e:
            logger.error("whatsapp_send_failed", error=str(e))
            return False

        if not response.is_success:
            logger.warning(
                "whatsapp_rejected_by_provider",
                status_code=response.status_code,
                body=response.text[:500],
            )
            return False

        logger.info("whatsapp_sent")
        return True

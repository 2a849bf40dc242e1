"""SMS channel backed by the Fast2SMS bulk API."""

import re
from dataclasses import dataclass

import httpx
import structlog

from medgo.config import settings
from medgo.core.exceptions import BadRequestException, UpstreamServiceException

logger = structlog.get_logger(__name__)

INDIA_COUNTRY_CODE = "91"
LOCAL_NUMBER_LENGTH = 10


def normalize_phone(phone: str | None) -> str | None:
    """
    Reduce a phone number to the 10-digit local format the gateway accepts.

    Separators are dropped first; a leading 91 country code is removed only
    when it precedes a full local number, so local numbers that happen to
    start with 91 are preserved.

    Returns:
        The 10-digit number, or None if the input cannot be one
    """
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) == LOCAL_NUMBER_LENGTH + len(INDIA_COUNTRY_CODE) and digits.startswith(
        INDIA_COUNTRY_CODE
    ):
        digits = digits[len(INDIA_COUNTRY_CODE) :]
    if len(digits) != LOCAL_NUMBER_LENGTH:
        return None
    return digits


@dataclass
class SmsResult:
    """Outcome of one SMS send."""

    phone: str
    success: bool
    provider_response: str | None = None
    error: str | None = None


class SmsService:
    """Service for sending SMS through Fast2SMS."""

    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        sender_id: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize with explicit config, falling back to settings."""
        self.api_key = settings.fast2sms_api_key if api_key is None else api_key
        self.url = url or settings.fast2sms_url
        self.sender_id = sender_id or settings.fast2sms_sender_id
        self.timeout = timeout or settings.external_http_timeout
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        """True when an API key is available."""
        return bool(self.api_key)

    async def send(self, phone_number: str, message: str) -> SmsResult:
        """
        Send one SMS.

        Validation happens before any network call, so a malformed number
        never reaches the gateway.

        Args:
            phone_number: Destination in local or +91 format
            message: Message body

        Returns:
            SmsResult with success=False when the gateway rejects the message

        Raises:
            BadRequestException: If the number is not a valid 10-digit number
            UpstreamServiceException: If the provider is not configured
        """
        clean_phone = normalize_phone(phone_number)
        if clean_phone is None:
            raise BadRequestException("Invalid phone number format")

        if not self.is_configured:
            raise UpstreamServiceException("SMS provider not configured")

        form = {
            "authorization": self.api_key,
            "sender_id": self.sender_id,
            "message": message,
            "language": "english",
            "route": "v3",
            "numbers": clean_phone,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, data=form)
        except httpx.HTTPError as e:
            logger.error("sms_send_failed", phone=clean_phone, error=str(e))
            return SmsResult(phone=clean_phone, success=False, error=str(e))

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success and body.get("return") is True:
            logger.info("sms_sent", phone=clean_phone, request_id=body.get("request_id"))
            return SmsResult(phone=clean_phone, success=True, provider_response=response.text)

        error = body.get("message") or f"HTTP {response.status_code}"
        if isinstance(error, list):
            error = "; ".join(str(part) for part in error)
        logger.warning(
            "sms_rejected_by_provider",
            phone=clean_phone,
            status_code=response.status_code,
            error=error,
        )
        return SmsResult(
            phone=clean_phone,
            success=False,
            provider_response=response.text,
            error=str(error),
        )

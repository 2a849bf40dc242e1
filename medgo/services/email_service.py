"""Email channel backed by the Resend HTTP API."""

from html import escape
from typing import Any

import httpx
import structlog

from medgo.config import settings

logger = structlog.get_logger(__name__)


def render_dispatch_email(alert: dict[str, Any]) -> tuple[str, str]:
    """
    Render the subject and HTML body of a driver alert email.

    Args:
        alert: Request fields (emergency_type, customer_name, customer_phone,
            pickup_address, pickup_latitude, pickup_longitude, description,
            distance_km, directions_url)

    Returns:
        (subject, html)
    """
    emergency_type = escape(str(alert.get("emergency_type") or "Emergency"))
    location = alert.get("pickup_address") or (
        f"{alert.get('pickup_latitude')}, {alert.get('pickup_longitude')}"
    )
    distance = alert.get("distance_km")
    rows = [
        ("Patient", alert.get("customer_name") or "Unknown"),
        ("Phone", alert.get("customer_phone") or "Not provided"),
        ("Location", location),
        ("Emergency", alert.get("emergency_type")),
    ]
    if distance is not None:
        rows.append(("Distance", f"{distance:.1f} km"))
    if alert.get("description"):
        rows.append(("Details", alert["description"]))

    table = "".join(
        f"<tr><td style='padding:4px 12px 4px 0'><strong>{escape(label)}</strong></td>"
        f"<td style='padding:4px 0'>{escape(str(value))}</td></tr>"
        for label, value in rows
    )
    directions = alert.get("directions_url")
    button = (
        f"<p><a href='{escape(directions)}' style='background:#dc2626;color:#fff;"
        "padding:10px 16px;border-radius:6px;text-decoration:none'>Open directions</a></p>"
        if directions
        else ""
    )

    subject = f"🚨 Emergency ambulance request: {alert.get('emergency_type') or 'Emergency'}"
    html = (
        "<div style='font-family:Arial,sans-serif;max-width:560px'>"
        f"<h2 style='color:#dc2626'>Emergency Alert from MedGo: {emergency_type}</h2>"
        "<p>A patient near you needs an ambulance immediately.</p>"
        f"<table>{table}</table>"
        f"{button}"
        "<p style='color:#6b7280'>Open your MedGo driver dashboard to accept or reject.</p>"
        "</div>"
    )
    return subject, html


class EmailService:
    """Service for sending transactional email through Resend."""

    def __init__(
        self,
        api_key: str | None = None,
        url: str | None = None,
        from_email: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize with explicit config, falling back to settings."""
        self.api_key = settings.resend_api_key if api_key is None else api_key
        self.url = url or settings.resend_url
        self.from_email = from_email or settings.resend_from_email
        self.timeout = timeout or settings.external_http_timeout
        self.transport = transport

    @property
    def is_configured(self) -> bool:
        """True when an API key is available."""
        return bool(self.api_key)

    async def send(self, to: str, subject: str, html: str) -> bool:
        """
        Send one HTML email.

        Returns:
            True if the provider accepted the message
        """
        if not self.is_configured:
            logger.warning("email_not_configured", to=to)
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": self.from_email,
                        "to": [to],
                        "subject": subject,
                        "html": html,
                    },
                )
        except httpx.HTTPError as e:
            logger.error("email_send_failed", to=to, error=str(e))
            return False

        if not response.is_success:
            logger.warning(
                "email_rejected_by_provider",
                to=to,
                status_code=response.status_code,
                body=response.text[:500],
            )
            return False

        logger.info("email_sent", to=to)
        return True

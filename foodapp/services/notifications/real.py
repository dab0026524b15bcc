"""
Real Notification Service

Production implementation using:
- Twilio for SMS and WhatsApp
- SendGrid for Email
"""

import logging
from typing import Optional

from python_http_client.exceptions import HTTPError as SendGridHTTPError
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from twilio.rest import Client as TwilioClient
from twilio.base.exceptions import TwilioException

from foodapp.core.config import get_settings, mask_phone
from foodapp.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)

logger = logging.getLogger(__name__)


class RealNotificationService(BaseNotificationService):
    """Production notification service using Twilio and SendGrid."""

    def __init__(self):
        settings = get_settings()

        # Initialize Twilio
        if settings.twilio_account_sid and settings.twilio_auth_token:
            self.twilio_client = TwilioClient(
                settings.twilio_account_sid,
                settings.twilio_auth_token
            )
            self.twilio_account_sid = settings.twilio_account_sid
            self.twilio_from_number = settings.twilio_phone_number
            self.twilio_whatsapp_number = settings.twilio_whatsapp_number or settings.twilio_phone_number
        else:
            self.twilio_client = None
            logger.warning("Twilio credentials not configured")

        # Initialize SendGrid
        if settings.sendgrid_api_key:
            self.sendgrid_client = SendGridAPIClient(settings.sendgrid_api_key)
            self.sendgrid_from_email = settings.sendgrid_from_email
        else:
            self.sendgrid_client = None
            logger.warning("SendGrid credentials not configured")

        logger.info("RealNotificationService initialized")

    @property
    def provider_name(self) -> str:
        return "real"

    def _send_twilio(self, channel: str, from_: str, to: str, body: str) -> NotificationResult:
        if not self.twilio_client:
            return NotificationResult(
                success=False,
                error_message="Twilio not configured",
                provider="twilio",
                channel=channel,
            )

        try:
            result = self.twilio_client.messages.create(body=body, from_=from_, to=to)
        except TwilioException as e:
            logger.error(f"Twilio {channel} error to {mask_phone(to)}: {e}")
            return NotificationResult(
                success=False,
                error_message=str(e),
                provider="twilio",
                channel=channel,
            )

        logger.info(f"{channel.upper()} sent to {mask_phone(to)}: {result.sid}")
        return NotificationResult(
            success=True,
            message_id=result.sid,
            provider="twilio",
            channel=channel,
        )

    async def send_sms(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Send SMS via Twilio."""
        return self._send_twilio("sms", self.twilio_from_number if self.twilio_client else "", to_phone, message)

    async def send_whatsapp(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Send a WhatsApp message via Twilio (``whatsapp:`` addressed)."""
        sender = f"whatsapp:{self.twilio_whatsapp_number}" if self.twilio_client else ""
        return self._send_twilio("whatsapp", sender, f"whatsapp:{to_phone}", message)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Send email via SendGrid."""
        if not self.sendgrid_client:
            return NotificationResult(
                success=False,
                error_message="SendGrid not configured",
                provider="sendgrid",
                channel="email",
            )

        try:
            message = Mail(
                from_email=self.sendgrid_from_email,
                to_emails=to_email,
                subject=subject,
                html_content=body_html,
                plain_text_content=body_text
            )
            response = self.sendgrid_client.send(message)
        except SendGridHTTPError as e:
            logger.error(f"SendGrid error: {e}")
            return NotificationResult(
                success=False,
                error_message=str(e),
                provider="sendgrid",
                channel="email",
            )

        logger.info(f"Email sent to {to_email}: {response.status_code}")
        return NotificationResult(
            success=response.status_code in (200, 201, 202),
            message_id=response.headers.get("X-Message-Id"),
            provider="sendgrid",
            channel="email",
        )

    async def health_check(self) -> bool:
        """Check that the Twilio account is reachable."""
        if not self.twilio_client:
            return False
        try:
            self.twilio_client.api.accounts(self.twilio_account_sid).fetch()
            return True
        except TwilioException as e:
            logger.error(f"Twilio health check failed: {e}")
            return False

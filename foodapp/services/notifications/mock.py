"""
Mock Notification Service

Simulates SMS, WhatsApp and email sending for development.
No actual messages are sent - just logged.
"""

import asyncio
import random
import uuid
import logging
from typing import Optional

from foodapp.core.config import mask_phone
from foodapp.services.notifications.base import (
    BaseNotificationService,
    NotificationResult,
)

logger = logging.getLogger(__name__)


class MockNotificationService(BaseNotificationService):
    """Mock notification service for development."""

    def __init__(self, failure_rate: float = 0.05, max_latency: float = 0.3):
        self.failure_rate = failure_rate
        self.max_latency = max_latency
        self.outbox: list[dict] = []
        logger.info(f"MockNotificationService initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> None:
        """Simulate network latency."""
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(0, self.max_latency))

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def _deliver(self, channel: str, to: str, body: str, subject: Optional[str] = None) -> NotificationResult:
        await self._simulate_latency()

        if self._should_fail():
            logger.warning(f"Mock {channel} failed (simulated) to {mask_phone(to)}")
            return NotificationResult(
                success=False,
                error_message=f"Simulated {channel} failure",
                provider="mock",
                channel=channel,
            )

        message_id = f"{channel}_mock_{uuid.uuid4().hex[:12]}"
        self.outbox.append(
            {"id": message_id, "channel": channel, "to": to, "subject": subject, "body": body}
        )
        logger.info(f"Mock {channel} sent to {mask_phone(to)}: {body[:50]}... (ID: {message_id})")

        return NotificationResult(
            success=True,
            message_id=message_id,
            provider="mock",
            channel=channel,
        )

    async def send_sms(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Simulate sending SMS."""
        return await self._deliver("sms", to_phone, message)

    async def send_whatsapp(
        self,
        to_phone: str,
        message: str,
    ) -> NotificationResult:
        """Simulate sending a WhatsApp message."""
        return await self._deliver("whatsapp", to_phone, message)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body_html: str,
        body_text: Optional[str] = None,
    ) -> NotificationResult:
        """Simulate sending email."""
        return await self._deliver("email", to_email, body_text or body_html, subject=subject)

    async def health_check(self) -> bool:
        return True

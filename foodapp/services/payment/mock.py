"""
Mock Payment Service Implementation

Simulates Stripe-like payment intents without making real API calls.
Used in development mode (ENV_MODE=development) to:
    - Walk through the complete checkout flow locally
    - Run the test suite without gateway credentials
    - Replay webhook events by posting plain JSON

Behavior:
    - Simulates response times up to the configured latency
    - Randomly declines intent creation at the configured failure rate
    - Generates Stripe-like IDs (pi_xxx, re_xxx)
"""

import asyncio
import json
import random
import uuid
import logging
from typing import Optional

from foodapp.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment service.

    Attributes:
        failure_rate: Probability of simulated failure (0.0-1.0)
        max_latency: Maximum simulated response time in seconds
        currency: Currency reported on intents
    """

    DECLINE_REASONS = [
        ("processing_error", "An error occurred while processing the payment."),
        ("rate_limit", "Too many requests to the payment gateway."),
    ]

    def __init__(
        self,
        failure_rate: float = 0.05,
        max_latency: float = 0.3,
        currency: str = "inr",
    ):
        self.failure_rate = failure_rate
        self.max_latency = max_latency
        self.currency = currency

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, latency≤{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    def _generate_payment_intent_id(self) -> str:
        """Generate a Stripe-like payment intent ID."""
        return f"pi_mock_{uuid.uuid4().hex[:24]}"

    def _generate_refund_id(self) -> str:
        """Generate a Stripe-like refund ID."""
        return f"re_mock_{uuid.uuid4().hex[:24]}"

    async def _simulate_latency(self) -> float:
        """Sleep for a random latency and return it in milliseconds."""
        if self.max_latency <= 0:
            return 0.0
        latency = random.uniform(0, self.max_latency)
        await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        """Determine if this request should simulate a failure."""
        return random.random() < self.failure_rate

    async def create_payment_intent(
        self,
        amount: float,
        currency: Optional[str] = None,
        metadata: Optional[dict] = None,
        receipt_email: Optional[str] = None,
    ) -> PaymentResult:
        """
        Simulate creating a payment intent.

        The mock returns a fake client_secret that won't work with Stripe.js.
        """
        latency_ms = await self._simulate_latency()

        if amount <= 0:
            return PaymentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
                response_time_ms=latency_ms,
            )

        if self._should_fail():
            error_code, error_message = random.choice(self.DECLINE_REASONS)
            logger.debug(f"Mock: Intent creation failed - {error_code}")
            return PaymentResult(
                success=False,
                amount=amount,
                currency=currency or self.currency,
                error_message=error_message,
                error_code=error_code,
                response_time_ms=latency_ms,
            )

        payment_intent_id = self._generate_payment_intent_id()
        logger.info(f"Mock: Created payment intent {payment_intent_id} for {amount:.2f}")

        return PaymentResult(
            success=True,
            payment_intent_id=payment_intent_id,
            client_secret=f"{payment_intent_id}_secret_mock",
            amount=amount,
            currency=currency or self.currency,
            status="requires_payment_method",
            response_time_ms=latency_ms,
        )

    async def refund_payment(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        """Simulate refunding a payment."""
        await self._simulate_latency()

        if not payment_intent_id.startswith("pi_"):
            return RefundResult(
                success=False,
                error_message="Invalid payment intent ID",
            )

        refund_id = self._generate_refund_id()
        logger.info(f"Mock: Refund processed - {refund_id}")

        return RefundResult(
            success=True,
            refund_id=refund_id,
            amount=amount,
            status="succeeded",
        )

    async def verify_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> Optional[dict]:
        """
        Simulate webhook verification.

        In mock mode the payload is parsed without cryptographic checks.
        """
        try:
            event = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Mock: Invalid webhook payload")
            return None
        if not isinstance(event, dict) or "type" not in event:
            logger.warning("Mock: Webhook payload has no event type")
            return None
        return event

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        return True

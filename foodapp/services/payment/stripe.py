"""
Stripe Payment Service Implementation

Production implementation using the official Stripe Python SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - STRIPE_SECRET_KEY must be set in environment
    - STRIPE_WEBHOOK_SECRET for webhook verification

Security Notes:
    - Card data never reaches this service (Stripe Elements confirms intents)
    - Webhooks are rejected unless STRIPE_WEBHOOK_SECRET is configured
    - SDK calls are blocking and run in a worker thread
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Optional

import stripe
from stripe import (
    StripeError,
    CardError,
    InvalidRequestError,
    AuthenticationError,
    APIConnectionError,
    SignatureVerificationError,
)

from foodapp.core.config import get_settings
from foodapp.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    RefundResult,
)

logger = logging.getLogger(__name__)


class StripePaymentService(BasePaymentService):
    """
    Production Stripe payment service implementation.

    Configuration:
        Requires STRIPE_SECRET_KEY environment variable.
        Uses STRIPE_WEBHOOK_SECRET for webhook verification.
    """

    def __init__(self):
        """
        Initialize Stripe with API key from settings.

        Raises:
            ValueError: If STRIPE_SECRET_KEY is not configured
        """
        settings = get_settings()

        if not settings.stripe_secret_key:
            raise ValueError(
                "STRIPE_SECRET_KEY is required for production mode. "
                "Set it in your .env file or environment variables."
            )

        stripe.api_key = settings.stripe_secret_key

        self._webhook_secret = settings.stripe_webhook_secret
        self._currency = settings.stripe_currency

        logger.info("StripePaymentService initialized")

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "stripe"

    def _convert_to_minor_units(self, amount: float) -> int:
        """Stripe expects amounts in the smallest currency unit (paise for INR)."""
        return int(round(amount * 100))

    def _convert_from_minor_units(self, value: int) -> float:
        return value / 100.0

    async def create_payment_intent(
        self,
        amount: float,
        currency: Optional[str] = None,
        metadata: Optional[dict] = None,
        receipt_email: Optional[str] = None,
    ) -> PaymentResult:
        """
        Create a PaymentIntent for client-side confirmation.

        Returns a client_secret that the storefront uses with Stripe.js
        to complete the payment.
        """
        start_time = datetime.now()

        if amount <= 0:
            return PaymentResult(
                success=False,
                error_message="Amount must be greater than 0",
                error_code="invalid_amount",
            )

        try:
            params = {
                "amount": self._convert_to_minor_units(amount),
                "currency": currency or self._currency,
                "metadata": {str(k): str(v) for k, v in (metadata or {}).items()},
                "automatic_payment_methods": {"enabled": True},
            }
            if receipt_email:
                params["receipt_email"] = receipt_email

            intent = await asyncio.to_thread(stripe.PaymentIntent.create, **params)

            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.info(
                f"Stripe: PaymentIntent created - {intent.id} - status={intent.status}"
            )

            return PaymentResult(
                success=True,
                payment_intent_id=intent.id,
                client_secret=intent.client_secret,
                amount=self._convert_from_minor_units(intent.amount),
                currency=intent.currency,
                status=intent.status,
                response_time_ms=elapsed_ms,
            )

        except CardError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.warning(f"Stripe: Card declined - {e.code}: {e.user_message}")
            return PaymentResult(
                success=False,
                error_message=e.user_message,
                error_code=e.code,
                response_time_ms=elapsed_ms,
            )

        except InvalidRequestError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Invalid request - {e}")
            return PaymentResult(
                success=False,
                error_message=str(e),
                error_code="invalid_request",
                response_time_ms=elapsed_ms,
            )

        except AuthenticationError as e:
            logger.critical(f"Stripe: Authentication failed - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment service configuration error",
                error_code="authentication_error",
            )

        except APIConnectionError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Connection error - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment service temporarily unavailable",
                error_code="connection_error",
                response_time_ms=elapsed_ms,
            )

        except StripeError as e:
            elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000
            logger.error(f"Stripe: Error - {e}")
            return PaymentResult(
                success=False,
                error_message="Payment processing error",
                error_code="stripe_error",
                response_time_ms=elapsed_ms,
            )

    async def refund_payment(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        """
        Refund a payment through Stripe.

        Args:
            payment_intent_id: The PaymentIntent to refund
            amount: Partial refund amount (None = full refund)
            reason: Reason code (duplicate, fraudulent, requested_by_customer)
        """
        try:
            refund_params = {"payment_intent": payment_intent_id}

            if amount is not None:
                refund_params["amount"] = self._convert_to_minor_units(amount)
            if reason:
                refund_params["reason"] = reason

            refund = await asyncio.to_thread(stripe.Refund.create, **refund_params)

            logger.info(f"Stripe: Refund processed - {refund.id} - status={refund.status}")

            return RefundResult(
                success=True,
                refund_id=refund.id,
                amount=self._convert_from_minor_units(refund.amount),
                status=refund.status,
            )

        except StripeError as e:
            logger.error(f"Stripe: Refund failed - {e}")
            return RefundResult(success=False, status="failed", error_message=str(e))

    async def verify_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> Optional[dict]:
        """
        Verify and parse a Stripe webhook event.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header value

        Returns:
            Parsed event if valid, None if verification fails or no
            webhook secret is configured
        """
        if not self._webhook_secret:
            logger.error("Stripe: STRIPE_WEBHOOK_SECRET not configured, webhook rejected")
            return None

        if not signature:
            logger.warning("Stripe: Webhook received without signature")
            return None

        try:
            stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except SignatureVerificationError as e:
            logger.warning(f"Stripe: Webhook signature invalid - {e}")
            return None
        except ValueError as e:
            logger.warning(f"Stripe: Webhook payload invalid - {e}")
            return None

        event = json.loads(payload)
        logger.debug(f"Stripe: Webhook verified - {event.get('type')}")
        return event

    async def health_check(self) -> bool:
        """Verify Stripe API connectivity with a lightweight call."""
        try:
            await asyncio.to_thread(stripe.Account.retrieve)
            return True
        except StripeError as e:
            logger.error(f"Stripe: Health check failed - {e}")
            return False

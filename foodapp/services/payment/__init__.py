"""
Payment Service Factory

Provides a single entry point for obtaining a payment service instance.

Usage:
    from foodapp.services.payment import get_payment_service

    # Returns MockPaymentService or StripePaymentService based on ENV_MODE
    payment_service = get_payment_service()
    result = await payment_service.create_payment_intent(612.50)

Environment Switching:
    - ENV_MODE=development → MockPaymentService (no API calls)
    - ENV_MODE=staging → StripePaymentService (test keys)
    - ENV_MODE=production → StripePaymentService (live keys)
"""

import logging
from functools import lru_cache

from foodapp.core.config import get_settings
from foodapp.services.payment.base import (
    BasePaymentService,
    PaymentResult,
    RefundResult,
)
from foodapp.services.payment.mock import MockPaymentService
from foodapp.services.payment.stripe import StripePaymentService

logger = logging.getLogger(__name__)


@lru_cache()
def get_payment_service() -> BasePaymentService:
    """
    Get the configured payment service instance.

    The instance is cached so every request shares one client.

    Raises:
        ValueError: If a real mode is configured without a Stripe key
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Payment Service: Using MockPaymentService (development mode)")
        return MockPaymentService(
            failure_rate=settings.mock_failure_rate,
            max_latency=settings.mock_max_latency,
            currency=settings.stripe_currency,
        )

    logger.info(
        f"Payment Service: Using StripePaymentService ({settings.env_mode.value} mode)"
    )
    return StripePaymentService()


def reset_payment_service() -> None:
    """Clear the cached payment service instance."""
    get_payment_service.cache_clear()
    logger.debug("Payment service cache cleared")


__all__ = [
    "get_payment_service",
    "reset_payment_service",
    "BasePaymentService",
    "PaymentResult",
    "RefundResult",
    "MockPaymentService",
    "StripePaymentService",
]

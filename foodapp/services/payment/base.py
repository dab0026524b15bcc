"""
Payment Service Abstract Base Class

Defines the interface contract for all payment service implementations.
Both MockPaymentService and StripePaymentService implement these methods,
so checkout behaves identically regardless of which one is active.

Design Pattern: Strategy Pattern
    - Runtime switching between payment providers via ENV_MODE
    - Mock implementation for local development and the test suite
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class PaymentResult:
    """
    Standardized result from the payment gateway.

    Attributes:
        success: Whether the gateway accepted the request
        payment_intent_id: Identifier of the intent (Stripe format: pi_xxx)
        client_secret: Secret the storefront uses to confirm the payment
        amount: Amount in major currency units (e.g. rupees)
        currency: Currency code (e.g., "inr")
        status: Gateway status of the intent
        error_message: Error description if the call failed
        error_code: Machine-readable error code
        response_time_ms: Time taken by the gateway
    """
    success: bool
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    amount: Optional[float] = None
    currency: str = "inr"
    status: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None
    response_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "payment_intent_id": self.payment_intent_id,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "error_message": self.error_message,
            "error_code": self.error_code,
            "response_time_ms": self.response_time_ms,
        }


@dataclass
class RefundResult:
    """
    Standardized result from refund processing.

    Attributes:
        success: Whether the refund was accepted
        refund_id: Unique identifier for the refund
        amount: Amount refunded
        status: Refund status (pending, succeeded, failed)
        error_message: Error description if refund failed
    """
    success: bool
    refund_id: Optional[str] = None
    amount: Optional[float] = None
    status: str = "pending"
    error_message: Optional[str] = None


class BasePaymentService(ABC):
    """
    Abstract base class for payment services.

    Example:
        >>> service = get_payment_service()  # Mock or Stripe
        >>> result = await service.create_payment_intent(
        ...     amount=612.50,
        ...     metadata={"order_id": "42"},
        ... )
        >>> if result.success:
        ...     print(result.client_secret)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the payment provider ("mock", "stripe")."""
        pass

    @abstractmethod
    async def create_payment_intent(
        self,
        amount: float,
        currency: Optional[str] = None,
        metadata: Optional[dict] = None,
        receipt_email: Optional[str] = None,
    ) -> PaymentResult:
        """
        Create a payment intent for client-side confirmation.

        Args:
            amount: Amount in major units; implementations convert to the
                smallest currency unit where the gateway needs it
            currency: Currency code, defaults to the configured currency
            metadata: Key-value data attached to the intent (order id)
            receipt_email: Where the gateway sends its receipt

        Returns:
            PaymentResult carrying the client secret
        """
        pass

    @abstractmethod
    async def refund_payment(
        self,
        payment_intent_id: str,
        amount: Optional[float] = None,
        reason: Optional[str] = None,
    ) -> RefundResult:
        """
        Refund a previous payment.

        Args:
            payment_intent_id: The payment to refund
            amount: Amount to refund (None = full refund)
            reason: Reason for the refund
        """
        pass

    @abstractmethod
    async def verify_webhook(
        self,
        payload: bytes,
        signature: Optional[str],
    ) -> Optional[dict]:
        """
        Verify and parse a webhook from the payment provider.

        Returns:
            dict: Parsed event if valid, None if invalid
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Verify connectivity to the payment service."""
        pass

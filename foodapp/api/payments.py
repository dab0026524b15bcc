"""
Payment endpoints.

The storefront asks for a payment intent, confirms it client-side with
the returned secret, and the gateway reports the outcome to the webhook.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.security import get_optional_user
from foodapp.database import get_db
from foodapp.models import User
from foodapp.schemas import ErrorResponse, PaymentIntentRequest, PaymentIntentResponse, WebhookAck
from foodapp.services import order_service

router = APIRouter(prefix="/api/payments", tags=["Payments"])


@router.post(
    "/intent",
    response_model=PaymentIntentResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Create Payment Intent",
)
async def create_payment_intent(
    data: PaymentIntentRequest,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> PaymentIntentResponse:
    """Open a payment intent for a pending order's total."""
    result = await order_service.create_payment_intent(db, data.order_id, user)
    return PaymentIntentResponse(**result)


@router.post("/webhook", response_model=WebhookAck, summary="Payment Gateway Webhook")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
) -> WebhookAck:
    body = await request.body()
    return WebhookAck(**await order_service.handle_payment_webhook(db, body, stripe_signature))

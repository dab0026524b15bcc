"""Phone verification for guest checkout."""

from fastapi import APIRouter, Query

from foodapp.schemas import MessageResponse, OTPSendRequest, OTPSendResponse, OTPStatusResponse, OTPVerifyRequest
from foodapp.services.otp_service import get_otp_service

router = APIRouter(prefix="/api/otp", tags=["OTP"])


@router.post("/send", response_model=OTPSendResponse, summary="Send OTP")
async def send_otp(data: OTPSendRequest) -> OTPSendResponse:
    """Text a one-time code; a new code can be requested after the cooldown."""
    ttl = await get_otp_service().send(data.phone)
    return OTPSendResponse(success=True, message="OTP sent successfully", expires_in=ttl)


@router.post("/verify", response_model=MessageResponse, summary="Verify OTP")
async def verify_otp(data: OTPVerifyRequest) -> MessageResponse:
    await get_otp_service().verify(data.phone, data.code)
    return MessageResponse(message="Phone number verified")


@router.get("/status", response_model=OTPStatusResponse, summary="OTP Status")
async def otp_status(phone: str = Query(..., min_length=10, max_length=20)) -> OTPStatusResponse:
    service = get_otp_service()
    return OTPStatusResponse(
        phone=service.normalize_phone(phone),
        verified=await service.is_phone_verified(phone),
        attempts_remaining=await service.attempts_remaining(phone),
    )

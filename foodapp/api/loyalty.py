from fastapi import APIRouter, Depends

from foodapp.core.security import get_current_user
from foodapp.models import User
from foodapp.schemas import LoyaltyResponse
from foodapp.services import loyalty_service

router = APIRouter(prefix="/api/loyalty", tags=["Loyalty"])


@router.get("", response_model=LoyaltyResponse, summary="Loyalty Balance")
async def get_loyalty(user: User = Depends(get_current_user)) -> LoyaltyResponse:
    """Points balance and the discount it unlocks."""
    return LoyaltyResponse(
        points=user.loyalty_points,
        redeemable_points=loyalty_service.redeemable_points(user.loyalty_points),
        discount_value=loyalty_service.calculate_discount(user.loyalty_points),
        conversion_rate=loyalty_service.conversion_rate_text(),
    )

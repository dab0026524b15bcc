"""Promotional offers for the storefront."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.security import get_optional_user, get_session_id
from foodapp.database import get_db
from foodapp.models import OfferType, TargetAudience, User
from foodapp.schemas import (
    MessageResponse,
    OfferInteractionCreate,
    OfferResponse,
    OfferValidateRequest,
    OfferValidationResponse,
)
from foodapp.services import offer_service

router = APIRouter(prefix="/api/offers", tags=["Offers"])


@router.get("", response_model=List[OfferResponse], summary="Active Offers")
async def list_offers(
    type: Optional[OfferType] = Query(None, description="banner/popup/notification; 'both' offers always match"),
    audience: TargetAudience = Query(TargetAudience.ALL),
    limit: Optional[int] = Query(None, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
) -> List[OfferResponse]:
    offers = await offer_service.list_active_offers(db, offer_type=type, audience=audience, limit=limit)
    return [OfferResponse.model_validate(o) for o in offers]


@router.get("/popup", response_model=List[OfferResponse], summary="Popup Offers")
async def popup_offers(
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> List[OfferResponse]:
    """Popups this visitor has not interacted with recently."""
    offers = await offer_service.popup_offers(db, user_id=user.id if user else None, session_id=session_id)
    return [OfferResponse.model_validate(o) for o in offers]


@router.get("/personalized", response_model=List[OfferResponse], summary="Personalized Offers")
async def personalized_offers(
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
) -> List[OfferResponse]:
    offers = await offer_service.personalized_offers(db, user.id if user else None)
    return [OfferResponse.model_validate(o) for o in offers]


@router.post("/{offer_id}/interactions", response_model=MessageResponse, status_code=201)
async def track_interaction(
    offer_id: int,
    data: OfferInteractionCreate,
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await offer_service.track_interaction(
        db,
        offer_id,
        data.interaction_type,
        user_id=user.id if user else None,
        session_id=session_id,
        order_id=data.order_id,
    )
    return MessageResponse(message=f"Interaction '{data.interaction_type.value}' recorded")


@router.post("/{offer_id}/validate", response_model=OfferValidationResponse, summary="Check Offer")
async def validate_offer(
    offer_id: int,
    data: OfferValidateRequest,
    db: AsyncSession = Depends(get_db),
) -> OfferValidationResponse:
    applied = await offer_service.apply_offer(db, offer_id, data.order_amount)
    if applied.free_delivery:
        message = "Free delivery applied"
    else:
        message = f"You save ₹{applied.discount}"
    return OfferValidationResponse(
        valid=True,
        offer_id=offer_id,
        discount=applied.discount,
        free_delivery=applied.free_delivery,
        message=message,
    )

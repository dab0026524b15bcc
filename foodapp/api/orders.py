"""
Order endpoints: checkout, history, public tracking and cancellation.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.security import get_current_user, get_optional_user, get_session_id
from foodapp.core.utils import page_count
from foodapp.database import get_db
from foodapp.models import OrderStatus, User
from foodapp.schemas import (
    ErrorResponse,
    OrderCancel,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderTrackResponse,
)
from foodapp.services import order_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Place Order",
)
async def create_order(
    data: OrderCreate,
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """
    Check out the caller's cart (or the explicit ``items`` list).

    Signed-in customers deliver to a saved address (their default when
    ``delivery_address_id`` is omitted). Guests send ``guest`` details and
    must have verified their phone through ``/api/otp``.

    Prices are compared with the live catalog; if anything changed since it
    was added to the cart the order is rejected with the changed items.
    """
    order = await order_service.create_order(db, data, user=user, session_id=session_id)
    return OrderResponse.model_validate(order)


@router.get("", response_model=OrderListResponse, summary="My Orders")
async def list_my_orders(
    status: Optional[OrderStatus] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    orders, total = await order_service.list_orders(
        db, user_id=user.id, status=status, page=page, limit=limit
    )
    return OrderListResponse(
        total=total,
        page=page,
        limit=limit,
        total_pages=page_count(total, limit),
        orders=[OrderResponse.model_validate(o) for o in orders],
    )


@router.get("/track/{order_number}", response_model=OrderTrackResponse, summary="Track Order")
async def track_order(order_number: str, db: AsyncSession = Depends(get_db)) -> OrderTrackResponse:
    """Public status lookup by order number; no customer details are returned."""
    order = await order_service.get_order_by_number(db, order_number)
    return OrderTrackResponse.model_validate(order)


@router.get("/{order_id}", response_model=OrderResponse, summary="Order Detail")
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    return OrderResponse.model_validate(await order_service.get_order(db, order_id, user))


@router.post("/{order_id}/cancel", response_model=OrderResponse, summary="Cancel Order")
async def cancel_order(
    order_id: int,
    data: Optional[OrderCancel] = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """Only pending or confirmed orders can be cancelled by the customer."""
    order = await order_service.cancel_order(db, order_id, user, data.reason if data else None)
    return OrderResponse.model_validate(order)

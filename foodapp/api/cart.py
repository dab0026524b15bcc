"""
Cart endpoints.

Signed-in users get their own cart; anonymous shoppers send
``X-Session-Id``. Requests with neither are rejected with 400.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.errors import ValidationError
from foodapp.core.security import get_current_user, get_optional_user, get_session_id
from foodapp.database import get_db
from foodapp.models import User
from foodapp.schemas import CartItemAdd, CartItemUpdate, CartResponse, MessageResponse
from foodapp.services import cart_service

router = APIRouter(prefix="/api/cart", tags=["Cart"])


async def _owned_cart(db: AsyncSession, user: Optional[User], session_id: Optional[str]):
    return await cart_service.get_cart(
        db, user_id=user.id if user else None, session_id=session_id, create=True
    )


@router.get("", response_model=CartResponse, summary="Get Cart")
async def get_cart(
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    cart = await cart_service.get_cart(
        db, user_id=user.id if user else None, session_id=session_id
    )
    return cart_service.to_response(cart)


@router.post("/items", response_model=CartResponse, status_code=201, summary="Add to Cart")
async def add_item(
    data: CartItemAdd,
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    """Adding an item already in the cart increases its quantity."""
    cart = await _owned_cart(db, user, session_id)
    return cart_service.to_response(await cart_service.add_item(db, cart, data))


@router.patch("/items/{line_id}", response_model=CartResponse, summary="Update Cart Line")
async def update_item(
    line_id: int,
    data: CartItemUpdate,
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    cart = await _owned_cart(db, user, session_id)
    return cart_service.to_response(await cart_service.update_item(db, cart, line_id, data))


@router.delete("/items/{line_id}", response_model=CartResponse, summary="Remove Cart Line")
async def remove_item(
    line_id: int,
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    cart = await _owned_cart(db, user, session_id)
    return cart_service.to_response(await cart_service.remove_item(db, cart, line_id))


@router.delete("", response_model=CartResponse, summary="Clear Cart")
async def clear_cart(
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    cart = await _owned_cart(db, user, session_id)
    return cart_service.to_response(await cart_service.clear_cart(db, cart))


@router.post("/merge", response_model=CartResponse, summary="Merge Session Cart")
async def merge_cart(
    user: User = Depends(get_current_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    """Move the anonymous cart into the signed-in user's cart after login."""
    if not session_id:
        raise ValidationError("X-Session-Id header is required to merge a cart")
    return cart_service.to_response(await cart_service.merge_session_cart(db, user.id, session_id))


@router.post("/refresh-prices", response_model=MessageResponse, summary="Refresh Cart Prices")
async def refresh_prices(
    user: Optional[User] = Depends(get_optional_user),
    session_id: Optional[str] = Depends(get_session_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    cart = await _owned_cart(db, user, session_id)
    changed = await cart_service.refresh_prices(db, cart)
    if not changed:
        return MessageResponse(message="All prices are up to date")
    return MessageResponse(message=f"Updated prices for: {', '.join(changed)}")

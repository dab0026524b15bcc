"""
Cart Service

A cart belongs to a signed-in user or, before login, to a browser session
(``X-Session-Id``). Each line keeps the price seen when it was added; the
checkout compares that snapshot with the live catalog.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.errors import NotFoundError, ValidationError
from foodapp.core.utils import money, utcnow
from foodapp.models import Cart, CartItem, MenuItem
from foodapp.schemas import CartItemAdd, CartItemResponse, CartItemUpdate, CartResponse

logger = logging.getLogger(__name__)

MAX_LINE_QUANTITY = 99


async def _find_cart(
    db: AsyncSession, user_id: Optional[int], session_id: Optional[str]
) -> Optional[Cart]:
    if user_id is not None:
        condition = Cart.user_id == user_id
    elif session_id:
        condition = Cart.session_id == session_id
    else:
        raise ValidationError("A signed-in user or an X-Session-Id header is required")

    result = await db.execute(
        select(Cart).where(condition).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_cart(
    db: AsyncSession,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
    create: bool = False,
) -> Optional[Cart]:
    """Return the owner's cart, creating an empty one when ``create`` is set."""
    cart = await _find_cart(db, user_id, session_id)
    if cart is None and create:
        cart = Cart(
            user_id=user_id,
            session_id=None if user_id is not None else session_id,
            items=[],
        )
        db.add(cart)
        await db.commit()
        logger.debug(f"Cart #{cart.id} created (user={user_id}, session={bool(session_id)})")
    return cart


async def reload_cart(db: AsyncSession, cart_id: int) -> Cart:
    result = await db.execute(
        select(Cart).where(Cart.id == cart_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


def cart_totals(cart: Optional[Cart]) -> tuple[int, Decimal]:
    """(total quantity, Σ unit_price × quantity)."""
    if cart is None:
        return 0, money(0)
    total_items = sum(line.quantity for line in cart.items)
    total_amount = sum((line.unit_price * line.quantity for line in cart.items), Decimal("0"))
    return total_items, money(total_amount)


def to_response(cart: Optional[Cart]) -> CartResponse:
    total_items, total_amount = cart_totals(cart)
    lines = []
    for line in (cart.items if cart else []):
        lines.append(
            CartItemResponse(
                id=line.id,
                menu_item_id=line.menu_item_id,
                name=line.menu_item.name,
                image=line.menu_item.image,
                quantity=line.quantity,
                unit_price=money(line.unit_price),
                line_total=money(line.unit_price * line.quantity),
                special_instructions=line.special_instructions,
                is_available=line.menu_item.is_available,
            )
        )
    return CartResponse(
        id=cart.id if cart else None,
        items=lines,
        total_items=total_items,
        total_amount=total_amount,
    )


def _find_line(cart: Cart, line_id: int) -> CartItem:
    for line in cart.items:
        if line.id == line_id:
            return line
    raise NotFoundError("Cart item")


async def add_item(db: AsyncSession, cart: Cart, data: CartItemAdd) -> Cart:
    menu_item = await db.get(MenuItem, data.menu_item_id)
    if menu_item is None:
        raise NotFoundError("Menu item")
    if not menu_item.is_available:
        raise ValidationError(f"{menu_item.name} is currently unavailable")

    existing = next((l for l in cart.items if l.menu_item_id == menu_item.id), None)
    if existing is not None:
        quantity = existing.quantity + data.quantity
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"At most {MAX_LINE_QUANTITY} of one item per order")
        existing.quantity = quantity
        if data.special_instructions:
            existing.special_instructions = data.special_instructions
    else:
        cart.items.append(
            CartItem(
                menu_item_id=menu_item.id,
                menu_item=menu_item,
                quantity=data.quantity,
                unit_price=money(menu_item.price),
                special_instructions=data.special_instructions,
            )
        )

    cart.updated_at = utcnow()
    await db.commit()
    return await reload_cart(db, cart.id)


async def update_item(db: AsyncSession, cart: Cart, line_id: int, data: CartItemUpdate) -> Cart:
    line = _find_line(cart, line_id)
    changes = data.model_dump(exclude_unset=True)
    if changes.get("quantity") is not None:
        line.quantity = changes["quantity"]
    if "special_instructions" in changes:
        line.special_instructions = changes["special_instructions"]

    cart.updated_at = utcnow()
    await db.commit()
    return await reload_cart(db, cart.id)


async def remove_item(db: AsyncSession, cart: Cart, line_id: int) -> Cart:
    line = _find_line(cart, line_id)
    cart.items.remove(line)
    cart.updated_at = utcnow()
    await db.commit()
    return await reload_cart(db, cart.id)


async def clear_cart(db: AsyncSession, cart: Cart) -> Cart:
    cart.items.clear()
    cart.updated_at = utcnow()
    await db.commit()
    return await reload_cart(db, cart.id)


async def refresh_prices(db: AsyncSession, cart: Cart) -> list[str]:
    """Re-snapshot catalog prices; returns the names of lines that changed."""
    changed = []
    for line in cart.items:
        current = money(line.menu_item.price)
        if money(line.unit_price) != current:
            line.unit_price = current
            changed.append(line.menu_item.name)
    if changed:
        cart.updated_at = utcnow()
        await db.commit()
        logger.info(f"Cart #{cart.id}: repriced {len(changed)} line(s)")
    return changed


async def merge_session_cart(db: AsyncSession, user_id: int, session_id: str) -> Cart:
    """Move the anonymous cart's lines into the user's cart after login."""
    user_cart = await get_cart(db, user_id=user_id, create=True)
    session_cart = await _find_cart(db, None, session_id)
    if session_cart is None or session_cart.id == user_cart.id:
        return user_cart

    by_item = {line.menu_item_id: line for line in user_cart.items}
    for line in session_cart.items:
        target = by_item.get(line.menu_item_id)
        if target is not None:
            target.quantity = min(target.quantity + line.quantity, MAX_LINE_QUANTITY)
        else:
            user_cart.items.append(
                CartItem(
                    menu_item_id=line.menu_item_id,
                    menu_item=line.menu_item,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    special_instructions=line.special_instructions,
                )
            )

    merged = len(session_cart.items)
    await db.delete(session_cart)
    user_cart.updated_at = utcnow()
    await db.commit()
    logger.info(f"Merged {merged} line(s) from session cart into cart #{user_cart.id}")
    return await reload_cart(db, user_cart.id)


async def cleanup_stale_carts(db: AsyncSession, days: int = 7) -> int:
    """Delete anonymous carts idle for ``days``; user carts are kept."""
    cutoff = utcnow() - timedelta(days=days)
    stale_ids = list(
        (
            await db.execute(
                select(Cart.id).where(Cart.user_id.is_(None), Cart.updated_at < cutoff)
            )
        ).scalars()
    )
    if not stale_ids:
        return 0

    await db.execute(delete(CartItem).where(CartItem.cart_id.in_(stale_ids)))
    await db.execute(delete(Cart).where(Cart.id.in_(stale_ids)))
    await db.commit()
    return len(stale_ids)

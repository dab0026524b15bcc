"""
Offer / Promotion Service

Banners and popups with a validity window, a target audience and an
optional usage limit. Interactions (viewed, clicked, dismissed, converted)
are logged per user or session and feed the offer's counters.

Discounts:
    - percentage:    value × amount / 100
    - fixed_amount:  value
    - free_delivery: no discount on the amount; the delivery fee is waived
Every discount is capped by ``maximum_discount_amount`` and by the amount.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.errors import NotFoundError, ValidationError
from foodapp.core.utils import as_utc, money, utcnow
from foodapp.models import (
    DiscountType,
    InteractionType,
    Offer,
    OfferInteraction,
    OfferType,
    Order,
    OrderStatus,
    TargetAudience,
)
from foodapp.schemas import OfferCreate, OfferUpdate, UrgencyOfferCreate

logger = logging.getLogger(__name__)

LOYAL_CUSTOMER_ORDERS = 5

COUNTERS = {
    InteractionType.VIEWED: "view_count",
    InteractionType.CLICKED: "click_count",
    InteractionType.CONVERTED: "conversion_count",
}


@dataclass
class OfferDiscount:
    """Outcome of applying an offer to an order amount."""
    offer: Offer
    discount: Decimal
    free_delivery: bool = False


# =============================================================================
# QUERIES
# =============================================================================

async def list_active_offers(
    db: AsyncSession,
    offer_type: Optional[OfferType] = None,
    audience: TargetAudience = TargetAudience.ALL,
    limit: Optional[int] = None,
) -> list[Offer]:
    """
    Offers that are switched on and inside their validity window.

    ``offer_type`` also matches offers of type ``both``. Offers aimed at a
    specific audience only show up when that ``audience`` is asked for.
    """
    now = utcnow()
    query = select(Offer).where(
        Offer.is_active.is_(True),
        Offer.valid_from <= now,
        Offer.valid_until >= now,
        Offer.target_audience.in_({audience, TargetAudience.ALL}),
    )
    if offer_type is not None:
        query = query.where(Offer.type.in_({offer_type, OfferType.BOTH}))

    query = query.order_by(Offer.priority.desc(), Offer.created_at.desc(), Offer.id.desc())
    if limit:
        query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())


async def audience_for_user(db: AsyncSession, user_id: Optional[int]) -> TargetAudience:
    """new_customers with no orders, loyal_customers from five orders, otherwise all."""
    if user_id is None:
        return TargetAudience.NEW_CUSTOMERS

    orders = await db.scalar(
        select(func.count(Order.id)).where(
            Order.user_id == user_id, Order.status != OrderStatus.CANCELLED
        )
    ) or 0
    if orders == 0:
        return TargetAudience.NEW_CUSTOMERS
    if orders >= LOYAL_CUSTOMER_ORDERS:
        return TargetAudience.LOYAL_CUSTOMERS
    return TargetAudience.ALL


async def personalized_offers(db: AsyncSession, user_id: Optional[int]) -> list[Offer]:
    audience = await audience_for_user(db, user_id)
    return await list_active_offers(db, audience=audience)


async def popup_offers(
    db: AsyncSession,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
) -> list[Offer]:
    """Active popups the visitor has not interacted with inside each offer's frequency window."""
    audience = await audience_for_user(db, user_id) if user_id is not None else TargetAudience.ALL
    offers = await list_active_offers(db, offer_type=OfferType.POPUP, audience=audience)
    if not offers or (user_id is None and not session_id):
        return offers

    owner = []
    if user_id is not None:
        owner.append(OfferInteraction.user_id == user_id)
    if session_id:
        owner.append(OfferInteraction.session_id == session_id)

    result = await db.execute(
        select(OfferInteraction.offer_id, func.max(OfferInteraction.created_at))
        .where(or_(*owner), OfferInteraction.offer_id.in_([o.id for o in offers]))
        .group_by(OfferInteraction.offer_id)
    )
    last_seen = {offer_id: as_utc(seen) for offer_id, seen in result.all()}

    now = utcnow()
    visible = []
    for offer in offers:
        seen = last_seen.get(offer.id)
        if seen is not None and seen > now - timedelta(hours=offer.show_frequency_hours):
            continue
        visible.append(offer)
    return visible


async def get_offer(db: AsyncSession, offer_id: int) -> Offer:
    offer = await db.get(Offer, offer_id)
    if offer is None:
        raise NotFoundError("Offer")
    return offer


async def list_offers(db: AsyncSession) -> list[Offer]:
    result = await db.execute(select(Offer).order_by(Offer.priority.desc(), Offer.id.desc()))
    return list(result.scalars().all())


# =============================================================================
# INTERACTIONS
# =============================================================================

async def track_interaction(
    db: AsyncSession,
    offer_id: int,
    interaction_type: InteractionType,
    user_id: Optional[int] = None,
    session_id: Optional[str] = None,
    order_id: Optional[int] = None,
    commit: bool = True,
) -> OfferInteraction:
    offer = await get_offer(db, offer_id)
    if user_id is None and not session_id:
        raise ValidationError("A signed-in user or an X-Session-Id header is required")

    interaction = OfferInteraction(
        offer_id=offer.id,
        user_id=user_id,
        session_id=session_id,
        interaction_type=interaction_type,
        order_id=order_id,
    )
    db.add(interaction)

    counter = COUNTERS.get(interaction_type)
    if counter:
        setattr(offer, counter, getattr(offer, counter) + 1)

    if commit:
        await db.commit()
    logger.debug(f"Offer #{offer.id} {interaction_type.value} (user={user_id})")
    return interaction


# =============================================================================
# DISCOUNTS
# =============================================================================

def compute_discount(offer: Offer, amount: Decimal) -> OfferDiscount:
    amount = money(amount)
    value = Decimal(offer.discount_value or 0)

    if offer.discount_type == DiscountType.PERCENTAGE:
        discount = value * amount / Decimal(100)
    elif offer.discount_type == DiscountType.FIXED_AMOUNT:
        discount = value
    else:
        discount = Decimal(0)

    if offer.maximum_discount_amount is not None:
        discount = min(discount, Decimal(offer.maximum_discount_amount))
    discount = min(discount, amount)

    return OfferDiscount(
        offer=offer,
        discount=money(discount),
        free_delivery=offer.discount_type == DiscountType.FREE_DELIVERY,
    )


async def apply_offer(db: AsyncSession, offer_id: int, amount: Decimal) -> OfferDiscount:
    """
    Check that ``offer_id`` can be used on an order of ``amount``.

    Raises:
        NotFoundError: unknown offer
        ValidationError: inactive, outside its window, below the minimum
            order amount, or usage limit reached
    """
    offer = await get_offer(db, offer_id)
    now = utcnow()

    if not offer.is_active or not (as_utc(offer.valid_from) <= now <= as_utc(offer.valid_until)):
        raise ValidationError("Offer has expired or is not active")

    if offer.minimum_order_amount is not None and money(amount) < money(offer.minimum_order_amount):
        raise ValidationError(
            f"Minimum order amount of ₹{money(offer.minimum_order_amount)} required for this offer",
            details={"minimum_order_amount": str(money(offer.minimum_order_amount))},
        )

    if offer.usage_limit is not None and offer.used_count >= offer.usage_limit:
        raise ValidationError("Offer usage limit has been reached")

    return compute_discount(offer, amount)


# =============================================================================
# ADMIN
# =============================================================================

async def create_offer(db: AsyncSession, data: OfferCreate) -> Offer:
    values = data.model_dump()
    values["valid_from"] = as_utc(values["valid_from"])
    values["valid_until"] = as_utc(values["valid_until"])
    offer = Offer(**values)
    db.add(offer)
    await db.commit()
    logger.info(f"🎁 Offer created: {offer.title} ({offer.discount_type.value})")
    return offer


async def update_offer(db: AsyncSession, offer_id: int, data: OfferUpdate) -> Offer:
    offer = await get_offer(db, offer_id)
    changes = data.model_dump(exclude_unset=True)
    for key in ("valid_from", "valid_until"):
        if changes.get(key) is not None:
            changes[key] = as_utc(changes[key])

    for field, value in changes.items():
        setattr(offer, field, value)

    if as_utc(offer.valid_until) <= as_utc(offer.valid_from):
        raise ValidationError("valid_until must be after valid_from")

    await db.commit()
    return offer


async def delete_offer(db: AsyncSession, offer_id: int) -> None:
    offer = await get_offer(db, offer_id)
    await db.delete(offer)
    await db.commit()


async def create_urgency_offer(db: AsyncSession, data: UrgencyOfferCreate) -> Offer:
    """Short-lived, high-priority percentage popup."""
    now = utcnow()
    offer = Offer(
        title=data.title,
        description=data.description,
        type=OfferType.POPUP,
        discount_type=DiscountType.PERCENTAGE,
        discount_value=money(data.discount_percentage),
        maximum_discount_amount=data.maximum_discount_amount,
        target_audience=data.target_audience,
        is_active=True,
        priority=10,
        valid_from=now,
        valid_until=now + timedelta(hours=data.hours_valid),
        popup_delay_seconds=5,
        show_frequency_hours=1,
    )
    db.add(offer)
    await db.commit()
    logger.info(f"⏰ Urgency offer created: {offer.title} for {data.hours_valid}h")
    return offer


async def offer_analytics(db: AsyncSession, offer_id: int) -> dict:
    offer = await get_offer(db, offer_id)
    dismissals = await db.scalar(
        select(func.count(OfferInteraction.id)).where(
            OfferInteraction.offer_id == offer_id,
            OfferInteraction.interaction_type == InteractionType.DISMISSED,
        )
    ) or 0
    views = offer.view_count
    return {
        "offer_id": offer.id,
        "title": offer.title,
        "views": views,
        "clicks": offer.click_count,
        "conversions": offer.conversion_count,
        "dismissals": dismissals,
        "used_count": offer.used_count,
        "click_through_rate": round(offer.click_count / views * 100, 2) if views else 0.0,
        "conversion_rate": round(offer.conversion_count / views * 100, 2) if views else 0.0,
    }

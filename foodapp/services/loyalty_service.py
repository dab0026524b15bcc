"""
Loyalty Points Service

Points live in ``users.loyalty_points``. Customers earn
``floor(amount × rate)`` points per order and redeem them in whole blocks:
every 1000 points is worth 10 off the bill.
"""

import logging
import math
from decimal import Decimal
from typing import Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.config import get_settings
from foodapp.core.errors import NotFoundError, ValidationError
from foodapp.core.utils import money
from foodapp.models import User

logger = logging.getLogger(__name__)


def calculate_discount(points: int) -> Decimal:
    """Discount unlocked by ``points``: floor(points / block) × block value."""
    settings = get_settings()
    blocks = max(points, 0) // settings.loyalty_redeem_block
    return money(blocks * settings.loyalty_block_value)


def redeemable_points(points: int) -> int:
    """Largest whole-block amount that can be spent out of ``points``."""
    block = get_settings().loyalty_redeem_block
    return (max(points, 0) // block) * block


def points_to_cover(amount: Decimal) -> int:
    """Fewest whole-block points whose discount reaches ``amount``."""
    settings = get_settings()
    if amount <= 0:
        return 0
    blocks = math.ceil(Decimal(amount) / settings.loyalty_block_value)
    return blocks * settings.loyalty_redeem_block


def points_for_amount(amount: Decimal, rate: Optional[Decimal] = None) -> int:
    if rate is None:
        rate = Decimal(str(get_settings().loyalty_points_per_unit))
    return max(math.floor(Decimal(amount) * Decimal(rate)), 0)


def conversion_rate_text() -> str:
    settings = get_settings()
    return f"{settings.loyalty_redeem_block} points = ₹{settings.loyalty_block_value}"


async def _get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


async def get_points(db: AsyncSession, user_id: int) -> int:
    return (await _get_user(db, user_id)).loyalty_points


async def award_points(
    db: AsyncSession,
    user_id: int,
    amount: Decimal,
    rate: Optional[Decimal] = None,
    commit: bool = True,
) -> int:
    """Credit points for a purchase of ``amount``; returns the points added."""
    points = points_for_amount(amount, rate)
    if points <= 0:
        return 0

    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(loyalty_points=User.loyalty_points + points)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(await _get_user(db, user_id), ["loyalty_points"])
    if commit:
        await db.commit()
    logger.info(f"⭐ User #{user_id} earned {points} points")
    return points


async def redeem_points(
    db: AsyncSession,
    user_id: int,
    points: int,
    commit: bool = True,
    max_discount: Optional[Decimal] = None,
) -> tuple[int, Decimal]:
    """
    Spend whole blocks out of ``points``.

    With ``max_discount`` set, only the blocks needed to reach it are
    deducted; the rest stay on the balance.

    Returns:
        (points actually deducted, discount granted)

    Raises:
        ValidationError: balance lower than ``points`` or less than one block
    """
    user = await _get_user(db, user_id)
    if points > user.loyalty_points:
        raise ValidationError(
            "Insufficient loyalty points",
            details={"available": user.loyalty_points, "requested": points},
        )

    used = redeemable_points(points)
    if used == 0:
        raise ValidationError(
            f"At least {get_settings().loyalty_redeem_block} points are needed to redeem"
        )
    if max_discount is not None:
        used = min(used, points_to_cover(max_discount))
        if used == 0:
            return 0, money(0)

    discount = calculate_discount(used)
    user.loyalty_points -= used
    if commit:
        await db.commit()
    logger.info(f"⭐ User #{user_id} redeemed {used} points for {discount}")
    return used, discount


async def adjust_points(db: AsyncSession, user_id: int, delta: int, reason: Optional[str] = None) -> int:
    """Admin correction; the balance never goes below zero."""
    user = await _get_user(db, user_id)
    user.loyalty_points = max(user.loyalty_points + delta, 0)
    await db.commit()
    logger.info(f"⭐ User #{user_id} points adjusted by {delta} ({reason or 'no reason'})")
    return user.loyalty_points

"""
Restaurant Settings Service

One row of admin-editable settings. The row is created on first access
from the environment defaults in ``Settings``.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.config import get_settings
from foodapp.core.utils import money
from foodapp.models import RestaurantSettings
from foodapp.schemas import RestaurantSettingsUpdate

logger = logging.getLogger(__name__)


async def get_restaurant_settings(db: AsyncSession) -> RestaurantSettings:
    result = await db.execute(select(RestaurantSettings).where(RestaurantSettings.singleton == 1))
    row = result.scalar_one_or_none()
    if row is not None:
        return row

    settings = get_settings()
    row = RestaurantSettings(
        singleton=1,
        is_ordering_enabled=True,
        minimum_order_amount=money(settings.minimum_order_amount),
        delivery_fee=money(settings.delivery_fee),
        free_delivery_threshold=money(settings.free_delivery_threshold),
        loyalty_points_rate=money(settings.loyalty_points_per_unit),
    )
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        # Another request seeded the row first
        await db.rollback()
        result = await db.execute(select(RestaurantSettings).where(RestaurantSettings.singleton == 1))
        return result.scalar_one()

    logger.info("Restaurant settings seeded from environment defaults")
    return row


async def update_restaurant_settings(db: AsyncSession, data: RestaurantSettingsUpdate) -> RestaurantSettings:
    row = await get_restaurant_settings(db)
    changes = data.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None and field != "opening_hours":
            continue
        setattr(row, field, value)
    await db.commit()
    logger.info(f"Restaurant settings updated: {', '.join(changes) or 'nothing'}")
    return row

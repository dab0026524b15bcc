"""
Menu Seed Script

Creates a starter catalog (categories, menu items) and two offers in the
configured database. Categories that already exist are left untouched.
Run from project root: python scripts/seed_menu.py

Version: 1.0.0
"""

import argparse
import asyncio
import sys
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from foodapp.core.config import setup_logging
from foodapp.core.utils import slugify, utcnow
from foodapp.database import async_session_maker, engine, init_db
from foodapp.models import Category, DiscountType, OfferType, SpiceLevel, TargetAudience
from foodapp.schemas import CategoryCreate, MenuItemCreate, OfferCreate
from foodapp.services import menu_service, offer_service

CATALOG = {
    "Starters": [
        ("Paneer Tikka", "Char-grilled cottage cheese with peppers", "229.00", True, SpiceLevel.MEDIUM, True),
        ("Chicken 65", "Crispy fried chicken tossed in curry leaves", "249.00", False, SpiceLevel.HOT, True),
        ("Veg Samosa (2 pcs)", "Potato and pea pastry with mint chutney", "89.00", True, SpiceLevel.MILD, False),
    ],
    "Biryani": [
        ("Hyderabadi Chicken Biryani", "Dum-cooked basmati rice with chicken", "329.00", False, SpiceLevel.MEDIUM, True),
        ("Veg Dum Biryani", "Basmati rice layered with seasonal vegetables", "269.00", True, SpiceLevel.MEDIUM, False),
        ("Mutton Biryani", "Slow-cooked goat with saffron rice", "399.00", False, SpiceLevel.HOT, False),
    ],
    "Curries": [
        ("Butter Chicken", "Tandoori chicken in tomato butter gravy", "319.00", False, SpiceLevel.MILD, True),
        ("Dal Makhani", "Black lentils simmered overnight", "219.00", True, SpiceLevel.MILD, False),
        ("Palak Paneer", "Cottage cheese in spinach gravy", "249.00", True, SpiceLevel.MILD, False),
    ],
    "Breads": [
        ("Butter Naan", "Tandoor-baked leavened bread", "59.00", True, None, False),
        ("Garlic Naan", "Naan topped with garlic and coriander", "69.00", True, None, False),
    ],
    "Desserts": [
        ("Gulab Jamun (2 pcs)", "Milk dumplings in rose syrup", "99.00", True, None, False),
        ("Mango Kulfi", "Frozen mango and cardamom dessert", "119.00", True, None, True),
    ],
}


async def seed_catalog(db) -> int:
    """Create missing categories with their items; returns the number of items created."""
    created = 0
    for position, (name, items) in enumerate(CATALOG.items()):
        existing = await db.scalar(select(Category).where(Category.slug == slugify(name)))
        if existing is not None:
            print(f"   ↪️  {name}: already present")
            continue

        category = await menu_service.create_category(db, CategoryCreate(name=name, sort_order=position))
        for order, (item_name, description, price, veg, spice, popular) in enumerate(items):
            await menu_service.create_menu_item(
                db,
                MenuItemCreate(
                    name=item_name,
                    description=description,
                    price=Decimal(price),
                    category_id=category.id,
                    is_vegetarian=veg,
                    spice_level=spice,
                    is_popular=popular,
                    sort_order=order,
                ),
            )
            created += 1
        print(f"   ✅ {name}: {len(items)} items")
    return created


async def seed_offers(db) -> None:
    now = utcnow()
    await offer_service.create_offer(
        db,
        OfferCreate(
            title="Welcome Feast",
            description="20% off your first order, up to ₹150",
            type=OfferType.BOTH,
            discount_type=DiscountType.PERCENTAGE,
            discount_value=Decimal("20"),
            maximum_discount_amount=Decimal("150"),
            target_audience=TargetAudience.NEW_CUSTOMERS,
            priority=5,
            valid_from=now,
            valid_until=now + timedelta(days=30),
        ),
    )
    await offer_service.create_offer(
        db,
        OfferCreate(
            title="Free Delivery Weekend",
            description="No delivery charge on orders above ₹299",
            type=OfferType.BANNER,
            discount_type=DiscountType.FREE_DELIVERY,
            minimum_order_amount=Decimal("299"),
            valid_from=now,
            valid_until=now + timedelta(days=7),
        ),
    )
    print("   ✅ 2 offers")


async def main(with_offers: bool) -> None:
    setup_logging()
    await init_db()

    print("=" * 60)
    print("🌱 SEEDING MENU")
    print("=" * 60)
    async with async_session_maker() as db:
        created = await seed_catalog(db)
        if with_offers:
            await seed_offers(db)
    await engine.dispose()

    print("=" * 60)
    print(f"✅ Done: {created} menu items created")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the starter menu")
    parser.add_argument("--no-offers", action="store_true", help="Skip the sample offers")
    args = parser.parse_args()

    asyncio.run(main(with_offers=not args.no_offers))

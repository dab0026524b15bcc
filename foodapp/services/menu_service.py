"""
Menu / Catalog Service

Categories and menu items for the storefront and the admin panel.
"""

import logging
from typing import Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.errors import ConflictError, NotFoundError, ValidationError
from foodapp.core.utils import money, slugify
from foodapp.models import CartItem, Category, MenuItem
from foodapp.schemas import CategoryCreate, CategoryUpdate, MenuItemCreate, MenuItemUpdate

logger = logging.getLogger(__name__)


# =============================================================================
# CATEGORIES
# =============================================================================

async def list_categories(db: AsyncSession, active_only: bool = True) -> list[Category]:
    query = select(Category).order_by(Category.sort_order, Category.name)
    if active_only:
        query = query.where(Category.is_active.is_(True))
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_category(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category")
    return category


async def _ensure_unique_slug(db: AsyncSession, slug: str, exclude_id: Optional[int] = None) -> None:
    query = select(Category.id).where(Category.slug == slug)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise ConflictError(f"A category with slug '{slug}' already exists")


async def create_category(db: AsyncSession, data: CategoryCreate) -> Category:
    slug = slugify(data.name)
    await _ensure_unique_slug(db, slug)

    category = Category(slug=slug, **data.model_dump())
    db.add(category)
    await db.commit()
    logger.info(f"Category created: {category.name} ({slug})")
    return category


async def update_category(db: AsyncSession, category_id: int, data: CategoryUpdate) -> Category:
    category = await get_category(db, category_id)
    changes = data.model_dump(exclude_unset=True)

    if "name" in changes and changes["name"] != category.name:
        slug = slugify(changes["name"])
        await _ensure_unique_slug(db, slug, exclude_id=category.id)
        category.slug = slug

    for field, value in changes.items():
        setattr(category, field, value)

    await db.commit()
    return category


async def delete_category(db: AsyncSession, category_id: int) -> None:
    category = await get_category(db, category_id)
    in_use = await db.scalar(
        select(func.count(MenuItem.id)).where(MenuItem.category_id == category_id)
    )
    if in_use:
        raise ConflictError(
            "Category still has menu items",
            details={"menu_items": in_use},
        )
    await db.delete(category)
    await db.commit()
    logger.info(f"Category deleted: #{category_id}")


# =============================================================================
# MENU ITEMS
# =============================================================================

async def list_menu_items(
    db: AsyncSession,
    *,
    category_id: Optional[int] = None,
    category_slug: Optional[str] = None,
    available: Optional[bool] = None,
    popular: Optional[bool] = None,
    vegetarian: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[MenuItem], int]:
    """Filtered, paginated catalog listing. Returns (items, total)."""
    conditions = []
    if category_id is not None:
        conditions.append(MenuItem.category_id == category_id)
    if category_slug:
        conditions.append(
            MenuItem.category_id.in_(select(Category.id).where(Category.slug == category_slug))
        )
    if available is not None:
        conditions.append(MenuItem.is_available.is_(available))
    if popular is not None:
        conditions.append(MenuItem.is_popular.is_(popular))
    if vegetarian is not None:
        conditions.append(MenuItem.is_vegetarian.is_(vegetarian))
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(MenuItem.name.ilike(pattern), MenuItem.description.ilike(pattern)))

    total = await db.scalar(select(func.count(MenuItem.id)).where(*conditions)) or 0

    result = await db.execute(
        select(MenuItem)
        .where(*conditions)
        .order_by(MenuItem.sort_order, MenuItem.name)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def popular_items(db: AsyncSession, limit: int = 8) -> list[MenuItem]:
    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.is_popular.is_(True), MenuItem.is_available.is_(True))
        .order_by(MenuItem.sort_order, MenuItem.name)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_menu_item(db: AsyncSession, item_id: int) -> MenuItem:
    item = await db.get(MenuItem, item_id)
    if item is None:
        raise NotFoundError("Menu item")
    return item


async def _check_category(db: AsyncSession, category_id: Optional[int]) -> None:
    if category_id is not None and await db.get(Category, category_id) is None:
        raise ValidationError(f"Category #{category_id} does not exist")


async def create_menu_item(db: AsyncSession, data: MenuItemCreate) -> MenuItem:
    await _check_category(db, data.category_id)
    item = MenuItem(**data.model_dump())
    item.price = money(item.price)
    db.add(item)
    await db.commit()
    await db.refresh(item, ["category"])
    logger.info(f"Menu item created: {item.name} @ {item.price}")
    return item


async def update_menu_item(db: AsyncSession, item_id: int, data: MenuItemUpdate) -> MenuItem:
    item = await get_menu_item(db, item_id)
    changes = data.model_dump(exclude_unset=True)
    if "category_id" in changes:
        await _check_category(db, changes["category_id"])
    if "price" in changes and changes["price"] is not None:
        changes["price"] = money(changes["price"])

    for field, value in changes.items():
        setattr(item, field, value)

    await db.commit()
    await db.refresh(item, ["category"])
    return item


async def delete_menu_item(db: AsyncSession, item_id: int) -> None:
    item = await get_menu_item(db, item_id)
    await db.execute(delete(CartItem).where(CartItem.menu_item_id == item_id))
    await db.delete(item)
    await db.commit()
    logger.info(f"Menu item deleted: #{item_id}")


async def set_availability(db: AsyncSession, item_id: int, is_available: bool) -> MenuItem:
    """Set availability to an explicit value; repeating the call changes nothing."""
    item = await get_menu_item(db, item_id)
    if item.is_available != is_available:
        item.is_available = is_available
        await db.commit()
        logger.info(f"Menu item #{item_id} availability → {is_available}")
    return item


async def bulk_set_availability(db: AsyncSession, item_ids: list[int], is_available: bool) -> int:
    result = await db.execute(
        update(MenuItem)
        .where(MenuItem.id.in_(item_ids))
        .values(is_available=is_available)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    return result.rowcount or 0


async def catalog_stats(db: AsyncSession) -> dict:
    total = await db.scalar(select(func.count(MenuItem.id))) or 0
    available = await db.scalar(
        select(func.count(MenuItem.id)).where(MenuItem.is_available.is_(True))
    ) or 0
    popular = await db.scalar(
        select(func.count(MenuItem.id)).where(MenuItem.is_popular.is_(True))
    ) or 0
    vegetarian = await db.scalar(
        select(func.count(MenuItem.id)).where(MenuItem.is_vegetarian.is_(True))
    ) or 0
    categories = await db.scalar(select(func.count(Category.id))) or 0
    average = await db.scalar(select(func.avg(MenuItem.price)))

    return {
        "total_items": total,
        "available_items": available,
        "unavailable_items": total - available,
        "popular_items": popular,
        "vegetarian_items": vegetarian,
        "total_categories": categories,
        "average_price": money(average or 0),
    }

"""Storefront catalog endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.utils import page_count
from foodapp.database import get_db
from foodapp.schemas import CategoryResponse, MenuItemListResponse, MenuItemResponse
from foodapp.services import menu_service

router = APIRouter(prefix="/api", tags=["Menu"])


@router.get("/categories", response_model=List[CategoryResponse], summary="List Categories")
async def list_categories(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[CategoryResponse]:
    categories = await menu_service.list_categories(db, active_only=not include_inactive)
    return [CategoryResponse.model_validate(c) for c in categories]


@router.get("/menu-items", response_model=MenuItemListResponse, summary="Browse Menu")
async def list_menu_items(
    category_id: Optional[int] = Query(None),
    category: Optional[str] = Query(None, description="Category slug"),
    available: Optional[bool] = Query(None),
    popular: Optional[bool] = Query(None),
    vegetarian: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> MenuItemListResponse:
    """Filtered, paginated menu. ``search`` matches name and description."""
    items, total = await menu_service.list_menu_items(
        db,
        category_id=category_id,
        category_slug=category,
        available=available,
        popular=popular,
        vegetarian=vegetarian,
        search=search,
        page=page,
        limit=limit,
    )
    return MenuItemListResponse(
        total=total,
        page=page,
        limit=limit,
        total_pages=page_count(total, limit),
        items=[MenuItemResponse.model_validate(i) for i in items],
    )


@router.get("/menu-items/popular", response_model=List[MenuItemResponse], summary="Popular Items")
async def popular_items(
    limit: int = Query(8, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
) -> List[MenuItemResponse]:
    items = await menu_service.popular_items(db, limit)
    return [MenuItemResponse.model_validate(i) for i in items]


@router.get("/menu-items/{item_id}", response_model=MenuItemResponse, summary="Menu Item Detail")
async def get_menu_item(item_id: int, db: AsyncSession = Depends(get_db)) -> MenuItemResponse:
    return MenuItemResponse.model_validate(await menu_service.get_menu_item(db, item_id))

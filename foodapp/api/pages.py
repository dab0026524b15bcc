"""Server-rendered pages."""

from pathlib import Path

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.config import get_settings
from foodapp.database import get_db
from foodapp.services import menu_service

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

router = APIRouter(tags=["Pages"], include_in_schema=False)


@router.get("/menu", response_class=HTMLResponse)
async def menu_page(request: Request, db: AsyncSession = Depends(get_db)) -> HTMLResponse:
    """Storefront menu grouped by category."""
    categories = await menu_service.list_categories(db)
    items, _ = await menu_service.list_menu_items(db, available=True, limit=500)

    sections = []
    for category in categories:
        entries = [item for item in items if item.category_id == category.id]
        if entries:
            sections.append({"category": category, "items": entries})
    uncategorized = [item for item in items if item.category_id is None]
    if uncategorized:
        sections.append({"category": None, "items": uncategorized})

    return templates.TemplateResponse(
        request,
        "menu.html",
        {"restaurant_name": get_settings().restaurant_name, "sections": sections},
    )


@router.get("/admin", response_class=HTMLResponse)
async def admin_page(request: Request) -> HTMLResponse:
    """Dashboard shell; data is loaded from /api/admin with the admin's token."""
    settings = get_settings()
    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {"restaurant_name": settings.restaurant_name, "environment": settings.env_mode.value},
    )

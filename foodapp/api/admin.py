"""
Admin Panel API

Everything under ``/api/admin`` requires the admin role, except the
order board (list, detail, status updates) which kitchen staff can use.
Handlers call the same service functions as the storefront.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.config import get_settings
from foodapp.core.errors import AppError, ValidationError
from foodapp.core.security import require_admin, require_staff
from foodapp.core.utils import page_count
from foodapp.database import get_db
from foodapp.models import OrderStatus, UserRole
from foodapp.schemas import (
    BroadcastResponse,
    BulkAvailabilityUpdate,
    BulkUpdateResponse,
    AvailabilityUpdate,
    CatalogStats,
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    CustomerSummary,
    DashboardStats,
    ImageUploadResponse,
    LoyaltyAdjust,
    MenuItemCreate,
    MenuItemListResponse,
    MenuItemResponse,
    MenuItemUpdate,
    MessageResponse,
    NotificationBroadcast,
    OfferAnalytics,
    OfferCreate,
    OfferResponse,
    OfferUpdate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    RefundRequest,
    RefundResponse,
    RestaurantSettingsResponse,
    RestaurantSettingsUpdate,
    RevenuePoint,
    TopSellingItem,
    UrgencyOfferCreate,
    UserListResponse,
    UserResponse,
    UserRoleUpdate,
    UserStatusUpdate,
)
from foodapp.services import (
    admin_service,
    export_service,
    loyalty_service,
    menu_service,
    notification_service,
    offer_service,
    order_service,
    restaurant_service,
    user_service,
)
from foodapp.services.media import get_media_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_admin)])
staff_router = APIRouter(prefix="/api/admin", tags=["Admin"], dependencies=[Depends(require_staff)])


# =============================================================================
# DASHBOARD & ANALYTICS
# =============================================================================

@router.get("/dashboard", response_model=DashboardStats, summary="Dashboard Stats")
async def dashboard(db: AsyncSession = Depends(get_db)) -> DashboardStats:
    stats = await admin_service.dashboard_stats(db)
    stats["recent_orders"] = [OrderResponse.model_validate(o) for o in stats["recent_orders"]]
    return DashboardStats(**stats)


@router.get("/analytics/revenue", response_model=List[RevenuePoint])
async def revenue(
    days: int = Query(7, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
) -> List[RevenuePoint]:
    return [RevenuePoint(**p) for p in await admin_service.revenue_series(db, days)]


@router.get("/analytics/top-items", response_model=List[TopSellingItem])
async def top_items(
    limit: int = Query(10, ge=1, le=100),
    days: Optional[int] = Query(None, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
) -> List[TopSellingItem]:
    return [TopSellingItem(**i) for i in await admin_service.top_selling_items(db, limit, days)]


@router.get("/analytics/customers", response_model=List[CustomerSummary])
async def top_customers(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> List[CustomerSummary]:
    return [CustomerSummary(**c) for c in await admin_service.customer_analytics(db, limit)]


# =============================================================================
# ORDERS
# =============================================================================

@staff_router.get("/orders", response_model=OrderListResponse, summary="Order Board")
async def list_orders(
    status: Optional[OrderStatus] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    orders, total = await order_service.list_orders(
        db, status=status, search=search, page=page, limit=limit
    )
    return OrderListResponse(
        total=total,
        page=page,
        limit=limit,
        total_pages=page_count(total, limit),
        orders=[OrderResponse.model_validate(o) for o in orders],
    )


@staff_router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)) -> OrderResponse:
    return OrderResponse.model_validate(await order_service.get_order(db, order_id))


@staff_router.patch("/orders/{order_id}/status", response_model=OrderResponse, summary="Update Order Status")
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """Statuses only move forward; any non-terminal order can be cancelled."""
    order = await order_service.update_status(
        db, order_id, data.status, message=data.message, kitchen_notes=data.kitchen_notes
    )
    return OrderResponse.model_validate(order)


@router.post("/orders/{order_id}/refund", response_model=RefundResponse, summary="Refund Order")
async def refund_order(
    order_id: int,
    data: RefundRequest,
    db: AsyncSession = Depends(get_db),
) -> RefundResponse:
    return RefundResponse(**await order_service.refund_order(db, order_id, data.amount, data.reason))


# =============================================================================
# USERS & LOYALTY
# =============================================================================

@router.get("/users", response_model=UserListResponse)
async def list_users(
    role: Optional[UserRole] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> UserListResponse:
    users, total = await user_service.list_users(
        db, role=role, is_active=is_active, search=search, page=page, limit=limit
    )
    return UserListResponse(
        total=total,
        page=page,
        limit=limit,
        total_pages=page_count(total, limit),
        users=[UserResponse.model_validate(u) for u in users],
    )


@router.patch("/users/{user_id}/status", response_model=UserResponse)
async def set_user_status(
    user_id: int,
    data: UserStatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    return UserResponse.model_validate(await user_service.set_active(db, user_id, data.is_active))


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def set_user_role(
    user_id: int,
    data: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    return UserResponse.model_validate(await user_service.set_role(db, user_id, data.role))


@router.post("/users/{user_id}/loyalty", response_model=UserResponse, summary="Adjust Loyalty Points")
async def adjust_loyalty(
    user_id: int,
    data: LoyaltyAdjust,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    await loyalty_service.adjust_points(db, user_id, data.points, data.reason)
    return UserResponse.model_validate(await user_service.get_user(db, user_id))


# =============================================================================
# CATALOG
# =============================================================================

@router.get("/categories", response_model=List[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)) -> List[CategoryResponse]:
    return [CategoryResponse.model_validate(c) for c in await menu_service.list_categories(db, active_only=False)]


@router.post("/categories", response_model=CategoryResponse, status_code=201)
async def create_category(data: CategoryCreate, db: AsyncSession = Depends(get_db)) -> CategoryResponse:
    return CategoryResponse.model_validate(await menu_service.create_category(db, data))


@router.patch("/categories/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    db: AsyncSession = Depends(get_db),
) -> CategoryResponse:
    return CategoryResponse.model_validate(await menu_service.update_category(db, category_id, data))


@router.delete("/categories/{category_id}", response_model=MessageResponse)
async def delete_category(category_id: int, db: AsyncSession = Depends(get_db)) -> MessageResponse:
    await menu_service.delete_category(db, category_id)
    return MessageResponse(message="Category deleted")


@router.get("/menu-items", response_model=MenuItemListResponse)
async def list_menu_items(
    category_id: Optional[int] = Query(None),
    available: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> MenuItemListResponse:
    items, total = await menu_service.list_menu_items(
        db, category_id=category_id, available=available, search=search, page=page, limit=limit
    )
    return MenuItemListResponse(
        total=total,
        page=page,
        limit=limit,
        total_pages=page_count(total, limit),
        items=[MenuItemResponse.model_validate(i) for i in items],
    )


@router.get("/menu-items/stats", response_model=CatalogStats)
async def catalog_stats(db: AsyncSession = Depends(get_db)) -> CatalogStats:
    return CatalogStats(**await menu_service.catalog_stats(db))


@router.post("/menu-items/bulk-availability", response_model=BulkUpdateResponse)
async def bulk_availability(
    data: BulkAvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
) -> BulkUpdateResponse:
    updated = await menu_service.bulk_set_availability(db, data.item_ids, data.is_available)
    return BulkUpdateResponse(updated=updated)


@router.post("/menu-items", response_model=MenuItemResponse, status_code=201)
async def create_menu_item(data: MenuItemCreate, db: AsyncSession = Depends(get_db)) -> MenuItemResponse:
    return MenuItemResponse.model_validate(await menu_service.create_menu_item(db, data))


@router.patch("/menu-items/{item_id}", response_model=MenuItemResponse)
async def update_menu_item(
    item_id: int,
    data: MenuItemUpdate,
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    return MenuItemResponse.model_validate(await menu_service.update_menu_item(db, item_id, data))


@router.patch("/menu-items/{item_id}/availability", response_model=MenuItemResponse)
async def set_availability(
    item_id: int,
    data: AvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    """Sets an explicit value, so repeating the request is harmless."""
    return MenuItemResponse.model_validate(
        await menu_service.set_availability(db, item_id, data.is_available)
    )


@router.delete("/menu-items/{item_id}", response_model=MessageResponse)
async def delete_menu_item(item_id: int, db: AsyncSession = Depends(get_db)) -> MessageResponse:
    await menu_service.delete_menu_item(db, item_id)
    return MessageResponse(message="Menu item deleted")


@router.post("/uploads/image", response_model=ImageUploadResponse, status_code=201, summary="Upload Image")
async def upload_image(file: UploadFile = File(...)) -> ImageUploadResponse:
    settings = get_settings()
    if not (file.content_type or "").startswith("image/"):
        raise ValidationError("Only image files can be uploaded")

    data = await file.read()
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > settings.max_upload_bytes:
        raise ValidationError(
            f"Image is larger than {settings.max_upload_bytes // (1024 * 1024)} MB",
            details={"max_bytes": settings.max_upload_bytes, "size": len(data)},
        )

    result = await get_media_service().upload_image(data, file.filename or "upload", settings.cloudinary_folder)
    if not result.success:
        raise AppError(result.error_message or "Image upload failed", status_code=502)

    return ImageUploadResponse(
        url=result.url,
        public_id=result.public_id,
        width=result.width,
        height=result.height,
        format=result.format,
        size_bytes=result.size_bytes,
    )


# =============================================================================
# OFFERS
# =============================================================================

@router.get("/offers", response_model=List[OfferResponse])
async def list_offers(db: AsyncSession = Depends(get_db)) -> List[OfferResponse]:
    return [OfferResponse.model_validate(o) for o in await offer_service.list_offers(db)]


@router.post("/offers", response_model=OfferResponse, status_code=201)
async def create_offer(data: OfferCreate, db: AsyncSession = Depends(get_db)) -> OfferResponse:
    return OfferResponse.model_validate(await offer_service.create_offer(db, data))


@router.post("/offers/urgency", response_model=OfferResponse, status_code=201, summary="Flash Offer")
async def create_urgency_offer(data: UrgencyOfferCreate, db: AsyncSession = Depends(get_db)) -> OfferResponse:
    """High-priority percentage popup valid for ``hours_valid`` hours."""
    return OfferResponse.model_validate(await offer_service.create_urgency_offer(db, data))


@router.patch("/offers/{offer_id}", response_model=OfferResponse)
async def update_offer(
    offer_id: int,
    data: OfferUpdate,
    db: AsyncSession = Depends(get_db),
) -> OfferResponse:
    return OfferResponse.model_validate(await offer_service.update_offer(db, offer_id, data))


@router.delete("/offers/{offer_id}", response_model=MessageResponse)
async def delete_offer(offer_id: int, db: AsyncSession = Depends(get_db)) -> MessageResponse:
    await offer_service.delete_offer(db, offer_id)
    return MessageResponse(message="Offer deleted")


@router.get("/offers/{offer_id}/analytics", response_model=OfferAnalytics)
async def offer_analytics(offer_id: int, db: AsyncSession = Depends(get_db)) -> OfferAnalytics:
    return OfferAnalytics(**await offer_service.offer_analytics(db, offer_id))


# =============================================================================
# SETTINGS & BROADCAST
# =============================================================================

@router.get("/settings", response_model=RestaurantSettingsResponse)
async def get_restaurant_settings(db: AsyncSession = Depends(get_db)) -> RestaurantSettingsResponse:
    return RestaurantSettingsResponse.model_validate(await restaurant_service.get_restaurant_settings(db))


@router.patch("/settings", response_model=RestaurantSettingsResponse)
async def update_restaurant_settings(
    data: RestaurantSettingsUpdate,
    db: AsyncSession = Depends(get_db),
) -> RestaurantSettingsResponse:
    row = await restaurant_service.update_restaurant_settings(db, data)
    return RestaurantSettingsResponse.model_validate(row)


@router.post("/notifications/broadcast", response_model=BroadcastResponse, status_code=201)
async def broadcast(data: NotificationBroadcast, db: AsyncSession = Depends(get_db)) -> BroadcastResponse:
    recipients = await notification_service.broadcast(db, data.title, data.message, role=data.role, type=data.type)
    return BroadcastResponse(recipients=recipients)


# =============================================================================
# EXPORTS
# =============================================================================

def _xlsx(path) -> FileResponse:
    return FileResponse(path, media_type=export_service.XLSX_MEDIA_TYPE, filename=path.name)


@router.get("/exports/orders", summary="Export Orders (.xlsx)")
async def export_orders(
    status: Optional[OrderStatus] = Query(None),
    days: Optional[int] = Query(None, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
) -> FileResponse:
    return _xlsx(await export_service.export_orders(db, status=status, days=days))


@router.get("/exports/menu-items", summary="Export Menu (.xlsx)")
async def export_menu_items(db: AsyncSession = Depends(get_db)) -> FileResponse:
    return _xlsx(await export_service.export_menu_items(db))


@router.get("/exports/users", summary="Export Users (.xlsx)")
async def export_users(db: AsyncSession = Depends(get_db)) -> FileResponse:
    return _xlsx(await export_service.export_users(db))

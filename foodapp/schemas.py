"""
Pydantic Schemas for Request/Response Validation

Money fields are ``Decimal`` and serialize as decimal strings ("25.50").
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Any

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from foodapp.models import (
    DiscountType,
    InteractionType,
    NotificationType,
    OfferType,
    OrderStatus,
    PaymentStatus,
    SpiceLevel,
    TargetAudience,
    UserRole,
)


def _check_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    cleaned = re.sub(r"[^\d]", "", v)
    if len(cleaned) < 10:
        raise ValueError("Phone number must have at least 10 digits")
    return v.strip()


# =============================================================================
# COMMON
# =============================================================================

class MessageResponse(BaseModel):
    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[Any] = None


class HealthResponse(BaseModel):
    """System health check response."""
    status: str
    environment: str
    database: str
    redis: str
    payment: str
    notifications: str
    timestamp: datetime


class Page(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


# =============================================================================
# USERS
# =============================================================================

class UserResponse(BaseModel):
    id: int
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    phone: Optional[str]
    role: UserRole
    is_active: bool
    loyalty_points: int
    created_at: datetime

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20, examples=["+919876543210"])

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)


class UserStatsResponse(BaseModel):
    total_orders: int
    total_spent: Decimal
    loyalty_points: int
    last_order_at: Optional[datetime] = None


class UserListResponse(Page):
    users: List[UserResponse]


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserRoleUpdate(BaseModel):
    role: UserRole


# =============================================================================
# CATALOG
# =============================================================================

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Biryani"])
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)
    is_active: bool = True
    sort_order: int = 0


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str]
    image: Optional[str]
    is_active: bool
    sort_order: int

    class Config:
        from_attributes = True


class CategorySummary(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200, examples=["Chicken Biryani"])
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2, examples=["249.00"])
    image: Optional[str] = Field(None, max_length=500)
    category_id: Optional[int] = None
    is_available: bool = True
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    spice_level: Optional[SpiceLevel] = None
    is_popular: bool = False
    preparation_time: int = Field(default=30, ge=1, le=240)
    ingredients: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    sort_order: int = 0


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    image: Optional[str] = Field(None, max_length=500)
    category_id: Optional[int] = None
    is_available: Optional[bool] = None
    is_vegetarian: Optional[bool] = None
    is_vegan: Optional[bool] = None
    is_gluten_free: Optional[bool] = None
    spice_level: Optional[SpiceLevel] = None
    is_popular: Optional[bool] = None
    preparation_time: Optional[int] = Field(None, ge=1, le=240)
    ingredients: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    sort_order: Optional[int] = None


class MenuItemResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    price: Decimal
    image: Optional[str]
    category_id: Optional[int]
    category: Optional[CategorySummary] = None
    is_available: bool
    is_vegetarian: bool
    is_vegan: bool
    is_gluten_free: bool
    spice_level: Optional[SpiceLevel]
    is_popular: bool
    preparation_time: int
    ingredients: Optional[List[str]]
    tags: Optional[List[str]]
    sort_order: int

    class Config:
        from_attributes = True


class MenuItemListResponse(Page):
    items: List[MenuItemResponse]


class AvailabilityUpdate(BaseModel):
    is_available: bool


class BulkAvailabilityUpdate(BaseModel):
    item_ids: List[int] = Field(..., min_length=1)
    is_available: bool


class BulkUpdateResponse(BaseModel):
    updated: int


class CatalogStats(BaseModel):
    total_items: int
    available_items: int
    unavailable_items: int
    popular_items: int
    vegetarian_items: int
    total_categories: int
    average_price: Decimal


# =============================================================================
# CART
# =============================================================================

class CartItemAdd(BaseModel):
    menu_item_id: int
    quantity: int = Field(default=1, ge=1, le=99)
    special_instructions: Optional[str] = Field(None, max_length=500)


class CartItemUpdate(BaseModel):
    quantity: Optional[int] = Field(None, ge=1, le=99)
    special_instructions: Optional[str] = Field(None, max_length=500)


class CartItemResponse(BaseModel):
    id: int
    menu_item_id: int
    name: str
    image: Optional[str]
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    special_instructions: Optional[str]
    is_available: bool


class CartResponse(BaseModel):
    id: Optional[int]
    items: List[CartItemResponse]
    total_items: int
    total_amount: Decimal


# =============================================================================
# ADDRESSES
# =============================================================================

class AddressCreate(BaseModel):
    type: str = Field(default="home", max_length=20, examples=["home", "work"])
    label: Optional[str] = Field(None, max_length=100)
    address_line_1: str = Field(..., min_length=3, max_length=255)
    address_line_2: Optional[str] = Field(None, max_length=255)
    city: str = Field(..., min_length=2, max_length=100)
    state: str = Field(..., min_length=2, max_length=100)
    postal_code: str = Field(..., min_length=3, max_length=20)
    country: str = Field(default="India", max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    instructions: Optional[str] = Field(None, max_length=500)
    is_default: bool = False
    latitude: Optional[Decimal] = Field(None, ge=-90, le=90)
    longitude: Optional[Decimal] = Field(None, ge=-180, le=180)


class AddressUpdate(BaseModel):
    type: Optional[str] = Field(None, max_length=20)
    label: Optional[str] = Field(None, max_length=100)
    address_line_1: Optional[str] = Field(None, min_length=3, max_length=255)
    address_line_2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, min_length=2, max_length=100)
    state: Optional[str] = Field(None, min_length=2, max_length=100)
    postal_code: Optional[str] = Field(None, min_length=3, max_length=20)
    country: Optional[str] = Field(None, max_length=100)
    landmark: Optional[str] = Field(None, max_length=255)
    instructions: Optional[str] = Field(None, max_length=500)
    is_default: Optional[bool] = None


class AddressResponse(BaseModel):
    id: int
    type: str
    label: Optional[str]
    address_line_1: str
    address_line_2: Optional[str]
    city: str
    state: str
    postal_code: str
    country: str
    landmark: Optional[str]
    instructions: Optional[str]
    is_default: bool

    class Config:
        from_attributes = True


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemInput(BaseModel):
    """Explicit line for checkout without a cart."""
    menu_item_id: int
    quantity: int = Field(..., ge=1, le=99)
    unit_price: Optional[Decimal] = Field(
        None, gt=0, description="Price the customer saw; rejected if the catalog differs"
    )
    special_instructions: Optional[str] = Field(None, max_length=500)


class GuestDetails(BaseModel):
    name: str = Field(..., min_length=2, max_length=200, examples=["Asha Verma"])
    phone: str = Field(..., min_length=10, max_length=20, examples=["+919876543210"])
    email: Optional[EmailStr] = None
    address: str = Field(..., min_length=5, max_length=500)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)


class OrderCreate(BaseModel):
    """Checkout request. Without ``items`` the caller's cart is used."""
    items: Optional[List[OrderItemInput]] = Field(None, min_length=1)
    delivery_address_id: Optional[int] = None
    customer_notes: Optional[str] = Field(None, max_length=500)
    offer_id: Optional[int] = None
    redeem_points: int = Field(default=0, ge=0)
    scheduled_for: Optional[datetime] = None
    guest: Optional[GuestDetails] = None


class OrderItemResponse(BaseModel):
    id: int
    menu_item_id: Optional[int]
    name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    special_instructions: Optional[str]

    class Config:
        from_attributes = True


class OrderTrackingResponse(BaseModel):
    status: OrderStatus
    message: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int]
    customer_name: str
    customer_phone: Optional[str]
    delivery_address: Optional[str]
    status: OrderStatus
    payment_status: PaymentStatus
    subtotal: Decimal
    tax: Decimal
    delivery_fee: Decimal
    discount: Decimal
    total: Decimal
    offer_id: Optional[int]
    loyalty_points_redeemed: int
    loyalty_points_earned: int
    customer_notes: Optional[str]
    kitchen_notes: Optional[str]
    scheduled_for: Optional[datetime]
    estimated_delivery_time: Optional[datetime]
    actual_delivery_time: Optional[datetime]
    created_at: datetime
    items: List[OrderItemResponse]
    tracking: List[OrderTrackingResponse]

    class Config:
        from_attributes = True


class OrderListResponse(Page):
    orders: List[OrderResponse]


class OrderTrackResponse(BaseModel):
    order_number: str
    status: OrderStatus
    estimated_delivery_time: Optional[datetime]
    actual_delivery_time: Optional[datetime]
    tracking: List[OrderTrackingResponse]

    class Config:
        from_attributes = True


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    message: Optional[str] = Field(None, max_length=500)
    kitchen_notes: Optional[str] = Field(None, max_length=1000)


class OrderCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


# =============================================================================
# OFFERS
# =============================================================================

class OfferCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200, examples=["Weekend Feast"])
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)
    type: OfferType = OfferType.BANNER
    discount_type: DiscountType
    discount_value: Decimal = Field(default=Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    minimum_order_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount_amount: Optional[Decimal] = Field(None, gt=0)
    target_audience: TargetAudience = TargetAudience.ALL
    occasion_type: Optional[str] = Field(None, max_length=50)
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: bool = True
    priority: int = 0
    valid_from: datetime
    valid_until: datetime
    popup_delay_seconds: int = Field(default=10, ge=0)
    show_frequency_hours: int = Field(default=24, ge=0)

    @model_validator(mode="after")
    def check_window(self) -> "OfferCreate":
        if self.valid_until <= self.valid_from:
            raise ValueError("valid_until must be after valid_from")
        if self.discount_type == DiscountType.PERCENTAGE and self.discount_value > 100:
            raise ValueError("Percentage discount cannot exceed 100")
        return self


class OfferUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=2, max_length=200)
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)
    type: Optional[OfferType] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, ge=0)
    minimum_order_amount: Optional[Decimal] = Field(None, ge=0)
    maximum_discount_amount: Optional[Decimal] = Field(None, gt=0)
    target_audience: Optional[TargetAudience] = None
    occasion_type: Optional[str] = Field(None, max_length=50)
    usage_limit: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    popup_delay_seconds: Optional[int] = Field(None, ge=0)
    show_frequency_hours: Optional[int] = Field(None, ge=0)


class OfferResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    image: Optional[str]
    type: OfferType
    discount_type: DiscountType
    discount_value: Decimal
    minimum_order_amount: Optional[Decimal]
    maximum_discount_amount: Optional[Decimal]
    target_audience: TargetAudience
    occasion_type: Optional[str]
    usage_limit: Optional[int]
    used_count: int
    is_active: bool
    priority: int
    valid_from: datetime
    valid_until: datetime
    popup_delay_seconds: int
    show_frequency_hours: int

    class Config:
        from_attributes = True


class UrgencyOfferCreate(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    description: Optional[str] = None
    discount_percentage: Decimal = Field(..., gt=0, le=100)
    hours_valid: int = Field(default=2, ge=1, le=72)
    maximum_discount_amount: Optional[Decimal] = Field(None, gt=0)
    target_audience: TargetAudience = TargetAudience.ALL


class OfferInteractionCreate(BaseModel):
    interaction_type: InteractionType
    order_id: Optional[int] = None


class OfferValidateRequest(BaseModel):
    order_amount: Decimal = Field(..., gt=0)


class OfferValidationResponse(BaseModel):
    valid: bool
    offer_id: int
    discount: Decimal
    free_delivery: bool = False
    message: str


class OfferAnalytics(BaseModel):
    offer_id: int
    title: str
    views: int
    clicks: int
    conversions: int
    dismissals: int
    used_count: int
    click_through_rate: float
    conversion_rate: float


# =============================================================================
# LOYALTY
# =============================================================================

class LoyaltyResponse(BaseModel):
    points: int
    redeemable_points: int
    discount_value: Decimal
    conversion_rate: str


class LoyaltyAdjust(BaseModel):
    points: int = Field(..., description="Positive to credit, negative to debit")
    reason: Optional[str] = Field(None, max_length=200)

    @field_validator("points")
    @classmethod
    def validate_points(cls, v: int) -> int:
        if v == 0:
            raise ValueError("points must not be zero")
        return v


# =============================================================================
# OTP
# =============================================================================

class OTPSendRequest(BaseModel):
    phone: str = Field(..., min_length=10, max_length=20, examples=["9876543210"])

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return _check_phone(v)


class OTPSendResponse(BaseModel):
    success: bool
    message: str
    expires_in: int


class OTPVerifyRequest(BaseModel):
    phone: str = Field(..., min_length=10, max_length=20)
    code: str = Field(..., pattern=r"^\d{4,8}$")


class OTPStatusResponse(BaseModel):
    phone: str
    verified: bool
    attempts_remaining: int


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    order_id: Optional[int]
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationBroadcast(BaseModel):
    title: str = Field(..., min_length=2, max_length=200)
    message: str = Field(..., min_length=2, max_length=2000)
    role: Optional[UserRole] = Field(None, description="Limit to one role; all active users when empty")
    type: NotificationType = NotificationType.PROMOTION


class BroadcastResponse(BaseModel):
    recipients: int


# =============================================================================
# PAYMENTS / MEDIA
# =============================================================================

class PaymentIntentRequest(BaseModel):
    order_id: int


class PaymentIntentResponse(BaseModel):
    order_id: int
    payment_intent_id: str
    client_secret: Optional[str]
    amount: Decimal
    currency: str


class RefundRequest(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0)
    reason: Optional[str] = Field(None, examples=["requested_by_customer"])


class RefundResponse(BaseModel):
    order_id: int
    refund_id: Optional[str]
    status: str
    payment_status: PaymentStatus


class WebhookAck(BaseModel):
    received: bool = True
    handled: bool = False
    event_type: Optional[str] = None


class ImageUploadResponse(BaseModel):
    url: str
    public_id: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    size_bytes: Optional[int] = None


# =============================================================================
# ADMIN
# =============================================================================

class StatusCount(BaseModel):
    status: OrderStatus
    count: int


class DashboardStats(BaseModel):
    total_orders: int
    total_revenue: Decimal
    today_orders: int
    today_revenue: Decimal
    pending_orders: int
    average_order_value: Decimal
    total_customers: int
    status_breakdown: List[StatusCount]
    recent_orders: List[OrderResponse]


class RevenuePoint(BaseModel):
    date: str
    orders: int
    revenue: Decimal


class TopSellingItem(BaseModel):
    menu_item_id: Optional[int]
    name: str
    quantity: int
    revenue: Decimal


class CustomerSummary(BaseModel):
    user_id: int
    name: str
    email: str
    orders: int
    total_spent: Decimal
    loyalty_points: int


class RestaurantSettingsResponse(BaseModel):
    is_ordering_enabled: bool
    minimum_order_amount: Decimal
    delivery_fee: Decimal
    free_delivery_threshold: Decimal
    loyalty_points_rate: Decimal
    opening_hours: Optional[dict] = None

    class Config:
        from_attributes = True


class RestaurantSettingsUpdate(BaseModel):
    is_ordering_enabled: Optional[bool] = None
    minimum_order_amount: Optional[Decimal] = Field(None, ge=0)
    delivery_fee: Optional[Decimal] = Field(None, ge=0)
    free_delivery_threshold: Optional[Decimal] = Field(None, ge=0)
    loyalty_points_rate: Optional[Decimal] = Field(None, ge=0)
    opening_hours: Optional[dict] = None

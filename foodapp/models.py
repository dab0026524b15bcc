"""
SQLAlchemy Database Models

Tables for the storefront and the admin panel:
- Users synced from the identity provider, with loyalty points
- Catalog (categories, menu items)
- Carts keyed by user or anonymous session
- Orders with immutable line snapshots and a tracking log
- Promotional offers and their interaction log
- In-app notifications and restaurant-wide settings
"""

import enum

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    Text,
    Enum,
    Boolean,
    ForeignKey,
    JSON,
    UniqueConstraint,
    CheckConstraint,
    Index,
    text,
)
from sqlalchemy.orm import relationship

from foodapp.core.utils import utcnow
from foodapp.database import Base


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    KITCHEN_STAFF = "kitchen_staff"


class SpiceLevel(str, enum.Enum):
    MILD = "mild"
    MEDIUM = "medium"
    HOT = "hot"
    EXTRA_HOT = "extra_hot"


class OrderStatus(str, enum.Enum):
    """Order status workflow (linear, plus cancellation)."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class OfferType(str, enum.Enum):
    BANNER = "banner"
    POPUP = "popup"
    NOTIFICATION = "notification"
    BOTH = "both"


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_DELIVERY = "free_delivery"


class TargetAudience(str, enum.Enum):
    ALL = "all"
    NEW_CUSTOMERS = "new_customers"
    LOYAL_CUSTOMERS = "loyal_customers"
    BIRTHDAY = "birthday"
    ANNIVERSARY = "anniversary"


class InteractionType(str, enum.Enum):
    VIEWED = "viewed"
    CLICKED = "clicked"
    DISMISSED = "dismissed"
    CONVERTED = "converted"


class NotificationType(str, enum.Enum):
    ORDER_UPDATE = "order_update"
    PROMOTION = "promotion"
    SYSTEM = "system"


# =============================================================================
# USERS
# =============================================================================

class User(Base):
    """Customer, kitchen staff or admin account mirrored from the identity provider."""
    __tablename__ = "users"
    __table_args__ = (CheckConstraint("loyalty_points >= 0", name="ck_users_loyalty_points"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    clerk_id = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    loyalty_points = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @property
    def full_name(self) -> str:
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email

    def __repr__(self):
        return f"<User #{self.id} - {self.email} - {self.role.value}>"


class Address(Base):
    __tablename__ = "addresses"
    __table_args__ = (
        # At most one default address per user
        Index(
            "uq_addresses_user_default",
            "user_id",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), default="home", nullable=False)
    label = Column(String(100), nullable=True)
    address_line_1 = Column(String(255), nullable=False)
    address_line_2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(100), default="India", nullable=False)
    landmark = Column(String(255), nullable=True)
    instructions = Column(Text, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    latitude = Column(Numeric(10, 7), nullable=True)
    longitude = Column(Numeric(10, 7), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def one_line(self) -> str:
        """Address flattened into a single line for order snapshots."""
        parts = [
            self.address_line_1,
            self.address_line_2,
            self.landmark,
            self.city,
            f"{self.state} {self.postal_code}",
            self.country,
        ]
        return ", ".join(p for p in parts if p)


# =============================================================================
# CATALOG
# =============================================================================

class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    image = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image = Column(String(500), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)

    # Availability and dietary flags
    is_available = Column(Boolean, default=True, nullable=False, index=True)
    is_vegetarian = Column(Boolean, default=False, nullable=False)
    is_vegan = Column(Boolean, default=False, nullable=False)
    is_gluten_free = Column(Boolean, default=False, nullable=False)
    spice_level = Column(Enum(SpiceLevel), nullable=True)
    is_popular = Column(Boolean, default=False, nullable=False)

    preparation_time = Column(Integer, default=30, nullable=False)
    ingredients = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    category = relationship("Category", lazy="selectin")

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - {self.price}>"


# =============================================================================
# CART
# =============================================================================

class Cart(Base):
    """A shopping cart owned by a user or, before login, by a browser session."""
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, unique=True)
    session_id = Column(String(255), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    items = relationship(
        "CartItem",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
    )


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    special_instructions = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    menu_item = relationship("MenuItem", lazy="selectin")


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Placed order. Prices, item names and the delivery address are copied
    in at checkout and never recomputed from the catalog afterwards.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_number = Column(String(50), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    session_id = Column(String(255), nullable=True)

    # =========================================================================
    # CUSTOMER SNAPSHOT
    # =========================================================================
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(20), nullable=True)
    customer_email = Column(String(255), nullable=True)
    delivery_address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    delivery_address = Column(Text, nullable=True)

    # =========================================================================
    # STATUS
    # =========================================================================
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    payment_intent_id = Column(String(255), nullable=True, index=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    discount = Column(Numeric(10, 2), default=0, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)

    offer_id = Column(Integer, ForeignKey("offers.id", ondelete="SET NULL"), nullable=True)
    loyalty_points_redeemed = Column(Integer, default=0, nullable=False)
    loyalty_points_earned = Column(Integer, default=0, nullable=False)

    # =========================================================================
    # KITCHEN / DELIVERY
    # =========================================================================
    customer_notes = Column(Text, nullable=True)
    kitchen_notes = Column(Text, nullable=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=True)
    estimated_delivery_time = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_time = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    items = relationship(
        "OrderItem",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    tracking = relationship(
        "OrderTracking",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderTracking.id",
    )

    def __repr__(self):
        return f"<Order {self.order_number} - {self.status.value} - {self.total}>"


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),)

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True)
    name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    special_instructions = Column(Text, nullable=True)


class OrderTracking(Base):
    """One row per status change, oldest first."""
    __tablename__ = "order_tracking"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(OrderStatus), nullable=False)
    message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


# =============================================================================
# OFFERS
# =============================================================================

class Offer(Base):
    __tablename__ = "offers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    image = Column(String(500), nullable=True)
    type = Column(Enum(OfferType), default=OfferType.BANNER, nullable=False)

    # Discount
    discount_type = Column(Enum(DiscountType), nullable=False)
    discount_value = Column(Numeric(10, 2), default=0, nullable=False)
    minimum_order_amount = Column(Numeric(10, 2), nullable=True)
    maximum_discount_amount = Column(Numeric(10, 2), nullable=True)

    # Targeting
    target_audience = Column(Enum(TargetAudience), default=TargetAudience.ALL, nullable=False)
    occasion_type = Column(String(50), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)

    # Display
    popup_delay_seconds = Column(Integer, default=10, nullable=False)
    show_frequency_hours = Column(Integer, default=24, nullable=False)

    # Analytics
    view_count = Column(Integer, default=0, nullable=False)
    click_count = Column(Integer, default=0, nullable=False)
    conversion_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class OfferInteraction(Base):
    __tablename__ = "offer_interactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    offer_id = Column(Integer, ForeignKey("offers.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    session_id = Column(String(255), nullable=True, index=True)
    interaction_type = Column(Enum(InteractionType), nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


# =============================================================================
# NOTIFICATIONS / SETTINGS
# =============================================================================

class Notification(Base):
    """In-app notification shown in the customer's notification center."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(NotificationType), default=NotificationType.SYSTEM, nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class RestaurantSettings(Base):
    """Single-row table of settings editable from the admin panel."""
    __tablename__ = "restaurant_settings"
    __table_args__ = (UniqueConstraint("singleton", name="uq_restaurant_settings_singleton"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    singleton = Column(Integer, default=1, nullable=False)
    is_ordering_enabled = Column(Boolean, default=True, nullable=False)
    minimum_order_amount = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    free_delivery_threshold = Column(Numeric(10, 2), nullable=False)
    loyalty_points_rate = Column(Numeric(6, 2), nullable=False)
    opening_hours = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

"""
Order Service

Checkout, order history, status workflow and payment bookkeeping.

An order is a snapshot: item names, unit prices and the delivery address
are copied in when it is placed and never recomputed from the catalog.

Status workflow:
    pending → confirmed → preparing → ready → out_for_delivery → delivered
    Any non-terminal status may move to cancelled.
    delivered and cancelled are terminal.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp import tasks
from foodapp.core.config import get_settings
from foodapp.core.errors import AppError, AuthorizationError, NotFoundError, ValidationError
from foodapp.core.utils import as_utc, generate_order_number, money, utcnow
from foodapp.models import (
    Cart,
    InteractionType,
    MenuItem,
    NotificationType,
    Order,
    OrderItem,
    OrderStatus,
    OrderTracking,
    PaymentStatus,
    User,
)
from foodapp.schemas import OrderCreate
from foodapp.services import (
    address_service,
    cart_service,
    loyalty_service,
    notification_service,
    offer_service,
    restaurant_service,
)
from foodapp.services.notifications.messages import STATUS_MESSAGES
from foodapp.services.otp_service import get_otp_service
from foodapp.services.payment import get_payment_service

logger = logging.getLogger(__name__)

STATUS_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]
TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
CUSTOMER_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.CONFIRMED}
PAID_AFTER_CANCEL_NOTE = "REFUND REQUIRED: payment received after the order was cancelled"


@dataclass
class CheckoutLine:
    menu_item: MenuItem
    quantity: int
    unit_price: Decimal
    special_instructions: Optional[str] = None


# =============================================================================
# LOOKUPS
# =============================================================================

async def _load_order(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order")
    return order


async def get_order(db: AsyncSession, order_id: int, user: Optional[User] = None) -> Order:
    """Fetch an order; with ``user`` set, orders of other users are 404."""
    order = await _load_order(db, order_id)
    if user is not None and order.user_id != user.id:
        raise NotFoundError("Order")
    return order


async def get_order_by_number(db: AsyncSession, order_number: str) -> Order:
    result = await db.execute(
        select(Order).where(Order.order_number == order_number.strip().upper())
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order")
    return order


async def list_orders(
    db: AsyncSession,
    *,
    user_id: Optional[int] = None,
    status: Optional[OrderStatus] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Order], int]:
    """Newest first. Returns (orders, total)."""
    conditions = []
    if user_id is not None:
        conditions.append(Order.user_id == user_id)
    if status is not None:
        conditions.append(Order.status == status)
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(
            Order.order_number.ilike(pattern)
            | Order.customer_name.ilike(pattern)
            | Order.customer_phone.ilike(pattern)
        )

    total = await db.scalar(select(func.count(Order.id)).where(*conditions)) or 0
    result = await db.execute(
        select(Order)
        .where(*conditions)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


def order_payload(order: Order) -> dict[str, Any]:
    """JSON-safe snapshot of an order for Celery tasks and message builders."""
    return {
        "id": order.id,
        "order_number": order.order_number,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "customer_email": order.customer_email,
        "delivery_address": order.delivery_address,
        "customer_notes": order.customer_notes,
        "status": order.status.value,
        "items": [
            {
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": str(item.unit_price),
                "total_price": str(item.total_price),
            }
            for item in order.items
        ],
        "subtotal": str(order.subtotal),
        "tax": str(order.tax),
        "delivery_fee": str(order.delivery_fee),
        "discount": str(order.discount),
        "total": str(order.total),
    }


# =============================================================================
# CHECKOUT
# =============================================================================

async def _lines_from_request(db: AsyncSession, data: OrderCreate) -> tuple[list[CheckoutLine], list[dict]]:
    ids = [line.menu_item_id for line in data.items]
    result = await db.execute(select(MenuItem).where(MenuItem.id.in_(ids)))
    catalog = {item.id: item for item in result.scalars().all()}

    lines, drift = [], []
    for requested in data.items:
        item = catalog.get(requested.menu_item_id)
        if item is None:
            raise ValidationError(f"Menu item #{requested.menu_item_id} does not exist")
        current = money(item.price)
        if requested.unit_price is not None and money(requested.unit_price) != current:
            drift.append(
                {
                    "menu_item_id": item.id,
                    "name": item.name,
                    "old_price": str(money(requested.unit_price)),
                    "new_price": str(current),
                }
            )
        lines.append(CheckoutLine(item, requested.quantity, current, requested.special_instructions))
    return lines, drift


def _lines_from_cart(cart: Cart) -> tuple[list[CheckoutLine], list[dict]]:
    lines, drift = [], []
    for line in cart.items:
        current = money(line.menu_item.price)
        if money(line.unit_price) != current:
            drift.append(
                {
                    "menu_item_id": line.menu_item_id,
                    "name": line.menu_item.name,
                    "old_price": str(money(line.unit_price)),
                    "new_price": str(current),
                }
            )
        lines.append(CheckoutLine(line.menu_item, line.quantity, current, line.special_instructions))
    return lines, drift


async def create_order(
    db: AsyncSession,
    data: OrderCreate,
    user: Optional[User] = None,
    session_id: Optional[str] = None,
) -> Order:
    """
    Place an order from the caller's cart, or from ``data.items`` when given.

    Totals:
        subtotal = Σ unit_price × quantity
        tax      = subtotal × tax_rate
        fee      = 0 at or above the free-delivery threshold (or with a
                   free-delivery offer), else the delivery fee
        discount = offer discount + loyalty discount, capped at the bill
        total    = subtotal + tax + fee − discount

    Raises:
        ValidationError: ordering disabled, empty cart, unavailable items,
            changed prices, minimum not met, missing address or guest
            details, unverified guest phone, offer or points rejected
        NotFoundError: delivery address or offer does not exist
    """
    settings = get_settings()
    restaurant = await restaurant_service.get_restaurant_settings(db)
    if not restaurant.is_ordering_enabled:
        raise ValidationError("Online ordering is currently disabled")

    if user is None and data.guest is None:
        raise ValidationError("Guest details are required to order without signing in")
    if user is None and data.redeem_points:
        raise ValidationError("Sign in to redeem loyalty points")

    # Lines
    cart = None
    if data.items:
        lines, drift = await _lines_from_request(db, data)
    else:
        cart = await cart_service.get_cart(
            db, user_id=user.id if user else None, session_id=session_id
        )
        if cart is None or not cart.items:
            raise ValidationError("Your cart is empty")
        lines, drift = _lines_from_cart(cart)

    unavailable = [line.menu_item.name for line in lines if not line.menu_item.is_available]
    if unavailable:
        raise ValidationError(
            "Some items are currently unavailable",
            details={"unavailable_items": unavailable},
        )
    if drift:
        raise ValidationError(
            "Prices have changed for some items. Please review your cart.",
            details={"changed_items": drift},
        )

    subtotal = money(sum((line.unit_price * line.quantity for line in lines), Decimal("0")))
    minimum = money(restaurant.minimum_order_amount)
    if subtotal < minimum:
        raise ValidationError(
            f"Minimum order amount is ₹{minimum}",
            details={"minimum_order_amount": str(minimum), "subtotal": str(subtotal)},
        )

    if data.scheduled_for is not None and as_utc(data.scheduled_for) <= utcnow():
        raise ValidationError("Scheduled time must be in the future")

    # Customer and delivery snapshot
    if user is not None:
        if data.delivery_address_id is not None:
            address = await address_service.get_address(db, user.id, data.delivery_address_id)
        else:
            address = await address_service.get_default_address(db, user.id)
        if address is None:
            raise ValidationError("A delivery address is required")
        customer = {
            "user_id": user.id,
            "customer_name": user.full_name,
            "customer_phone": user.phone,
            "customer_email": user.email,
            "delivery_address_id": address.id,
            "delivery_address": address.one_line(),
        }
    else:
        guest = data.guest
        otp = get_otp_service()
        if not await otp.is_phone_verified(guest.phone):
            raise ValidationError("Please verify your phone number with an OTP before ordering")
        customer = {
            "user_id": None,
            "customer_name": guest.name,
            "customer_phone": otp.normalize_phone(guest.phone),
            "customer_email": guest.email,
            "delivery_address_id": None,
            "delivery_address": guest.address,
        }

    # Pricing
    delivery_fee = money(restaurant.delivery_fee)
    if subtotal >= money(restaurant.free_delivery_threshold):
        delivery_fee = money(0)

    offer_discount = money(0)
    offer = None
    if data.offer_id is not None:
        applied = await offer_service.apply_offer(db, data.offer_id, subtotal)
        offer, offer_discount = applied.offer, applied.discount
        if applied.free_delivery:
            delivery_fee = money(0)

    tax = money(subtotal * Decimal(str(settings.tax_rate)))
    gross = subtotal + tax + delivery_fee

    points_used, points_discount = 0, money(0)
    if data.redeem_points:
        points_used, points_discount = await loyalty_service.redeem_points(
            db, user.id, data.redeem_points, commit=False, max_discount=gross - offer_discount
        )

    discount = min(money(offer_discount + points_discount), gross)
    total = money(gross - discount)

    prep_minutes = max(
        [settings.base_preparation_minutes] + [line.menu_item.preparation_time or 0 for line in lines]
    )
    start = as_utc(data.scheduled_for) if data.scheduled_for else utcnow()

    order = Order(
        order_number=generate_order_number(),
        session_id=session_id if user is None else None,
        status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        subtotal=subtotal,
        tax=tax,
        delivery_fee=delivery_fee,
        discount=discount,
        total=total,
        offer_id=offer.id if offer else None,
        loyalty_points_redeemed=points_used,
        customer_notes=data.customer_notes,
        scheduled_for=as_utc(data.scheduled_for),
        estimated_delivery_time=start + timedelta(minutes=prep_minutes + settings.delivery_buffer_minutes),
        items=[
            OrderItem(
                menu_item_id=line.menu_item.id,
                name=line.menu_item.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=money(line.unit_price * line.quantity),
                special_instructions=line.special_instructions,
            )
            for line in lines
        ],
        tracking=[OrderTracking(status=OrderStatus.PENDING, message="Order placed")],
        **customer,
    )
    db.add(order)
    await db.flush()

    if offer is not None:
        offer.used_count += 1
        await offer_service.track_interaction(
            db,
            offer.id,
            InteractionType.CONVERTED,
            user_id=user.id if user else None,
            session_id=session_id,
            order_id=order.id,
            commit=False,
        )

    if user is not None:
        order.loyalty_points_earned = await loyalty_service.award_points(
            db, user.id, total, rate=restaurant.loyalty_points_rate, commit=False
        )
        notification_service.notify(
            db,
            user.id,
            f"Order {order.order_number} placed",
            STATUS_MESSAGES["pending"].format(number=order.order_number),
            type=NotificationType.ORDER_UPDATE,
            order_id=order.id,
        )

    if cart is not None:
        cart.items.clear()
        cart.updated_at = utcnow()

    await db.commit()
    order = await _load_order(db, order.id)
    logger.info(
        f"🧾 Order {order.order_number} created: {len(order.items)} items, total {order.total}"
        f" ({'user #' + str(user.id) if user else 'guest'})"
    )

    payload = order_payload(order)
    tasks.enqueue(tasks.send_order_alert, payload)
    if order.customer_email:
        tasks.enqueue(tasks.send_order_confirmation_email, payload)
    return order


# =============================================================================
# STATUS WORKFLOW
# =============================================================================

def check_transition(current: OrderStatus, new: OrderStatus) -> None:
    """Raise ValidationError unless ``current → new`` is allowed."""
    if current in TERMINAL_STATUSES:
        raise ValidationError(f"Order is already {current.value} and cannot change")
    if new == current:
        raise ValidationError(f"Order is already {current.value}")
    if new == OrderStatus.CANCELLED:
        return
    if STATUS_FLOW.index(new) < STATUS_FLOW.index(current):
        raise ValidationError(
            f"Cannot move order from {current.value} back to {new.value}",
            details={"current": current.value, "requested": new.value},
        )


async def _restore_points(db: AsyncSession, order: Order) -> None:
    """Give back redeemed points and take back earned ones when an order is cancelled."""
    if order.user_id is None:
        return
    delta = order.loyalty_points_redeemed - order.loyalty_points_earned
    if delta:
        user = await db.get(User, order.user_id)
        if user is not None:
            user.loyalty_points = max(user.loyalty_points + delta, 0)


async def _apply_status(
    db: AsyncSession,
    order: Order,
    new_status: OrderStatus,
    message: Optional[str] = None,
) -> None:
    """Stage a status change with its tracking row and in-app notification."""
    check_transition(order.status, new_status)
    previous = order.status
    order.status = new_status
    order.tracking.append(OrderTracking(status=new_status, message=message))

    if new_status == OrderStatus.DELIVERED:
        order.actual_delivery_time = utcnow()
    if new_status == OrderStatus.CANCELLED:
        await _restore_points(db, order)

    if order.user_id is not None:
        notification_service.notify(
            db,
            order.user_id,
            f"Order {order.order_number} {new_status.value.replace('_', ' ')}",
            STATUS_MESSAGES[new_status.value].format(number=order.order_number),
            type=NotificationType.ORDER_UPDATE,
            order_id=order.id,
        )
    logger.info(f"📦 Order {order.order_number}: {previous.value} → {new_status.value}")


def _queue_status_message(order: Order, note: Optional[str] = None) -> None:
    if order.customer_phone:
        tasks.enqueue(
            tasks.send_status_update,
            order.customer_phone,
            order.order_number,
            order.status.value,
            note,
        )


async def update_status(
    db: AsyncSession,
    order_id: int,
    new_status: OrderStatus,
    message: Optional[str] = None,
    kitchen_notes: Optional[str] = None,
) -> Order:
    order = await _load_order(db, order_id)
    await _apply_status(db, order, new_status, message)
    if kitchen_notes is not None:
        order.kitchen_notes = kitchen_notes
    await db.commit()

    order = await _load_order(db, order_id)
    _queue_status_message(order, message)
    return order


async def cancel_order(db: AsyncSession, order_id: int, user: User, reason: Optional[str] = None) -> Order:
    """Customer cancellation; only while the order is pending or confirmed."""
    order = await get_order(db, order_id, user)
    if order.status not in CUSTOMER_CANCELLABLE:
        raise ValidationError(
            f"Orders that are {order.status.value.replace('_', ' ')} can no longer be cancelled"
        )
    await _apply_status(db, order, OrderStatus.CANCELLED, reason or "Cancelled by customer")
    await db.commit()

    order = await _load_order(db, order_id)
    _queue_status_message(order, reason)
    return order


# =============================================================================
# PAYMENTS
# =============================================================================

async def create_payment_intent(db: AsyncSession, order_id: int, user: Optional[User]) -> dict:
    """Open a gateway payment intent for the order total."""
    order = await _load_order(db, order_id)
    if order.user_id is not None and (user is None or order.user_id != user.id):
        raise NotFoundError("Order")
    if order.user_id is None and user is not None:
        raise AuthorizationError("This order belongs to a guest checkout")
    if order.status != OrderStatus.PENDING or order.payment_status == PaymentStatus.COMPLETED:
        raise ValidationError("Order is not awaiting payment")

    settings = get_settings()
    result = await get_payment_service().create_payment_intent(
        amount=float(order.total),
        currency=settings.stripe_currency,
        metadata={"order_id": str(order.id), "order_number": order.order_number},
        receipt_email=order.customer_email,
    )
    if not result.success:
        logger.warning(f"💳 Payment intent for {order.order_number} failed: {result.error_message}")
        raise AppError(
            result.error_message or "Payment gateway error",
            details={"error_code": result.error_code},
            status_code=502,
        )

    order.payment_intent_id = result.payment_intent_id
    order.payment_status = PaymentStatus.PENDING
    await db.commit()
    logger.info(f"💳 Payment intent {result.payment_intent_id} opened for {order.order_number}")

    return {
        "order_id": order.id,
        "payment_intent_id": result.payment_intent_id,
        "client_secret": result.client_secret,
        "amount": order.total,
        "currency": result.currency,
    }


async def _order_for_intent(db: AsyncSession, intent: dict) -> Optional[Order]:
    intent_id = intent.get("id")
    if intent_id:
        result = await db.execute(
            select(Order)
            .where(Order.payment_intent_id == intent_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is not None:
            return order

    order_id = (intent.get("metadata") or {}).get("order_id")
    if order_id and str(order_id).isdigit():
        return await db.get(Order, int(order_id))
    return None


async def handle_payment_webhook(db: AsyncSession, payload: bytes, signature: Optional[str]) -> dict:
    """
    Apply a verified gateway event to its order.

    payment_intent.succeeded            → payment completed, order confirmed
    payment_intent.payment_failed /
    payment_intent.canceled             → payment failed, order cancelled
    Other events are acknowledged and ignored.
    """
    event = await get_payment_service().verify_webhook(payload, signature)
    if event is None:
        raise ValidationError("Invalid webhook signature")

    event_type = event.get("type")
    intent = (event.get("data") or {}).get("object") or {}
    ack = {"received": True, "handled": False, "event_type": event_type}

    if event_type not in {
        "payment_intent.succeeded",
        "payment_intent.payment_failed",
        "payment_intent.canceled",
    }:
        logger.debug(f"Webhook {event_type} ignored")
        return ack

    order = await _order_for_intent(db, intent)
    if order is None:
        logger.warning(f"Webhook {event_type} for unknown intent {intent.get('id')}")
        return ack

    if event_type == "payment_intent.succeeded":
        order.payment_status = PaymentStatus.COMPLETED
        if order.status == OrderStatus.CANCELLED:
            order.kitchen_notes = PAID_AFTER_CANCEL_NOTE
            await db.commit()
            logger.warning(
                f"⚠️ Payment {intent.get('id')} succeeded for cancelled order "
                f"{order.order_number}, refund required"
            )
            ack["handled"] = True
            return ack
        if order.status == OrderStatus.PENDING:
            await _apply_status(db, order, OrderStatus.CONFIRMED, "Payment received")
    else:
        error = (intent.get("last_payment_error") or {}).get("message") or event_type.split(".")[-1]
        order.payment_status = PaymentStatus.FAILED
        order.kitchen_notes = f"Payment failed: {error}"
        if order.status not in TERMINAL_STATUSES:
            await _apply_status(db, order, OrderStatus.CANCELLED, "Payment failed")

    await db.commit()
    order = await _load_order(db, order.id)
    _queue_status_message(order)
    logger.info(f"💳 Webhook {event_type} applied to {order.order_number}")

    ack["handled"] = True
    return ack


async def refund_order(
    db: AsyncSession,
    order_id: int,
    amount: Optional[Decimal] = None,
    reason: Optional[str] = None,
) -> dict:
    order = await _load_order(db, order_id)
    if order.payment_status != PaymentStatus.COMPLETED or not order.payment_intent_id:
        raise ValidationError("Only completed payments can be refunded")
    if amount is not None and money(amount) > money(order.total):
        raise ValidationError("Refund amount exceeds the order total")

    result = await get_payment_service().refund_payment(
        order.payment_intent_id,
        amount=float(amount) if amount is not None else None,
        reason=reason,
    )
    if not result.success:
        raise AppError(result.error_message or "Refund failed", status_code=502)

    order.payment_status = PaymentStatus.REFUNDED
    await db.commit()
    logger.info(f"↩️ Order {order.order_number} refunded ({result.refund_id})")

    return {
        "order_id": order.id,
        "refund_id": result.refund_id,
        "status": result.status,
        "payment_status": order.payment_status,
    }

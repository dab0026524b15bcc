"""
Admin Analytics Service

Numbers for the admin dashboard and the nightly sales report. Revenue
counts every order that was not cancelled.
"""

import logging
from collections import defaultdict
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.utils import as_utc, money, utcnow
from foodapp.models import Order, OrderItem, OrderStatus, User, UserRole

logger = logging.getLogger(__name__)

REVENUE_STATUSES = [s for s in OrderStatus if s != OrderStatus.CANCELLED]


def _start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=timezone.utc)


async def _count_and_revenue(db: AsyncSession, *conditions) -> tuple[int, Decimal]:
    count, revenue = (
        await db.execute(
            select(func.count(Order.id), func.coalesce(func.sum(Order.total), 0)).where(
                Order.status.in_(REVENUE_STATUSES), *conditions
            )
        )
    ).one()
    return count or 0, money(revenue)


async def dashboard_stats(db: AsyncSession, recent: int = 10) -> dict:
    today = _start_of_day(utcnow())

    total_orders, total_revenue = await _count_and_revenue(db)
    today_orders, today_revenue = await _count_and_revenue(db, Order.created_at >= today)

    pending = await db.scalar(
        select(func.count(Order.id)).where(Order.status == OrderStatus.PENDING)
    ) or 0
    customers = await db.scalar(
        select(func.count(User.id)).where(User.role == UserRole.CUSTOMER)
    ) or 0

    breakdown = (
        await db.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))
    ).all()

    recent_orders = (
        await db.execute(
            select(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(recent)
        )
    ).scalars().all()

    return {
        "total_orders": total_orders,
        "total_revenue": total_revenue,
        "today_orders": today_orders,
        "today_revenue": today_revenue,
        "pending_orders": pending,
        "average_order_value": money(total_revenue / total_orders) if total_orders else money(0),
        "total_customers": customers,
        "status_breakdown": [{"status": status, "count": count} for status, count in breakdown],
        "recent_orders": list(recent_orders),
    }


async def revenue_series(db: AsyncSession, days: int = 7) -> list[dict]:
    """One point per calendar day (UTC), oldest first, zero-filled."""
    start = _start_of_day(utcnow()) - timedelta(days=days - 1)
    rows = (
        await db.execute(
            select(Order.created_at, Order.total).where(
                Order.status.in_(REVENUE_STATUSES), Order.created_at >= start
            )
        )
    ).all()

    buckets: dict[str, list] = defaultdict(lambda: [0, Decimal("0")])
    for created_at, total in rows:
        key = as_utc(created_at).date().isoformat()
        buckets[key][0] += 1
        buckets[key][1] += Decimal(total)

    series = []
    for offset in range(days):
        key = (start + timedelta(days=offset)).date().isoformat()
        orders, revenue = buckets.get(key, (0, Decimal("0")))
        series.append({"date": key, "orders": orders, "revenue": money(revenue)})
    return series


async def top_selling_items(db: AsyncSession, limit: int = 10, days: Optional[int] = None) -> list[dict]:
    query = (
        select(
            OrderItem.menu_item_id,
            OrderItem.name,
            func.sum(OrderItem.quantity).label("quantity"),
            func.sum(OrderItem.total_price).label("revenue"),
        )
        .join(Order, Order.id == OrderItem.order_id)
        .where(Order.status.in_(REVENUE_STATUSES))
        .group_by(OrderItem.menu_item_id, OrderItem.name)
        .order_by(func.sum(OrderItem.quantity).desc(), OrderItem.name)
        .limit(limit)
    )
    if days:
        query = query.where(Order.created_at >= utcnow() - timedelta(days=days))

    return [
        {
            "menu_item_id": menu_item_id,
            "name": name,
            "quantity": int(quantity or 0),
            "revenue": money(revenue),
        }
        for menu_item_id, name, quantity, revenue in (await db.execute(query)).all()
    ]


async def customer_analytics(db: AsyncSession, limit: int = 20) -> list[dict]:
    """Top customers by spend."""
    spent = func.coalesce(func.sum(Order.total), 0)
    rows = (
        await db.execute(
            select(User, func.count(Order.id), spent)
            .join(Order, Order.user_id == User.id)
            .where(Order.status.in_(REVENUE_STATUSES))
            .group_by(User.id)
            .order_by(spent.desc(), User.id)
            .limit(limit)
        )
    ).all()
    return [
        {
            "user_id": user.id,
            "name": user.full_name,
            "email": user.email,
            "orders": orders,
            "total_spent": money(total),
            "loyalty_points": user.loyalty_points,
        }
        for user, orders, total in rows
    ]


async def daily_report(db: AsyncSession, day: Optional[datetime] = None) -> dict:
    """Totals for one UTC day; plain JSON types so Celery can return it."""
    start = _start_of_day(day or utcnow())
    end = start + timedelta(days=1)
    window = (Order.created_at >= start, Order.created_at < end)

    orders, revenue = await _count_and_revenue(db, *window)
    cancelled = await db.scalar(
        select(func.count(Order.id)).where(Order.status == OrderStatus.CANCELLED, *window)
    ) or 0

    top = (
        await db.execute(
            select(OrderItem.name, func.sum(OrderItem.quantity))
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status.in_(REVENUE_STATUSES), *window)
            .group_by(OrderItem.name)
            .order_by(func.sum(OrderItem.quantity).desc())
            .limit(1)
        )
    ).first()

    return {
        "date": start.date().isoformat(),
        "orders": orders,
        "revenue": str(revenue),
        "cancelled": cancelled,
        "top_item": top[0] if top else None,
    }

"""
Excel Exports with Concurrency Control

Admin downloads of:
- Orders
- Menu items
- Users

Each export is written to ``DATA_DIRECTORY`` under a file lock, so two
admins exporting at once never interleave writes to the same workbook.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from filelock import FileLock, Timeout
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from foodapp.core.config import get_settings
from foodapp.core.errors import AppError
from foodapp.core.utils import as_utc, utcnow
from foodapp.models import MenuItem, Order, OrderStatus, User

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _stamp(value: Optional[datetime]) -> Optional[str]:
    # openpyxl cannot store timezone-aware datetimes
    return as_utc(value).strftime("%Y-%m-%d %H:%M:%S") if value else None


class ExcelExporter:
    """Lock-guarded workbook writer."""

    ORDER_COLUMNS = [
        "order_number",
        "date_time",
        "status",
        "payment_status",
        "customer_name",
        "customer_phone",
        "customer_email",
        "delivery_address",
        "items",
        "subtotal",
        "tax",
        "delivery_fee",
        "discount",
        "total",
        "loyalty_points_redeemed",
        "loyalty_points_earned",
        "customer_notes",
    ]

    MENU_COLUMNS = [
        "id",
        "name",
        "category",
        "price",
        "is_available",
        "is_vegetarian",
        "is_vegan",
        "is_gluten_free",
        "spice_level",
        "is_popular",
        "preparation_time",
    ]

    USER_COLUMNS = [
        "id",
        "email",
        "first_name",
        "last_name",
        "phone",
        "role",
        "is_active",
        "loyalty_points",
        "created_at",
    ]

    @classmethod
    def data_dir(cls) -> Path:
        path = Path(get_settings().data_directory)
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created data directory: {path}")
        return path

    @classmethod
    def write(cls, name: str, rows: list[dict[str, Any]], columns: list[str]) -> Path:
        """
        Write ``rows`` to ``<data_dir>/<name>.xlsx`` and return the path.

        Raises:
            AppError: the lock could not be taken within the timeout (503)
        """
        directory = cls.data_dir()
        target = directory / f"{name}.xlsx"
        timeout = get_settings().export_lock_timeout

        try:
            with FileLock(str(directory / f"{name}.xlsx.lock"), timeout=timeout):
                logger.debug(f"Lock acquired for {target.name}")
                df = pd.DataFrame(rows, columns=columns)
                df.to_excel(str(target), index=False, engine="openpyxl")
        except Timeout:
            logger.error(f"Lock timeout for {target.name}")
            raise AppError(f"Export is busy, try again in a moment (lock timeout {timeout}s)", status_code=503)

        logger.info(f"📄 Exported {len(rows)} rows to {target}")
        return target


async def export_orders(
    db: AsyncSession,
    status: Optional[OrderStatus] = None,
    days: Optional[int] = None,
) -> Path:
    query = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
    if status is not None:
        query = query.where(Order.status == status)
    if days:
        query = query.where(Order.created_at >= utcnow() - timedelta(days=days))

    rows = [
        {
            "order_number": o.order_number,
            "date_time": _stamp(o.created_at),
            "status": o.status.value,
            "payment_status": o.payment_status.value,
            "customer_name": o.customer_name,
            "customer_phone": o.customer_phone,
            "customer_email": o.customer_email,
            "delivery_address": o.delivery_address,
            "items": ", ".join(f"{i.quantity}x {i.name}" for i in o.items),
            "subtotal": float(o.subtotal),
            "tax": float(o.tax),
            "delivery_fee": float(o.delivery_fee),
            "discount": float(o.discount),
            "total": float(o.total),
            "loyalty_points_redeemed": o.loyalty_points_redeemed,
            "loyalty_points_earned": o.loyalty_points_earned,
            "customer_notes": o.customer_notes,
        }
        for o in (await db.execute(query)).scalars().all()
    ]
    return ExcelExporter.write("orders", rows, ExcelExporter.ORDER_COLUMNS)


async def export_menu_items(db: AsyncSession) -> Path:
    items = (await db.execute(select(MenuItem).order_by(MenuItem.sort_order, MenuItem.name))).scalars().all()
    rows = [
        {
            "id": item.id,
            "name": item.name,
            "category": item.category.name if item.category else None,
            "price": float(item.price),
            "is_available": item.is_available,
            "is_vegetarian": item.is_vegetarian,
            "is_vegan": item.is_vegan,
            "is_gluten_free": item.is_gluten_free,
            "spice_level": item.spice_level.value if item.spice_level else None,
            "is_popular": item.is_popular,
            "preparation_time": item.preparation_time,
        }
        for item in items
    ]
    return ExcelExporter.write("menu_items", rows, ExcelExporter.MENU_COLUMNS)


async def export_users(db: AsyncSession) -> Path:
    users = (await db.execute(select(User).order_by(User.id))).scalars().all()
    rows = [
        {
            "id": u.id,
            "email": u.email,
            "first_name": u.first_name,
            "last_name": u.last_name,
            "phone": u.phone,
            "role": u.role.value,
            "is_active": u.is_active,
            "loyalty_points": u.loyalty_points,
            "created_at": _stamp(u.created_at),
        }
        for u in users
    ]
    return ExcelExporter.write("users", rows, ExcelExporter.USER_COLUMNS)

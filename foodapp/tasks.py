"""
Celery Tasks
Background delivery of customer/admin messages and scheduled housekeeping.

Request handlers never talk to SMS/email gateways directly for order
events; they call ``enqueue`` and return. A message that fails to send is
logged and dropped.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

from celery.utils.log import get_task_logger

from foodapp.celery_worker import celery_app
from foodapp.core.config import get_settings, mask_phone
from foodapp.services.notifications import get_notification_service
from foodapp.services.notifications.messages import (
    daily_report_text,
    order_alert_text,
    order_confirmation_email,
    status_update_text,
    welcome_text,
)

logger = get_task_logger(__name__)


def enqueue(task, *args: Any) -> Optional[str]:
    """
    Queue ``task`` with ``args`` and return the task id.

    Broker errors are logged and swallowed; the caller's transaction has
    already been committed at this point.
    """
    try:
        result = task.delay(*args)
    except Exception as e:  # broker unreachable
        logger.error(f"Could not queue {task.name}: {e}")
        return None
    return result.id


# =============================================================================
# ORDER MESSAGES
# =============================================================================

@celery_app.task(bind=True)
def send_order_alert(self, order: dict) -> dict:
    """Text the restaurant admin about a new order."""
    settings = get_settings()
    if not settings.admin_phone_number:
        logger.info(f"Task {self.request.id}: no admin phone configured, alert skipped")
        return {"success": False, "skipped": True}

    result = asyncio.run(
        get_notification_service().send_sms(settings.admin_phone_number, order_alert_text(order))
    )
    if result.success:
        logger.info(f"✅ Task {self.request.id}: admin alerted for {order['order_number']}")
    else:
        logger.warning(f"⚠️ Task {self.request.id}: admin alert failed - {result.error_message}")
    return result.to_dict()


@celery_app.task(bind=True)
def send_order_confirmation_email(self, order: dict) -> dict:
    """Email the customer their order summary."""
    if not order.get("customer_email"):
        return {"success": False, "skipped": True}

    subject, html, text = order_confirmation_email(order)
    result = asyncio.run(
        get_notification_service().send_email(order["customer_email"], subject, html, text)
    )
    if not result.success:
        logger.warning(f"⚠️ Task {self.request.id}: confirmation email failed - {result.error_message}")
    return result.to_dict()


@celery_app.task(bind=True)
def send_status_update(self, phone: str, order_number: str, status: str, note: Optional[str] = None) -> dict:
    """WhatsApp the customer when their order changes status."""
    message = status_update_text(order_number, status, note)
    result = asyncio.run(get_notification_service().send_whatsapp(phone, message))
    if result.success:
        logger.info(f"✅ Task {self.request.id}: {order_number} → {status} sent to {mask_phone(phone)}")
    else:
        logger.warning(f"⚠️ Task {self.request.id}: status update failed - {result.error_message}")
    return result.to_dict()


@celery_app.task(bind=True)
def send_welcome_message(self, phone: str, first_name: Optional[str] = None) -> dict:
    result = asyncio.run(get_notification_service().send_sms(phone, welcome_text(first_name)))
    return result.to_dict()


# =============================================================================
# SCHEDULED
# =============================================================================

async def _cleanup_stale_carts(days: int) -> int:
    from foodapp.database import async_session_maker
    from foodapp.services import cart_service

    async with async_session_maker() as db:
        return await cart_service.cleanup_stale_carts(db, days)


@celery_app.task
def cleanup_stale_carts() -> dict:
    """Delete anonymous carts that have not changed for ``stale_cart_days``."""
    days = get_settings().stale_cart_days
    removed = asyncio.run(_cleanup_stale_carts(days))
    logger.info(f"🧹 Removed {removed} stale carts older than {days} days")
    return {"removed": removed, "timestamp": datetime.now().isoformat()}


async def _daily_report() -> dict:
    from foodapp.database import async_session_maker
    from foodapp.services import admin_service

    async with async_session_maker() as db:
        return await admin_service.daily_report(db)


@celery_app.task
def send_daily_sales_report() -> dict:
    """Send the day's totals to the admin by SMS and email."""
    settings = get_settings()
    report = asyncio.run(_daily_report())
    text = daily_report_text(report)
    service = get_notification_service()

    if settings.admin_phone_number:
        asyncio.run(service.send_sms(settings.admin_phone_number, text))
    if settings.admin_email:
        asyncio.run(
            service.send_email(
                settings.admin_email,
                f"Daily sales report {report['date']}",
                f"<pre>{text}</pre>",
                text,
            )
        )
    logger.info(f"📊 Daily report sent: {report['orders']} orders, {report['revenue']}")
    return report

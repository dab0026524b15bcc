"""
Message Builders

Plain functions that turn order data into SMS/WhatsApp text and email
HTML. They take dictionaries (the same payloads Celery tasks receive), so
they can run inside a worker without a database session.
"""

from typing import Any, Optional

from foodapp.core.config import get_settings

STATUS_MESSAGES = {
    "pending": "We have received your order {number} and will confirm it shortly.",
    "confirmed": "Your order {number} is confirmed! The kitchen will start on it soon.",
    "preparing": "Good news! The kitchen is preparing your order {number}.",
    "ready": "Your order {number} is ready and waiting for a delivery partner.",
    "out_for_delivery": "Your order {number} is on its way! 🛵",
    "delivered": "Your order {number} has been delivered. Enjoy your meal! 🍛",
    "cancelled": "Your order {number} has been cancelled. Contact us if this is unexpected.",
}


def _fmt(amount: Any) -> str:
    return f"₹{float(amount):.2f}"


def order_alert_text(order: dict[str, Any]) -> str:
    """New-order alert for the restaurant admin."""
    lines = [
        f"🔔 New order {order['order_number']}",
        f"Customer: {order.get('customer_name', 'Unknown')}",
    ]
    if order.get("customer_phone"):
        lines.append(f"Phone: {order['customer_phone']}")
    lines.append("Items:")
    for item in order.get("items", []):
        lines.append(f"  • {item['quantity']}x {item['name']} - {_fmt(item['total_price'])}")
    lines.append(f"Total: {_fmt(order['total'])}")
    if order.get("delivery_address"):
        lines.append(f"Deliver to: {order['delivery_address']}")
    if order.get("customer_notes"):
        lines.append(f"Notes: {order['customer_notes']}")
    return "\n".join(lines)


def status_update_text(order_number: str, status: str, note: Optional[str] = None) -> str:
    settings = get_settings()
    template = STATUS_MESSAGES.get(status, "Your order {number} is now " + status.replace("_", " ") + ".")
    text = template.format(number=order_number)
    if note:
        text = f"{text}\n{note}"
    return f"{text}\n- {settings.restaurant_name}"


def otp_text(code: str, ttl_minutes: int) -> str:
    settings = get_settings()
    return (
        f"Your {settings.restaurant_name} verification code is {code}. "
        f"It expires in {ttl_minutes} minutes. Do not share it with anyone."
    )


def welcome_text(first_name: Optional[str]) -> str:
    settings = get_settings()
    name = first_name or "there"
    return (
        f"Welcome to {settings.restaurant_name}, {name}! 🎉 "
        f"Order from {settings.app_base_url} and earn loyalty points on every meal."
    )


def order_confirmation_email(order: dict[str, Any]) -> tuple[str, str, str]:
    """Return (subject, html, text) for the customer confirmation email."""
    settings = get_settings()
    rows = "".join(
        f"<tr><td>{item['quantity']}x {item['name']}</td>"
        f"<td style='text-align:right'>{_fmt(item['total_price'])}</td></tr>"
        for item in order.get("items", [])
    )
    subject = f"Order Confirmed {order['order_number']} - {settings.restaurant_name}"
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h1 style="color: #e67e22;">Order Confirmed! 🍛</h1>
        <p>Hi {order.get('customer_name', 'there')},</p>
        <p>Your order <strong>{order['order_number']}</strong> has been placed.</p>
        <table style="width: 100%; border-collapse: collapse;">{rows}</table>
        <div style="background: #f8f9fa; padding: 15px; border-radius: 8px; margin: 20px 0;">
            <p>Subtotal: {_fmt(order['subtotal'])}</p>
            <p>Tax: {_fmt(order['tax'])}</p>
            <p>Delivery: {_fmt(order['delivery_fee'])}</p>
            <p>Discount: -{_fmt(order['discount'])}</p>
            <p>Total: <strong>{_fmt(order['total'])}</strong></p>
        </div>
        <p>Thank you for ordering from {settings.restaurant_name}!</p>
    </div>
    """
    text = (
        f"Your order {order['order_number']} has been placed. "
        f"Total: {_fmt(order['total'])}. Thank you for ordering from {settings.restaurant_name}!"
    )
    return subject, html, text


def daily_report_text(report: dict[str, Any]) -> str:
    lines = [
        f"📊 Daily report {report['date']}",
        f"Orders: {report['orders']}",
        f"Revenue: {_fmt(report['revenue'])}",
        f"Cancelled: {report['cancelled']}",
    ]
    if report.get("top_item"):
        lines.append(f"Top item: {report['top_item']}")
    return "\n".join(lines)
